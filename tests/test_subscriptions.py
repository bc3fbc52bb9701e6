"""Tests for the recurring giving state machine."""

from datetime import datetime
from decimal import Decimal

from churpay_ledger.database import RecurringGiving, RecurringGivingStatus
from churpay_ledger.reconciliation import SubscriptionStateMachine


def make_recurring(**overrides) -> RecurringGiving:
    values = dict(
        id="rg-1",
        member_id="m-1",
        church_id="c-1",
        fund_id="f-1",
        status=RecurringGivingStatus.PENDING_SETUP.value,
        cycles=0,
        cycles_completed=0,
        donation_amount=Decimal("100.00"),
        platform_fee_amount=Decimal("3.25"),
        gross_amount=Decimal("103.25"),
        payfast_token=None,
        cancelled_at=None,
    )
    values.update(overrides)
    return RecurringGiving(**values)


class TestOnSuccess:
    """Tests for successful cycle charges."""

    def test_first_charge_activates(self):
        """Test the setup charge."""
        recurring = make_recurring()
        now = datetime(2026, 3, 1, 8, 0)
        assert SubscriptionStateMachine().on_success(recurring, 1, token="tok-1", now=now)
        assert recurring.status == "ACTIVE"
        assert recurring.cycles_completed == 1
        assert recurring.payfast_token == "tok-1"
        assert recurring.last_charged_at == now

    def test_last_cycle_completes(self):
        """Test that reaching the cycle count completes the subscription."""
        recurring = make_recurring(status="ACTIVE", cycles=3, cycles_completed=2)
        SubscriptionStateMachine().on_success(recurring, 3)
        assert recurring.status == "COMPLETED"
        assert recurring.cycles_completed == 3

    def test_completed_is_not_advanced(self):
        """Test that a duplicate after completion changes nothing."""
        recurring = make_recurring(status="COMPLETED", cycles=3, cycles_completed=3)
        assert not SubscriptionStateMachine().on_success(recurring, 3)
        assert recurring.status == "COMPLETED"
        assert recurring.cycles_completed == 3

    def test_cycles_completed_never_decreases(self):
        """Test an older cycle confirmed after a newer one."""
        recurring = make_recurring(status="ACTIVE", cycles_completed=5)
        SubscriptionStateMachine().on_success(recurring, 2)
        assert recurring.cycles_completed == 5

    def test_open_ended_stays_active(self):
        """Test that cycles=0 never completes."""
        recurring = make_recurring(status="ACTIVE", cycles=0, cycles_completed=40)
        SubscriptionStateMachine().on_success(recurring, 41)
        assert recurring.status == "ACTIVE"

    def test_token_captured_once(self):
        """Test that an existing token is never replaced."""
        recurring = make_recurring(payfast_token="tok-original")
        SubscriptionStateMachine().on_success(recurring, 1, token="tok-new")
        assert recurring.payfast_token == "tok-original"


class TestOnFailure:
    """Tests for failed charges."""

    def test_failed_setup(self):
        """Test that a subscription that never succeeded fails."""
        recurring = make_recurring()
        assert SubscriptionStateMachine().on_failure(recurring, token="tok-1")
        assert recurring.status == "FAILED"
        assert recurring.payfast_token == "tok-1"

    def test_missed_payment_after_success(self):
        """Test that a later missed payment keeps the subscription."""
        recurring = make_recurring(status="ACTIVE", cycles_completed=2)
        assert not SubscriptionStateMachine().on_failure(recurring)
        assert recurring.status == "ACTIVE"


class TestOnCancelled:
    """Tests for cancellations."""

    def test_cancel_sets_timestamp_once(self):
        """Test cancelled_at is set on the first cancellation only."""
        first = datetime(2026, 1, 1)
        recurring = make_recurring(status="ACTIVE")
        machine = SubscriptionStateMachine()
        assert machine.on_cancelled(recurring, now=first)
        assert recurring.status == "CANCELLED"
        assert recurring.cancelled_at == first

        assert not machine.on_cancelled(recurring, now=datetime(2026, 2, 1))
        assert recurring.cancelled_at == first

    def test_completed_cannot_be_cancelled(self):
        """Test that terminal states stay put."""
        recurring = make_recurring(status="COMPLETED")
        assert not SubscriptionStateMachine().on_cancelled(recurring)
        assert recurring.status == "COMPLETED"
