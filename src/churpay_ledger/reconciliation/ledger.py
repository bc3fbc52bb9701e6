"""Writes the single ledger row for a confirmed charge."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import FeeConfig
from ..database import (
    PaymentIntent,
    PaymentIntentStatus,
    Transaction,
    PaymentIntentRepository,
    TransactionRepository,
)
from ..fees import calculate_fees, round2
from ..gateway import ItnNotification, PROVIDER
from .giving_links import GivingLinkUsageTracker

logger = logging.getLogger(__name__)

# Statuses an unpaid notification may still move away from
OPEN_STATUSES = (
    PaymentIntentStatus.PENDING.value,
    PaymentIntentStatus.PREPARED.value,
    PaymentIntentStatus.RECORDED.value,
)


@dataclass
class LedgerResult:
    transaction: Transaction
    created: bool
    status_changed: bool


def church_net(amount: Decimal, gateway_fee: Optional[Decimal]) -> Decimal:
    """What the church receives after the gateway's own fee, never negative."""
    return round2(max(Decimal("0"), round2(amount) - (gateway_fee or Decimal("0"))))


class LedgerWriter:
    """
    Marks intents terminal and inserts their ledger rows.

    Exactly one Transaction exists per PaymentIntent. The existence check
    short-circuits replays; the unique index on ``payment_intent_id`` decides
    races between concurrent deliveries, surfacing as IntegrityError to the
    caller.
    """

    def __init__(
        self,
        session: AsyncSession,
        fee_config: FeeConfig,
        giving_links: Optional[GivingLinkUsageTracker] = None,
    ):
        self.session = session
        self.fee_config = fee_config
        self.intents = PaymentIntentRepository(session)
        self.transactions = TransactionRepository(session)
        self.giving_links = giving_links or GivingLinkUsageTracker(session)

    def fee_split(self, intent: PaymentIntent) -> Tuple[Decimal, Decimal, Decimal]:
        """Platform fee, gross and superadmin cut for ``intent``.

        Taken from the snapshot; anything missing is derived with the rates the
        intent recorded, falling back to the configured rates.
        """
        if (
            intent.platform_fee_amount is not None
            and intent.amount_gross is not None
            and intent.superadmin_cut_amount is not None
        ):
            return (
                round2(intent.platform_fee_amount),
                round2(intent.amount_gross),
                round2(intent.superadmin_cut_amount),
            )

        rates = FeeConfig(
            fixed_fee=intent.platform_fee_fixed if intent.platform_fee_fixed is not None else self.fee_config.fixed_fee,
            pct_fee=intent.platform_fee_pct if intent.platform_fee_pct is not None else self.fee_config.pct_fee,
            superadmin_cut_pct=(
                intent.superadmin_cut_pct
                if intent.superadmin_cut_pct is not None
                else self.fee_config.superadmin_cut_pct
            ),
        )
        derived = calculate_fees(intent.amount, rates)
        platform_fee = (
            round2(intent.platform_fee_amount)
            if intent.platform_fee_amount is not None
            else derived.platform_fee_amount
        )
        gross = round2(intent.amount_gross) if intent.amount_gross is not None else round2(derived.amount + platform_fee)
        cut = (
            round2(intent.superadmin_cut_amount)
            if intent.superadmin_cut_amount is not None
            else round2(platform_fee * rates.superadmin_cut_pct)
        )
        return platform_fee, gross, cut

    def _same_charge(self, intent: PaymentIntent, txn: Transaction, notification: ItnNotification) -> bool:
        # A one-off intent can only ever be charged once. Recurring intents share
        # their m_payment_id across cycles, so only a matching pf_payment_id counts.
        if not intent.recurring_giving_id:
            return True
        return txn.provider_payment_id == notification.pf_payment_id

    async def record_success(self, intent: PaymentIntent, notification: ItnNotification) -> LedgerResult:
        """Mark ``intent`` PAID and make sure it has exactly one ledger row.

        Raises:
            sqlalchemy.exc.IntegrityError: A concurrent delivery inserted the
                row first. The surrounding transaction must be retried.
        """
        status_changed = await self.intents.transition(
            intent,
            PaymentIntentStatus.PAID.value,
            excluded_from=[PaymentIntentStatus.PAID.value],
            provider=PROVIDER,
            provider_payment_id=notification.pf_payment_id,
        )

        gateway_fee = notification.gateway_fee
        net = church_net(intent.amount, gateway_fee)

        existing = await self.transactions.get_by_payment_intent_id(intent.id)
        if existing is not None:
            if self._same_charge(intent, existing, notification):
                await self.transactions.backfill_gateway_fields(
                    existing,
                    gateway_fee_amount=gateway_fee,
                    church_net_amount=net,
                    provider_payment_id=notification.pf_payment_id,
                )
            logger.info(f"Intent {intent.id} already has transaction {existing.id}, replay acknowledged")
            return LedgerResult(transaction=existing, created=False, status_changed=status_changed)

        platform_fee, gross, cut = self.fee_split(intent)
        txn = await self.transactions.create_from_intent(
            intent,
            platform_fee_amount=platform_fee,
            amount_gross=gross,
            superadmin_cut_amount=cut,
            gateway_fee_amount=gateway_fee,
            church_net_amount=net,
            provider=PROVIDER,
            provider_payment_id=notification.pf_payment_id,
        )

        if intent.giving_link_id:
            await self.giving_links.record_use(intent)

        return LedgerResult(transaction=txn, created=True, status_changed=status_changed)

    async def record_unpaid(
        self,
        intent: PaymentIntent,
        notification: ItnNotification,
        new_status: PaymentIntentStatus,
    ) -> bool:
        """Mark a still-open intent FAILED or CANCELLED. PAID intents are never touched."""
        changed = await self.intents.transition(
            intent,
            new_status.value,
            allowed_from=OPEN_STATUSES,
            provider=PROVIDER,
        )
        if not changed:
            logger.info(
                f"Intent {intent.id} is {intent.status}, ignoring {new_status.value} "
                f"notification (pf_payment_id={notification.pf_payment_id})"
            )
        return changed
