"""State machine for recurring giving subscriptions.

    PENDING_SETUP -> ACTIVE -> COMPLETED | CANCELLED | FAILED

Terminal states have no outgoing transitions and ``cycles_completed`` never
decreases, so duplicate or out-of-order notifications cannot move a
subscription backwards.
"""

import logging
from datetime import datetime
from typing import Optional

from ..database import RecurringGiving, RecurringGivingStatus

logger = logging.getLogger(__name__)


def _status(recurring: RecurringGiving) -> Optional[RecurringGivingStatus]:
    try:
        return RecurringGivingStatus(recurring.status)
    except ValueError:
        return None


class SubscriptionStateMachine:
    """Applies charge outcomes to a (row-locked) RecurringGiving."""

    def _capture_token(self, recurring: RecurringGiving, token: Optional[str]) -> None:
        if token and not recurring.payfast_token:
            recurring.payfast_token = token
            logger.info(f"Captured PayFast token for recurring giving {recurring.id}")

    def is_terminal(self, recurring: RecurringGiving) -> bool:
        status = _status(recurring)
        return status is not None and status.is_terminal

    def on_success(
        self,
        recurring: RecurringGiving,
        cycle_no: int,
        token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Advance the subscription after a successful cycle charge.

        Returns:
            True if the subscription was advanced.
        """
        now = now or datetime.utcnow()
        self._capture_token(recurring, token)

        if self.is_terminal(recurring):
            logger.info(
                f"Recurring giving {recurring.id} is {recurring.status}, "
                f"not advancing for cycle {cycle_no}"
            )
            return False

        completed = max(recurring.cycles_completed or 0, max(1, cycle_no))
        recurring.cycles_completed = completed
        cycles = recurring.cycles or 0
        if cycles > 0 and completed >= cycles:
            recurring.status = RecurringGivingStatus.COMPLETED.value
        else:
            recurring.status = RecurringGivingStatus.ACTIVE.value
        recurring.last_charged_at = now
        recurring.updated_at = now

        logger.info(
            f"Recurring giving {recurring.id} -> {recurring.status} "
            f"({completed}/{cycles or 'open'} cycles)"
        )
        return True

    def on_failure(
        self,
        recurring: RecurringGiving,
        token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """A missed payment only kills a subscription that never succeeded."""
        self._capture_token(recurring, token)
        if self.is_terminal(recurring) or (recurring.cycles_completed or 0) > 0:
            return False
        recurring.status = RecurringGivingStatus.FAILED.value
        recurring.updated_at = now or datetime.utcnow()
        logger.info(f"Recurring giving {recurring.id} -> FAILED")
        return True

    def on_cancelled(self, recurring: RecurringGiving, now: Optional[datetime] = None) -> bool:
        if self.is_terminal(recurring):
            return False
        now = now or datetime.utcnow()
        recurring.status = RecurringGivingStatus.CANCELLED.value
        if recurring.cancelled_at is None:
            recurring.cancelled_at = now
        recurring.updated_at = now
        logger.info(f"Recurring giving {recurring.id} -> CANCELLED")
        return True
