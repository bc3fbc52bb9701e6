"""Usage accounting for shareable giving links."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..database import GivingLink, GivingLinkRepository, GivingLinkStatus, PaymentIntent

logger = logging.getLogger(__name__)


def apply_use(link: GivingLink, payment_intent_id: str, now: Optional[datetime] = None) -> bool:
    """Count one paid use of ``link``, capped at ``max_uses``.

    The first time the cap is reached the link becomes PAID and remembers
    when and by which intent. Calling it again at the cap changes nothing.

    Returns:
        True if the link reached its cap.
    """
    max_uses = link.max_uses or 1
    link.use_count = min((link.use_count or 0) + 1, max_uses)
    if link.use_count < max_uses:
        return False

    link.status = GivingLinkStatus.PAID.value
    if link.paid_at is None:
        link.paid_at = now or datetime.utcnow()
    if link.paid_payment_intent_id is None:
        link.paid_payment_intent_id = payment_intent_id
    return True


class GivingLinkUsageTracker:
    """Records giving-link usage inside the ledger transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.links = GivingLinkRepository(session)

    async def record_use(self, intent: PaymentIntent) -> Optional[GivingLink]:
        if not intent.giving_link_id:
            return None
        link = await self.links.get_by_id(intent.giving_link_id, for_update=True)
        if link is None:
            logger.warning(f"Giving link {intent.giving_link_id} for intent {intent.id} not found")
            return None

        if apply_use(link, intent.id):
            logger.info(f"Giving link {link.id} fully used ({link.use_count}/{link.max_uses})")
        await self.session.flush()
        return link
