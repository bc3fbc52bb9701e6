"""Matches a notification to the payment intent it pays for."""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import FeeConfig
from ..database import (
    PaymentIntent,
    RecurringGiving,
    PaymentIntentStatus,
    IntentSource,
    PaymentIntentRepository,
    RecurringGivingRepository,
    TransactionRepository,
)
from ..errors import NotFoundError, ConflictAlreadyProcessed
from ..fees import round2
from ..gateway import ItnNotification, PROVIDER

logger = logging.getLogger(__name__)


def make_recurring_m_payment_id() -> str:
    return "SUB-" + secrets.token_hex(8).upper()


@dataclass
class ResolvedIntent:
    """The intent a notification applies to, plus its subscription if any."""
    intent: PaymentIntent
    recurring: Optional[RecurringGiving] = None
    synthesized: bool = False

    @property
    def cycle_no(self) -> int:
        return max(1, self.intent.recurring_cycle_no or 1)


class IntentResolver:
    """
    Finds the PaymentIntent for an ITN, creating one for recurring cycles.

    PayFast bills subscription cycles on its own schedule, so the first we
    hear of cycle N is often its ITN. Those notifications are matched to the
    subscription by token (or the subscription id echoed in ``custom_str3``)
    and get a fresh intent carrying the subscription's amount snapshot.
    All rows are read with ``FOR UPDATE`` so concurrent deliveries of the same
    notification serialize on the database.
    """

    def __init__(self, session: AsyncSession, fee_config: FeeConfig):
        self.session = session
        self.fee_config = fee_config
        self.intents = PaymentIntentRepository(session)
        self.recurring = RecurringGivingRepository(session)
        self.transactions = TransactionRepository(session)

    async def resolve(self, notification: ItnNotification) -> ResolvedIntent:
        """Resolve ``notification`` to an intent.

        Raises:
            NotFoundError: Nothing local matches the notification.
            ConflictAlreadyProcessed: A recurring charge whose gateway payment
                id is already in the ledger.
        """
        intent = None
        if notification.m_payment_id:
            intent = await self.intents.get_by_m_payment_id(notification.m_payment_id, for_update=True)

        if intent is not None and not await self._is_later_cycle(intent, notification):
            recurring = None
            if intent.recurring_giving_id:
                recurring = await self.recurring.get_by_id(intent.recurring_giving_id, for_update=True)
            return ResolvedIntent(intent=intent, recurring=recurring)

        recurring = await self._find_subscription(notification, intent)
        if recurring is None or not notification.is_complete:
            logger.warning(
                f"ITN for unknown reference m_payment_id={notification.m_payment_id} "
                f"token_present={bool(notification.token)} status={notification.raw_status}"
            )
            raise NotFoundError("unknown m_payment_id")

        if notification.pf_payment_id:
            already = await self.transactions.get_by_provider_payment_id(notification.pf_payment_id, PROVIDER)
            if already is not None:
                logger.info(
                    f"Recurring ITN pf_payment_id={notification.pf_payment_id} already "
                    f"recorded as transaction {already.id}"
                )
                raise ConflictAlreadyProcessed()

        reuse_id = intent is None and notification.m_payment_id
        new_intent = await self.create_cycle_intent(
            recurring,
            notification,
            m_payment_id=notification.m_payment_id if reuse_id else None,
        )
        return ResolvedIntent(intent=new_intent, recurring=recurring, synthesized=True)

    async def _is_later_cycle(self, intent: PaymentIntent, notification: ItnNotification) -> bool:
        """Whether a COMPLETE ITN for a paid recurring intent is a different charge.

        PayFast repeats the setup m_payment_id on every subscription cycle, so
        the ITN is matched to ledger rows by pf_payment_id. It is the same
        charge only when the intent's own ledger row carries that id.
        """
        if not (
            intent.recurring_giving_id
            and intent.status == PaymentIntentStatus.PAID.value
            and notification.is_complete
            and notification.pf_payment_id
        ):
            return False
        if intent.provider_payment_id == notification.pf_payment_id:
            return False

        charged = await self.transactions.get_by_provider_payment_id(notification.pf_payment_id, PROVIDER)
        if charged is not None:
            return charged.payment_intent_id != intent.id

        existing = await self.transactions.get_by_payment_intent_id(intent.id)
        return existing is not None and existing.provider_payment_id != notification.pf_payment_id

    async def _find_subscription(
        self,
        notification: ItnNotification,
        intent: Optional[PaymentIntent],
    ) -> Optional[RecurringGiving]:
        if intent is not None and intent.recurring_giving_id:
            return await self.recurring.get_by_id(intent.recurring_giving_id, for_update=True)

        recurring = None
        if notification.token:
            recurring = await self.recurring.get_by_token(notification.token, for_update=True)
        if recurring is None and notification.recurring_giving_id:
            recurring = await self.recurring.get_by_id(notification.recurring_giving_id, for_update=True)
        return recurring

    async def next_cycle_no(self, recurring: RecurringGiving) -> int:
        """Cycle number for the next charge of ``recurring``.

        Normally ``cycles_completed + 1``. When that cycle already has an
        intent (an earlier cycle is still unconfirmed), the next free number
        is used instead, since cycle numbers are unique per subscription.

        Skipped numbers still count: ``cycles_completed`` becomes the highest
        paid cycle number, so a charge numbered past an unpaid intent can
        complete a fixed-length subscription before that many charges have
        actually been paid. PayFast owns the billing schedule and stops
        charging on its own, so the count tracks cycle positions rather than
        successful charges.
        """
        cycle_no = max(1, (recurring.cycles_completed or 0) + 1)
        if await self.intents.exists_for_cycle(recurring.id, cycle_no):
            cycle_no = max(cycle_no, await self.intents.max_cycle_no(recurring.id) + 1)
        return cycle_no

    async def create_cycle_intent(
        self,
        recurring: RecurringGiving,
        notification: ItnNotification,
        m_payment_id: Optional[str] = None,
    ) -> PaymentIntent:
        """Create the PENDING intent for the next cycle of ``recurring``.

        Amounts come from the subscription as it was set up, since PayFast
        only echoes the gross amount back. Rates are today's configuration.
        """
        cycle_no = await self.next_cycle_no(recurring)
        amount = round2(recurring.donation_amount or 0)
        platform_fee = round2(recurring.platform_fee_amount or 0)
        if recurring.gross_amount is not None:
            gross = round2(recurring.gross_amount)
        else:
            gross = round2(amount + platform_fee)

        intent = await self.intents.create(
            m_payment_id=m_payment_id or make_recurring_m_payment_id(),
            church_id=recurring.church_id,
            fund_id=recurring.fund_id,
            amount=amount,
            currency=recurring.currency or "ZAR",
            platform_fee_amount=platform_fee,
            platform_fee_pct=self.fee_config.pct_fee,
            platform_fee_fixed=self.fee_config.fixed_fee,
            amount_gross=gross,
            superadmin_cut_amount=round2(platform_fee * self.fee_config.superadmin_cut_pct),
            superadmin_cut_pct=self.fee_config.superadmin_cut_pct,
            recurring_giving_id=recurring.id,
            recurring_cycle_no=cycle_no,
            source=IntentSource.RECURRING.value,
            channel="app",
            provider=PROVIDER,
            item_name=(notification.item_name or f"Recurring giving #{cycle_no}")[:100],
            payer_name=notification.payer_name or "Recurring donor",
            payer_phone=notification.cell_number,
            payer_email=notification.email_address,
            payer_type="member",
        )
        logger.info(
            f"Synthesized intent {intent.id} for recurring giving {recurring.id} cycle {cycle_no}"
        )
        return intent
