"""Repository layer for ledger persistence operations."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Iterable

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Fund,
    PaymentIntent,
    Transaction,
    RecurringGiving,
    GivingLink,
    PaymentIntentStatus,
)

logger = logging.getLogger(__name__)


class PaymentIntentRepository:
    """Repository for PaymentIntent lookups and status transitions."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def get_by_id(self, intent_id: str) -> Optional[PaymentIntent]:
        """Get a payment intent by its ID."""
        result = await self.session.execute(
            select(PaymentIntent).where(PaymentIntent.id == intent_id)
        )
        return result.scalar_one_or_none()

    async def get_by_m_payment_id(
        self,
        m_payment_id: str,
        for_update: bool = False,
    ) -> Optional[PaymentIntent]:
        """Get a payment intent by the correlation id echoed by the gateway.

        Args:
            m_payment_id: Correlation id sent to the gateway at checkout.
            for_update: Lock the row until the surrounding transaction ends.

        Returns:
            PaymentIntent instance if found, None otherwise.
        """
        stmt = select(PaymentIntent).where(PaymentIntent.m_payment_id == m_payment_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def exists_for_cycle(self, recurring_giving_id: str, cycle_no: int) -> bool:
        """Check whether a subscription cycle already has an intent."""
        result = await self.session.execute(
            select(PaymentIntent.id).where(
                and_(
                    PaymentIntent.recurring_giving_id == recurring_giving_id,
                    PaymentIntent.recurring_cycle_no == cycle_no,
                )
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def max_cycle_no(self, recurring_giving_id: str) -> int:
        """Return the highest cycle number holding an intent, or 0."""
        result = await self.session.execute(
            select(func.max(PaymentIntent.recurring_cycle_no)).where(
                PaymentIntent.recurring_giving_id == recurring_giving_id
            )
        )
        return result.scalar_one_or_none() or 0

    async def create(self, **fields) -> PaymentIntent:
        """Insert a new PENDING payment intent.

        Args:
            **fields: Column values. ``status`` defaults to PENDING.

        Returns:
            Created PaymentIntent instance.

        Raises:
            sqlalchemy.exc.IntegrityError: If ``m_payment_id`` or the
                subscription cycle is already taken.
        """
        fields.setdefault("status", PaymentIntentStatus.PENDING.value)
        intent = PaymentIntent(**fields)
        self.session.add(intent)
        await self.session.flush()

        logger.info(
            f"Created payment intent {intent.id} ({intent.m_payment_id}) "
            f"with status {intent.status}"
        )
        return intent

    async def transition(
        self,
        intent: PaymentIntent,
        new_status: str,
        allowed_from: Optional[Iterable[str]] = None,
        excluded_from: Optional[Iterable[str]] = None,
        provider: Optional[str] = None,
        provider_payment_id: Optional[str] = None,
    ) -> bool:
        """Conditionally move an intent to a new status.

        The guard is part of the UPDATE statement itself, so a concurrent
        writer that already moved the row makes this a no-op.

        Args:
            intent: PaymentIntent instance to update.
            new_status: Status to set.
            allowed_from: Only update when the current status is one of these.
            excluded_from: Never update when the current status is one of these.
            provider: Gateway name to record.
            provider_payment_id: Gateway payment id to record when given.

        Returns:
            True if the row was updated.
        """
        conditions = [PaymentIntent.id == intent.id]
        if allowed_from is not None:
            conditions.append(PaymentIntent.status.in_(list(allowed_from)))
        if excluded_from is not None:
            conditions.append(PaymentIntent.status.not_in(list(excluded_from)))

        values = {"status": new_status, "updated_at": datetime.utcnow()}
        if provider:
            values["provider"] = provider
        if provider_payment_id:
            values["provider_payment_id"] = provider_payment_id

        result = await self.session.execute(
            update(PaymentIntent)
            .where(and_(*conditions))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount > 0
        if changed:
            await self.session.refresh(intent)
            logger.info(f"Payment intent {intent.id} moved to {new_status}")
        return changed


class TransactionRepository:
    """Repository for the append-only transactions ledger."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def get_by_payment_intent_id(self, payment_intent_id: str) -> Optional[Transaction]:
        """Get the ledger row for a payment intent, if any."""
        result = await self.session.execute(
            select(Transaction).where(Transaction.payment_intent_id == payment_intent_id)
        )
        return result.scalar_one_or_none()

    async def get_by_provider_payment_id(
        self,
        provider_payment_id: str,
        provider: str = "payfast",
    ) -> Optional[Transaction]:
        """Get a ledger row by the gateway's own payment id."""
        result = await self.session.execute(
            select(Transaction)
            .where(
                and_(
                    Transaction.provider == provider,
                    Transaction.provider_payment_id == provider_payment_id,
                )
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_from_intent(
        self,
        intent: PaymentIntent,
        platform_fee_amount: Decimal,
        amount_gross: Decimal,
        superadmin_cut_amount: Decimal,
        gateway_fee_amount: Optional[Decimal],
        church_net_amount: Decimal,
        provider: str = "payfast",
        provider_payment_id: Optional[str] = None,
    ) -> Transaction:
        """Insert the ledger row for a paid intent.

        Raises:
            sqlalchemy.exc.IntegrityError: If the intent already has a row.
        """
        txn = Transaction(
            payment_intent_id=intent.id,
            church_id=intent.church_id,
            fund_id=intent.fund_id,
            amount=intent.amount,
            platform_fee_amount=platform_fee_amount,
            platform_fee_pct=intent.platform_fee_pct,
            platform_fee_fixed=intent.platform_fee_fixed,
            gateway_fee_amount=gateway_fee_amount,
            church_net_amount=church_net_amount,
            amount_gross=amount_gross,
            superadmin_cut_amount=superadmin_cut_amount,
            superadmin_cut_pct=intent.superadmin_cut_pct,
            giving_link_id=intent.giving_link_id,
            on_behalf_of_member_id=intent.on_behalf_of_member_id,
            recurring_giving_id=intent.recurring_giving_id,
            recurring_cycle_no=intent.recurring_cycle_no,
            payer_name=intent.payer_name,
            payer_phone=intent.payer_phone,
            payer_email=intent.payer_email,
            payer_type=intent.payer_type or "member",
            reference=intent.m_payment_id,
            channel=intent.channel or "app",
            provider=provider,
            provider_payment_id=provider_payment_id,
        )
        self.session.add(txn)
        await self.session.flush()

        logger.info(f"Recorded transaction {txn.id} for payment intent {intent.id}")
        return txn

    async def backfill_gateway_fields(
        self,
        txn: Transaction,
        gateway_fee_amount: Optional[Decimal],
        church_net_amount: Optional[Decimal],
        provider_payment_id: Optional[str],
    ) -> bool:
        """Fill in gateway-reported fields that were unknown at insert time.

        Fields that already hold a value are left untouched.

        Returns:
            True if anything changed.
        """
        changed = False
        if txn.gateway_fee_amount is None and gateway_fee_amount is not None:
            txn.gateway_fee_amount = gateway_fee_amount
            if church_net_amount is not None:
                txn.church_net_amount = church_net_amount
            changed = True
        if txn.provider_payment_id is None and provider_payment_id:
            txn.provider_payment_id = provider_payment_id
            changed = True

        if changed:
            await self.session.flush()
            logger.info(f"Backfilled gateway fields on transaction {txn.id}")
        return changed


class RecurringGivingRepository:
    """Repository for recurring giving subscriptions."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def get_by_id(self, recurring_id: str, for_update: bool = False) -> Optional[RecurringGiving]:
        """Get a subscription by its ID, optionally locking the row."""
        stmt = select(RecurringGiving).where(RecurringGiving.id == recurring_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_token(self, token: str, for_update: bool = False) -> Optional[RecurringGiving]:
        """Get a subscription by its PayFast token, optionally locking the row."""
        stmt = select(RecurringGiving).where(RecurringGiving.payfast_token == token).limit(1)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class GivingLinkRepository:
    """Repository for giving links."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, link_id: str, for_update: bool = False) -> Optional[GivingLink]:
        stmt = select(GivingLink).where(GivingLink.id == link_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class FundRepository:
    """Read-only access to funds owned by the admin flows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, fund_id: str) -> Optional[Fund]:
        result = await self.session.execute(select(Fund).where(Fund.id == fund_id))
        return result.scalar_one_or_none()
