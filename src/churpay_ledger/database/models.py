"""SQLAlchemy models for the giving ledger."""

import uuid
import json
import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, Union

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    Numeric,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MONEY = Numeric(12, 2)
RATE = Numeric(6, 4)


def _new_id() -> str:
    return str(uuid.uuid4())


def _money(value: Optional[Decimal]) -> Optional[str]:
    return f"{value:.2f}" if value is not None else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class PaymentIntentStatus(str, enum.Enum):
    """Lifecycle of a single charge attempt."""
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    # Cash givings recorded by church admins
    PREPARED = "PREPARED"
    RECORDED = "RECORDED"
    CONFIRMED = "CONFIRMED"

    @property
    def is_terminal(self) -> bool:
        return self in (
            PaymentIntentStatus.PAID,
            PaymentIntentStatus.FAILED,
            PaymentIntentStatus.CANCELLED,
            PaymentIntentStatus.REJECTED,
            PaymentIntentStatus.CONFIRMED,
        )


class IntentSource(str, enum.Enum):
    """Where a payment intent came from."""
    DIRECT_APP = "DIRECT_APP"
    PUBLIC_GIVE = "PUBLIC_GIVE"
    SHARE_LINK = "SHARE_LINK"
    CASH = "CASH"
    RECURRING = "RECURRING"


class RecurringGivingStatus(str, enum.Enum):
    """Subscription states. COMPLETED, CANCELLED and FAILED are terminal."""
    PENDING_SETUP = "PENDING_SETUP"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (
            RecurringGivingStatus.COMPLETED,
            RecurringGivingStatus.CANCELLED,
            RecurringGivingStatus.FAILED,
        )


class RecurringFrequency(int, enum.Enum):
    """PayFast subscription frequency codes."""
    WEEKLY = 1
    BIWEEKLY = 2
    MONTHLY = 3
    QUARTERLY = 4
    BIANNUALLY = 5
    ANNUALLY = 6

    @classmethod
    def parse(cls, raw: Union[int, str, None]) -> Optional["RecurringFrequency"]:
        """Accept a frequency code (1-6) or a name such as ``"monthly"``.

        Returns None for anything unrecognised.
        """
        if isinstance(raw, bool) or raw is None:
            return None
        if isinstance(raw, int):
            try:
                return cls(raw)
            except ValueError:
                return None
        key = str(raw).strip().lower()
        if key.isdigit():
            return cls.parse(int(key))
        aliases = {
            "weekly": cls.WEEKLY,
            "biweekly": cls.BIWEEKLY,
            "fortnightly": cls.BIWEEKLY,
            "monthly": cls.MONTHLY,
            "quarterly": cls.QUARTERLY,
            "biannually": cls.BIANNUALLY,
            "biannual": cls.BIANNUALLY,
            "semiannually": cls.BIANNUALLY,
            "annually": cls.ANNUALLY,
            "annual": cls.ANNUALLY,
            "yearly": cls.ANNUALLY,
        }
        return aliases.get(key)


class GivingLinkStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    EXPIRED = "EXPIRED"


class AmountType(str, enum.Enum):
    FIXED = "FIXED"
    OPEN = "OPEN"


class Church(Base):
    """Read-only view of a church owned by the admin CRUD flows."""
    __tablename__ = "churches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Fund(Base):
    """Read-only view of a church fund."""
    __tablename__ = "funds"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    church_id: Mapped[str] = mapped_column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class PaymentIntent(Base):
    """One attempted charge. Its fee snapshot is fixed at creation."""
    __tablename__ = "payment_intents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    m_payment_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    church_id: Mapped[str] = mapped_column(String(36), ForeignKey("churches.id"), nullable=False)
    fund_id: Mapped[str] = mapped_column(String(36), ForeignKey("funds.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentIntentStatus.PENDING.value)

    # Fee snapshot
    platform_fee_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    platform_fee_pct: Mapped[Optional[Decimal]] = mapped_column(RATE, nullable=True)
    platform_fee_fixed: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    amount_gross: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    superadmin_cut_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    superadmin_cut_pct: Mapped[Optional[Decimal]] = mapped_column(RATE, nullable=True)

    # Linkage
    recurring_giving_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("recurring_givings.id"), nullable=True
    )
    recurring_cycle_no: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    giving_link_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("giving_links.id"), nullable=True)
    on_behalf_of_member_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    source: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    channel: Mapped[str] = mapped_column(String(20), nullable=False, default="app")
    provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    provider_payment_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    item_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payer_type: Mapped[str] = mapped_column(String(20), nullable=False, default="member")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("recurring_giving_id", "recurring_cycle_no", name="uq_payment_intents_recurring_cycle"),
        Index("ix_payment_intents_status", "status"),
        Index("ix_payment_intents_church_created", "church_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the intent to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "m_payment_id": self.m_payment_id,
            "church_id": self.church_id,
            "fund_id": self.fund_id,
            "amount": _money(self.amount),
            "currency": self.currency,
            "status": self.status,
            "platform_fee_amount": _money(self.platform_fee_amount),
            "platform_fee_pct": str(self.platform_fee_pct) if self.platform_fee_pct is not None else None,
            "platform_fee_fixed": _money(self.platform_fee_fixed),
            "amount_gross": _money(self.amount_gross),
            "superadmin_cut_amount": _money(self.superadmin_cut_amount),
            "superadmin_cut_pct": str(self.superadmin_cut_pct) if self.superadmin_cut_pct is not None else None,
            "recurring_giving_id": self.recurring_giving_id,
            "recurring_cycle_no": self.recurring_cycle_no,
            "giving_link_id": self.giving_link_id,
            "on_behalf_of_member_id": self.on_behalf_of_member_id,
            "source": self.source,
            "channel": self.channel,
            "provider": self.provider,
            "provider_payment_id": self.provider_payment_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Transaction(Base):
    """Append-only ledger row, one per PAID payment intent."""
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    payment_intent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payment_intents.id"), nullable=False, unique=True
    )
    church_id: Mapped[str] = mapped_column(String(36), ForeignKey("churches.id"), nullable=False)
    fund_id: Mapped[str] = mapped_column(String(36), ForeignKey("funds.id"), nullable=False)

    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    platform_fee_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    platform_fee_pct: Mapped[Optional[Decimal]] = mapped_column(RATE, nullable=True)
    platform_fee_fixed: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    gateway_fee_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    church_net_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    amount_gross: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    superadmin_cut_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    superadmin_cut_pct: Mapped[Optional[Decimal]] = mapped_column(RATE, nullable=True)

    giving_link_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    on_behalf_of_member_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    recurring_giving_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    recurring_cycle_no: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    payer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payer_type: Mapped[str] = mapped_column(String(20), nullable=False, default="member")

    reference: Mapped[str] = mapped_column(String(64), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False, default="app")
    provider: Mapped[str] = mapped_column(String(50), nullable=False, default="payfast")
    provider_payment_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_transactions_church_created", "church_id", "created_at"),
        Index("ix_transactions_recurring_giving", "recurring_giving_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the ledger row to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "payment_intent_id": self.payment_intent_id,
            "church_id": self.church_id,
            "fund_id": self.fund_id,
            "amount": _money(self.amount),
            "platform_fee_amount": _money(self.platform_fee_amount),
            "gateway_fee_amount": _money(self.gateway_fee_amount),
            "church_net_amount": _money(self.church_net_amount),
            "amount_gross": _money(self.amount_gross),
            "superadmin_cut_amount": _money(self.superadmin_cut_amount),
            "reference": self.reference,
            "channel": self.channel,
            "provider": self.provider,
            "provider_payment_id": self.provider_payment_id,
            "recurring_giving_id": self.recurring_giving_id,
            "recurring_cycle_no": self.recurring_cycle_no,
            "created_at": _iso(self.created_at),
        }


class RecurringGiving(Base):
    """A standing donation subscription billed by PayFast."""
    __tablename__ = "recurring_givings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    member_id: Mapped[str] = mapped_column(String(36), nullable=False)
    church_id: Mapped[str] = mapped_column(String(36), ForeignKey("churches.id"), nullable=False)
    fund_id: Mapped[str] = mapped_column(String(36), ForeignKey("funds.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RecurringGivingStatus.PENDING_SETUP.value)
    frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=RecurringFrequency.MONTHLY.value)
    cycles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cycles_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    donation_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    platform_fee_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0.00"))
    gross_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")
    payfast_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    setup_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    last_charged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_recurring_givings_church_status", "church_id", "status"),
        Index("ix_recurring_givings_member_created", "member_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        frequency = RecurringFrequency.parse(self.frequency)
        return {
            "id": self.id,
            "status": self.status,
            "frequency": frequency.name.lower() if frequency else self.frequency,
            "cycles": self.cycles,
            "cycles_completed": self.cycles_completed,
            "donation_amount": _money(self.donation_amount),
            "platform_fee_amount": _money(self.platform_fee_amount),
            "gross_amount": _money(self.gross_amount),
            "last_charged_at": _iso(self.last_charged_at),
            "cancelled_at": _iso(self.cancelled_at),
        }


class GivingLink(Base):
    """Shareable, token-addressed donation request."""
    __tablename__ = "giving_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    requester_member_id: Mapped[str] = mapped_column(String(36), nullable=False)
    church_id: Mapped[str] = mapped_column(String(36), ForeignKey("churches.id"), nullable=False)
    fund_id: Mapped[str] = mapped_column(String(36), ForeignKey("funds.id"), nullable=False)
    amount_type: Mapped[str] = mapped_column(String(10), nullable=False, default=AmountType.FIXED.value)
    amount_fixed: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")
    message: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=GivingLinkStatus.ACTIVE.value)
    max_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    use_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    paid_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Notification(Base):
    """In-app notification queued for a member."""
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    member_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    data_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        """Get the payload as a dictionary."""
        if self.data_json:
            return json.loads(self.data_json)
        return None

    @data.setter
    def data(self, value: Optional[Dict[str, Any]]) -> None:
        if value is not None:
            self.data_json = json.dumps(value, default=str)
        else:
            self.data_json = None
