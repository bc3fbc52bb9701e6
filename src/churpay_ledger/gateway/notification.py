"""Typed ITN record built from the raw form body."""

import re
import enum
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional
from urllib.parse import parse_qsl

from pydantic import BaseModel, Field

from ..errors import ValidationError
from ..fees import round2, to_decimal

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# PayFast has used several names for the subscription token over time
TOKEN_FIELDS = ("token", "subscription_id", "subscriptionId", "subscription_token")


class GatewayPaymentStatus(str, enum.Enum):
    """``payment_status`` values PayFast reports in an ITN."""
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: str) -> "GatewayPaymentStatus":
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return cls.UNKNOWN


class ItnNotification(BaseModel):
    """A validated Instant Transaction Notification."""
    m_payment_id: Optional[str] = Field(None, description="Correlation id we sent at checkout")
    pf_payment_id: Optional[str] = Field(None, description="PayFast's own payment id")
    payment_status: GatewayPaymentStatus
    raw_status: str = ""
    amount_gross: Decimal
    amount_fee: Optional[Decimal] = None
    amount_net: Optional[Decimal] = None
    token: Optional[str] = Field(None, description="Subscription token for recurring billing")
    recurring_giving_id: Optional[str] = Field(None, description="Subscription id echoed in custom_str3")
    item_name: Optional[str] = None
    name_first: Optional[str] = None
    name_last: Optional[str] = None
    email_address: Optional[str] = None
    cell_number: Optional[str] = None
    params: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def is_complete(self) -> bool:
        return self.payment_status == GatewayPaymentStatus.COMPLETE

    @property
    def payer_name(self) -> Optional[str]:
        name = " ".join(p for p in (self.name_first, self.name_last) if p).strip()
        return name or None

    @property
    def gateway_fee(self) -> Optional[Decimal]:
        """PayFast's processing fee as a positive amount, if reported."""
        if self.amount_fee is None:
            return None
        return round2(abs(self.amount_fee))


def _clean(params: Dict[str, str], key: str) -> Optional[str]:
    value = params.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_amount(raw: Optional[str], field: str, required: bool = False) -> Optional[Decimal]:
    if raw is None or raw.strip() == "":
        if required:
            raise ValidationError(f"missing {field}")
        return None
    try:
        value = to_decimal(raw)
    except InvalidOperation:
        raise ValidationError("invalid amount")
    if not value.is_finite():
        raise ValidationError("invalid amount")
    return value


def parse_params(raw_body: str) -> Dict[str, str]:
    """Decode a form body into a dict. Later duplicates win."""
    return dict(parse_qsl(raw_body, keep_blank_values=True, encoding="utf-8", errors="replace"))


def parse_notification(raw_body: str) -> ItnNotification:
    """Validate a raw ITN body into an :class:`ItnNotification`.

    Raises:
        ValidationError: If the gross amount is missing or not a number, or
            nothing identifies the charge.
    """
    params = parse_params(raw_body)

    token = None
    for key in TOKEN_FIELDS:
        token = _clean(params, key)
        if token:
            break

    custom_id = _clean(params, "custom_str3")
    recurring_id = custom_id if custom_id and UUID_PATTERN.match(custom_id) else None

    m_payment_id = _clean(params, "m_payment_id")
    if not m_payment_id and not token and not recurring_id:
        raise ValidationError("missing m_payment_id")

    gross_raw = params.get("amount_gross")
    if gross_raw is None or gross_raw.strip() == "":
        gross_raw = params.get("amount")

    raw_status = (params.get("payment_status") or "").strip()

    return ItnNotification(
        m_payment_id=m_payment_id,
        pf_payment_id=_clean(params, "pf_payment_id"),
        payment_status=GatewayPaymentStatus.parse(raw_status),
        raw_status=raw_status.upper(),
        amount_gross=_parse_amount(gross_raw, "amount_gross", required=True),
        amount_fee=_parse_amount(params.get("amount_fee"), "amount_fee"),
        amount_net=_parse_amount(params.get("amount_net"), "amount_net"),
        token=token,
        recurring_giving_id=recurring_id,
        item_name=_clean(params, "item_name"),
        name_first=_clean(params, "name_first"),
        name_last=_clean(params, "name_last"),
        email_address=_clean(params, "email_address"),
        cell_number=_clean(params, "cell_number"),
        params=params,
    )
