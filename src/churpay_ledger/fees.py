"""Platform fee arithmetic."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from pydantic import BaseModel

from .config import FeeConfig

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Convert a number or numeric string to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value).strip())


def round2(value: Number) -> Decimal:
    """Round half-up to two decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class FeeBreakdown(BaseModel):
    """Fee split for a single charge, stored on the intent as a snapshot."""
    amount: Decimal
    platform_fee_amount: Decimal
    platform_fee_pct: Decimal
    platform_fee_fixed: Decimal
    amount_gross: Decimal
    superadmin_cut_amount: Decimal
    superadmin_cut_pct: Decimal

    model_config = {"frozen": True}


def calculate_fees(amount: Number, config: FeeConfig) -> FeeBreakdown:
    """Derive the fee breakdown for a base donation amount.

    Every intermediate result is rounded, matching the values already stored
    for historical intents.

    Raises:
        ValueError: If the amount is not a positive number.
    """
    base = round2(amount)
    if base <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")

    platform_fee_amount = round2(config.fixed_fee + base * config.pct_fee)
    amount_gross = round2(base + platform_fee_amount)
    superadmin_cut_amount = round2(platform_fee_amount * config.superadmin_cut_pct)

    return FeeBreakdown(
        amount=base,
        platform_fee_amount=platform_fee_amount,
        platform_fee_pct=config.pct_fee,
        platform_fee_fixed=config.fixed_fee,
        amount_gross=amount_gross,
        superadmin_cut_amount=superadmin_cut_amount,
        superadmin_cut_pct=config.superadmin_cut_pct,
    )
