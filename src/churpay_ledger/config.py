"""Runtime configuration loaded from the environment."""

import os
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM_FEE_FIXED = Decimal("2.50")
DEFAULT_PLATFORM_FEE_PCT = Decimal("0.0075")
DEFAULT_SUPERADMIN_CUT_PCT = Decimal("1.0")


def _read_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if not value.is_finite():
        logger.warning(f"Ignoring non-finite {name}={raw!r}, using {default}")
        return default
    return value


def _read_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class FeeConfig:
    """Platform fee rates.

    Loaded once and passed explicitly to the fee calculator so a stored
    snapshot never depends on whatever the environment says later.
    """
    fixed_fee: Decimal = DEFAULT_PLATFORM_FEE_FIXED
    pct_fee: Decimal = DEFAULT_PLATFORM_FEE_PCT
    superadmin_cut_pct: Decimal = DEFAULT_SUPERADMIN_CUT_PCT

    @classmethod
    def from_env(cls) -> "FeeConfig":
        return cls(
            fixed_fee=_read_decimal("PLATFORM_FEE_FIXED", DEFAULT_PLATFORM_FEE_FIXED),
            pct_fee=_read_decimal("PLATFORM_FEE_PCT", DEFAULT_PLATFORM_FEE_PCT),
            superadmin_cut_pct=_read_decimal("SUPERADMIN_CUT_PCT", DEFAULT_SUPERADMIN_CUT_PCT),
        )


@dataclass(frozen=True)
class ItnSettings:
    """Settings for the PayFast ITN endpoint."""
    passphrase: str = ""
    debug: bool = False
    merchant_id: Optional[str] = None
    fees: FeeConfig = field(default_factory=FeeConfig)

    @classmethod
    def from_env(cls) -> "ItnSettings":
        return cls(
            passphrase=os.getenv("PAYFAST_PASSPHRASE", "").strip(),
            debug=_read_flag("PAYFAST_DEBUG"),
            merchant_id=os.getenv("PAYFAST_MERCHANT_ID", "").strip() or None,
            fees=FeeConfig.from_env(),
        )


@lru_cache(maxsize=1)
def get_settings() -> ItnSettings:
    """Return process-wide settings, read from the environment on first use."""
    settings = ItnSettings.from_env()
    logger.info(
        f"Loaded ITN settings: merchant_id={settings.merchant_id or 'any'}, "
        f"passphrase_present={bool(settings.passphrase)}, debug={settings.debug}"
    )
    return settings
