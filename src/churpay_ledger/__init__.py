"""Churpay ledger: PayFast ITN reconciliation for church giving."""

__version__ = "0.1.0"

from .config import FeeConfig, ItnSettings, get_settings
from .errors import (
    ReconciliationError,
    AuthenticationError,
    ValidationError,
    NotFoundError,
    ConflictAlreadyProcessed,
    TransientInfrastructureError,
)
from .fees import FeeBreakdown, calculate_fees, round2

__all__ = [
    "__version__",
    "FeeConfig",
    "ItnSettings",
    "get_settings",
    "ReconciliationError",
    "AuthenticationError",
    "ValidationError",
    "NotFoundError",
    "ConflictAlreadyProcessed",
    "TransientInfrastructureError",
    "FeeBreakdown",
    "calculate_fees",
    "round2",
]
