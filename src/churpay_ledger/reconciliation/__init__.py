"""ITN reconciliation: from an authenticated notification to ledger rows."""

from .models import OutcomeType, ReconciliationOutcome
from .amounts import AmountReconciler
from .resolver import IntentResolver, ResolvedIntent, make_recurring_m_payment_id
from .ledger import LedgerWriter, LedgerResult, church_net
from .subscriptions import SubscriptionStateMachine
from .giving_links import GivingLinkUsageTracker, apply_use
from .service import ItnReconciliationService

__all__ = [
    "OutcomeType",
    "ReconciliationOutcome",
    "AmountReconciler",
    "IntentResolver",
    "ResolvedIntent",
    "make_recurring_m_payment_id",
    "LedgerWriter",
    "LedgerResult",
    "church_net",
    "SubscriptionStateMachine",
    "GivingLinkUsageTracker",
    "apply_use",
    "ItnReconciliationService",
]
