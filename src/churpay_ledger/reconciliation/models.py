"""Result models for ITN reconciliation."""

import enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field


class OutcomeType(str, enum.Enum):
    """What a notification did to the ledger."""
    RECORDED = "recorded"
    ALREADY_PROCESSED = "already_processed"
    MARKED_FAILED = "marked_failed"
    MARKED_CANCELLED = "marked_cancelled"
    IGNORED = "ignored"


class ReconciliationOutcome(BaseModel):
    """Summary of one processed notification."""
    outcome: OutcomeType
    m_payment_id: Optional[str] = Field(None, description="Correlation id of the resolved intent")
    payment_intent_id: Optional[str] = None
    transaction_id: Optional[str] = None
    recurring_giving_id: Optional[str] = None
    intent_created: bool = Field(default=False, description="Intent was synthesized for a recurring cycle")

    def to_log_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True, mode="json")
