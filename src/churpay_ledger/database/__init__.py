"""Persistence layer: models, sessions and repositories."""

from .models import (
    Base,
    Church,
    Fund,
    PaymentIntent,
    Transaction,
    RecurringGiving,
    GivingLink,
    Notification,
    PaymentIntentStatus,
    IntentSource,
    RecurringGivingStatus,
    RecurringFrequency,
    GivingLinkStatus,
    AmountType,
)
from .session import (
    get_database_url,
    is_memory_sqlite,
    create_async_engine,
    make_session_factory,
    get_session_factory,
    create_tables,
    init_db,
    close_db,
    session_scope,
    get_db,
)
from .repository import (
    PaymentIntentRepository,
    TransactionRepository,
    RecurringGivingRepository,
    GivingLinkRepository,
    FundRepository,
)

__all__ = [
    # Models
    "Base",
    "Church",
    "Fund",
    "PaymentIntent",
    "Transaction",
    "RecurringGiving",
    "GivingLink",
    "Notification",
    "PaymentIntentStatus",
    "IntentSource",
    "RecurringGivingStatus",
    "RecurringFrequency",
    "GivingLinkStatus",
    "AmountType",
    # Session management
    "get_database_url",
    "is_memory_sqlite",
    "create_async_engine",
    "make_session_factory",
    "get_session_factory",
    "create_tables",
    "init_db",
    "close_db",
    "session_scope",
    "get_db",
    # Repositories
    "PaymentIntentRepository",
    "TransactionRepository",
    "RecurringGivingRepository",
    "GivingLinkRepository",
    "FundRepository",
]
