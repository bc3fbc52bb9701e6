"""Fire-and-forget member notifications raised by the ledger."""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .database import Notification, session_scope

logger = logging.getLogger(__name__)

GIVING_LINK_PAID = "GIVING_LINK_PAID"


class Notifier(ABC):
    """Delivers in-app notifications. Delivery itself lives elsewhere."""

    @abstractmethod
    async def create_notification(
        self,
        member_id: str,
        type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Queue one notification for ``member_id``."""
        pass


class LoggingNotifier(Notifier):
    """Writes notifications to the log only."""

    async def create_notification(
        self,
        member_id: str,
        type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        logger.info(f"Notification {type} for member {member_id}: {title} - {body}")


class DatabaseNotifier(Notifier):
    """Stores notifications in the ``notifications`` table, in its own transaction."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_factory = session_factory

    async def create_notification(
        self,
        member_id: str,
        type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        async with session_scope(self.session_factory) as session:
            notification = Notification(member_id=member_id, type=type, title=title, body=body)
            notification.data = data
            session.add(notification)
        logger.info(f"Stored {type} notification for member {member_id}")
