"""
Outbound notification contract and the store-backed outbox implementation.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional
from datetime import datetime

from roomchat.core.clock import format_timestamp, utcnow
from roomchat.core.errors import InvalidArgument
from roomchat.core.logger import get_logger
from roomchat.store.base import RecordStore

logger = get_logger(__name__)

NOTIFICATIONS_COLLECTION = "notifications"
NOTIFICATION_TYPES = ("push", "email", "sms")


class Notifier(ABC):
    """Fire-and-forget delivery of a message to one user."""

    @abstractmethod
    async def send(
        self,
        user_id: str,
        type: str,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Queue a notification and return `{"id": ...}`."""


class StoreNotifier(Notifier):
    """
    Writes each notification into the `notifications` collection.

    A separate delivery worker drains that collection; transport is not
    handled here.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.clock = clock

    async def send(
        self,
        user_id: str,
        type: str,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        if type not in NOTIFICATION_TYPES:
            raise InvalidArgument(f"Unsupported notification type: {type}")

        record = await self.store.create(
            NOTIFICATIONS_COLLECTION,
            {
                "userId": user_id,
                "type": type,
                "message": message,
                "metadata": dict(metadata or {}),
                "createdAt": format_timestamp(self.clock()),
            },
        )
        logger.debug("Queued %s notification id=%s for user=%s", type, record["id"], user_id)
        return {"id": record["id"]}
