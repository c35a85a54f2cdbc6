from datetime import datetime
from typing import Callable, Iterable, List, Optional, Union

from roomchat.core.clock import format_timestamp, utcnow
from roomchat.core.config import settings
from roomchat.core.errors import Conflict, InvalidArgument
from roomchat.core.logger import get_logger
from roomchat.schemas.chat import MESSAGES_COLLECTION, Message, MessageType
from roomchat.services.room_registry import require_user_ids
from roomchat.store.base import RecordStore

logger = get_logger(__name__)


class MessageStore:
    """
    Appends messages to rooms and keeps their read receipts.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: Optional[int] = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.max_attempts = max_attempts if max_attempts is not None else settings.CONFLICT_MAX_ATTEMPTS

    async def append(
        self,
        room_id: str,
        user_id: str,
        content: str,
        type: Union[MessageType, str] = MessageType.TEXT,
    ) -> Message:
        """
        Persist a new message. The author counts as having read it.

        The caller is responsible for moving the room's activity time forward.
        """
        if not content:
            raise InvalidArgument("Message content must not be empty")
        require_user_ids([user_id])
        if not room_id:
            raise InvalidArgument("Message needs a room id")
        try:
            message_type = MessageType(type)
        except ValueError:
            raise InvalidArgument(f"Unsupported message type: {type!r}")

        logger.debug("Appending %s message to room %s: %s", message_type.value, room_id, content[:50])
        record = await self.store.create(
            MESSAGES_COLLECTION,
            {
                "roomId": room_id,
                "userId": user_id,
                "content": content,
                "type": message_type.value,
                "readBy": [user_id],
                "createdAt": format_timestamp(self.clock()),
            },
        )
        logger.debug("Persisted message id=%s room=%s sender=%s", record["id"], room_id, user_id)
        return Message.from_record(record)

    async def list_messages(self, room_id: str, limit: Optional[int] = None) -> List[Message]:
        """
        The most recent `limit` messages of a room, oldest first.
        """
        if limit is None:
            limit = settings.MESSAGE_PAGE_SIZE
        if limit < 1:
            raise InvalidArgument("limit must be at least 1")

        records = await self.store.find(
            MESSAGES_COLLECTION,
            where={"roomId": room_id},
            order_by={"createdAt": "desc"},
            limit=limit,
        )
        records.reverse()
        return [Message.from_record(r) for r in records]

    async def _mark_one(self, message_id: str, user_id: str) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            record = await self.store.find_one(MESSAGES_COLLECTION, {"id": message_id})
            if record is None:
                logger.debug("Message %s not found; skipping read receipt", message_id)
                return False

            read_by = list(record.get("readBy") or [])
            if user_id in read_by:
                return False

            try:
                await self.store.update(
                    MESSAGES_COLLECTION,
                    message_id,
                    {"readBy": read_by + [user_id]},
                    expected={"readBy": record.get("readBy")},
                )
                return True
            except Conflict:
                logger.debug("Read receipts of message %s changed concurrently (attempt %s)", message_id, attempt)

        raise Conflict(f"Message {message_id} kept changing while marking it read")

    async def mark_read(self, message_ids: Iterable[str], user_id: str) -> List[str]:
        """
        Add `user_id` to the read receipts of each message.

        Messages already read by the user are not written again. A failure on
        one id is logged and the rest of the batch continues.

        Returns the ids that were actually updated.
        """
        require_user_ids([user_id])

        updated: List[str] = []
        for message_id in message_ids:
            try:
                if await self._mark_one(message_id, user_id):
                    updated.append(message_id)
            except Exception:
                logger.warning(
                    "Could not mark message %s read for user %s", message_id, user_id, exc_info=True
                )

        logger.debug("User %s marked %s message(s) read", user_id, len(updated))
        return updated

    async def unread_count(self, user_id: str, room_id: Optional[str] = None) -> int:
        """
        Count messages the user has not read, optionally within one room.
        Scans every matching record; the store offers no server-side count.
        """
        require_user_ids([user_id])
        where = {"readBy": {"$not": {"$contains": user_id}}}
        if room_id is not None:
            where["roomId"] = room_id

        records = await self.store.find(MESSAGES_COLLECTION, where=where)
        return len(records)
