from datetime import datetime
from typing import Callable, Iterable, List, Optional, Union

from roomchat.core.clock import utcnow
from roomchat.core.errors import NotAuthenticated, NotFound
from roomchat.core.logger import get_logger
from roomchat.notifications.notifier import Notifier, StoreNotifier
from roomchat.schemas.auth import ChatSession
from roomchat.schemas.chat import Message, MessageType, Room
from roomchat.services.message_store import MessageStore
from roomchat.services.notification_fanout import NotificationFanout
from roomchat.services.room_registry import RoomRegistry
from roomchat.store.base import RecordStore

logger = get_logger(__name__)


def _require_session(session: Optional[ChatSession]) -> str:
    if session is None or not session.user_id:
        raise NotAuthenticated("Not authenticated")
    return session.user_id


class ChatService:
    """
    Entry point for chat operations.

    Every call takes the caller's ChatSession explicitly; the service keeps
    no per-user state, so one instance serves any number of sessions.
    """

    def __init__(
        self,
        rooms: RoomRegistry,
        messages: MessageStore,
        fanout: NotificationFanout,
    ) -> None:
        self.rooms = rooms
        self.messages = messages
        self.fanout = fanout

    @classmethod
    def from_store(
        cls,
        store: RecordStore,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "ChatService":
        """
        Wire the registry, message store and fan-out over one record store.
        Notifications go to the store's outbox unless a notifier is given.
        """
        return cls(
            rooms=RoomRegistry(store, clock=clock),
            messages=MessageStore(store, clock=clock),
            fanout=NotificationFanout(notifier or StoreNotifier(store, clock=clock)),
        )

    async def create_direct_room(self, session: Optional[ChatSession], other_user_id: str) -> Room:
        user_id = _require_session(session)
        return await self.rooms.create_direct_room(user_id, other_user_id)

    async def create_group_room(
        self,
        session: Optional[ChatSession],
        name: str,
        member_ids: Iterable[str],
    ) -> Room:
        user_id = _require_session(session)
        return await self.rooms.create_group_room(user_id, name, member_ids)

    async def get_room(self, session: Optional[ChatSession], room_id: str) -> Room:
        _require_session(session)
        return await self.rooms.get_room(room_id)

    async def list_rooms(self, session: Optional[ChatSession]) -> List[Room]:
        user_id = _require_session(session)
        return await self.rooms.list_rooms(user_id)

    async def leave_room(self, session: Optional[ChatSession], room_id: str) -> Optional[Room]:
        user_id = _require_session(session)
        return await self.rooms.leave_room(room_id, user_id)

    async def send_message(
        self,
        session: Optional[ChatSession],
        room_id: str,
        content: str,
        type: Union[MessageType, str] = MessageType.TEXT,
    ) -> Message:
        """
        Append a message, bump the room's activity time and notify the other
        members. Notification failures never fail the send. If the room is
        deleted between the lookup and the activity update, the stored
        message is returned without notifying anyone.
        """
        sender_id = _require_session(session)
        room = await self.rooms.get_room(room_id)

        message = await self.messages.append(room.id, sender_id, content, type)
        try:
            room = await self.rooms.touch_last_activity(room.id, message.created_at)
        except NotFound:
            # the last member left after the lookup; the message stays stored
            logger.warning("Room %s was deleted while message %s was sent; skipping fan-out", room.id, message.id)
            return message
        await self.fanout.notify_new_message(room, message, sender_id)

        logger.info("User %s sent message %s to room %s", sender_id, message.id, room.id)
        return message

    async def list_messages(
        self,
        session: Optional[ChatSession],
        room_id: str,
        limit: Optional[int] = None,
    ) -> List[Message]:
        _require_session(session)
        room = await self.rooms.get_room(room_id)
        return await self.messages.list_messages(room.id, limit)

    async def mark_read(self, session: Optional[ChatSession], message_ids: Iterable[str]) -> List[str]:
        user_id = _require_session(session)
        return await self.messages.mark_read(message_ids, user_id)

    async def unread_count(self, session: Optional[ChatSession], room_id: Optional[str] = None) -> int:
        user_id = _require_session(session)
        return await self.messages.unread_count(user_id, room_id)

    async def get_online_users(self, session: Optional[ChatSession], room_id: str) -> List[str]:
        """
        Placeholder for presence: returns the room's members as they are.
        There is no heartbeat, so this says nothing about who is connected.
        """
        _require_session(session)
        room = await self.rooms.get_room(room_id)
        return list(room.members)
