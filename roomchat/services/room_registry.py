from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from roomchat.core.clock import format_timestamp, utcnow
from roomchat.core.config import settings
from roomchat.core.errors import Conflict, InvalidArgument, NotFound
from roomchat.core.logger import get_logger
from roomchat.schemas.chat import ROOMS_COLLECTION, Room, RoomKind
from roomchat.store.base import RecordStore

logger = get_logger(__name__)


def require_user_ids(user_ids: Iterable[Any]) -> None:
    for uid in user_ids:
        if not isinstance(uid, str) or not uid.strip():
            raise InvalidArgument(f"Malformed user id: {uid!r}")


class RoomRegistry:
    """
    Owns the `chat_rooms` collection: creation, lookup, membership and
    teardown of direct and group rooms.
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

    def _new_room(self, name: str, kind: RoomKind, members: List[str]) -> Dict[str, Any]:
        now = format_timestamp(self.clock())
        return {
            "name": name,
            "kind": kind.value,
            "members": members,
            "createdAt": now,
            "lastMessageAt": now,
            "version": 0,
        }

    async def _get_record(self, room_id: str) -> Dict[str, Any]:
        if not isinstance(room_id, str) or not room_id:
            raise InvalidArgument(f"Malformed room id: {room_id!r}")
        record = await self.store.find_one(ROOMS_COLLECTION, {"id": room_id})
        if record is None:
            raise NotFound(f"Room {room_id} not found")
        return record

    async def create_direct_room(self, self_id: str, other_id: str) -> Room:
        """
        Get the DIRECT room between two users, or create it.

        The pair is sorted first so (a, b) and (b, a) resolve to one room.
        """
        require_user_ids([self_id, other_id])
        if self_id == other_id:
            raise InvalidArgument("Cannot start a direct chat with yourself")

        members = sorted([self_id, other_id])

        existing = await self.store.find_one(
            ROOMS_COLLECTION,
            {"kind": RoomKind.DIRECT.value, "members": members},
        )
        if existing is not None:
            logger.info("Found existing direct room id=%s for users %s", existing["id"], members)
            return Room.from_record(existing)

        # TODO: two first-time creations for the same pair can race past the
        # lookup above; needs a unique key on the pair once the store has one.
        record = await self.store.create(
            ROOMS_COLLECTION,
            self._new_room("", RoomKind.DIRECT, members),
        )
        logger.info("Created new direct room id=%s for users %s", record["id"], members)
        return Room.from_record(record)

    async def create_group_room(self, self_id: str, name: str, member_ids: Iterable[str]) -> Room:
        """
        Create a GROUP room. The creator is always the first member; duplicate
        ids are dropped keeping first occurrence.
        """
        candidates = [self_id, *member_ids]
        require_user_ids(candidates)

        members = list(dict.fromkeys(candidates))
        if not members:
            raise InvalidArgument("Group room needs at least one member")

        record = await self.store.create(
            ROOMS_COLLECTION,
            self._new_room(name, RoomKind.GROUP, members),
        )
        logger.info("Created group room id=%s name=%r members=%s", record["id"], name, members)
        return Room.from_record(record)

    async def get_room(self, room_id: str) -> Room:
        return Room.from_record(await self._get_record(room_id))

    async def list_rooms(self, user_id: str) -> List[Room]:
        """
        All rooms the user belongs to, most recently active first.
        """
        require_user_ids([user_id])
        records = await self.store.find(
            ROOMS_COLLECTION,
            where={"members": {"$contains": user_id}},
            order_by={"lastMessageAt": "desc"},
        )
        return [Room.from_record(r) for r in records]

    async def leave_room(self, room_id: str, user_id: str) -> Optional[Room]:
        """
        Remove `user_id` from the room; delete the room when nobody is left.

        Writes are conditioned on the `version` that was read. A concurrent
        membership change makes the write fail with Conflict, in which case
        the room is re-read and the removal applied again.

        Returns the updated room, or None if the room was deleted.
        """
        require_user_ids([user_id])

        for attempt in range(1, self.max_attempts + 1):
            record = await self._get_record(room_id)
            members = list(record.get("members") or [])
            if user_id not in members:
                logger.info("User %s is not a member of room %s; nothing to leave", user_id, room_id)
                return Room.from_record(record)

            remaining = [uid for uid in members if uid != user_id]
            version = record.get("version")

            try:
                if not remaining:
                    await self.store.delete(ROOMS_COLLECTION, room_id, expected={"version": version})
                    logger.info("Room %s deleted after last member %s left", room_id, user_id)
                    return None

                updated = await self.store.update(
                    ROOMS_COLLECTION,
                    room_id,
                    {"members": remaining, "version": (version or 0) + 1},
                    expected={"version": version},
                )
            except Conflict:
                logger.warning(
                    "Concurrent membership change on room %s (attempt %s/%s)",
                    room_id, attempt, self.max_attempts,
                )
                continue

            logger.info("User %s left room %s (remaining=%s)", user_id, room_id, len(remaining))
            return Room.from_record(updated)

        raise Conflict(f"Room {room_id} kept changing while user {user_id} was leaving")

    async def touch_last_activity(self, room_id: str, timestamp: datetime) -> Room:
        """
        Move `lastMessageAt` forward to `timestamp`. Older timestamps are ignored.
        """
        stamp = format_timestamp(timestamp)

        for attempt in range(1, self.max_attempts + 1):
            record = await self._get_record(room_id)
            current = record.get("lastMessageAt")
            if current is not None and current >= stamp:
                logger.debug("Room %s already active at %s; ignoring %s", room_id, current, stamp)
                return Room.from_record(record)

            try:
                updated = await self.store.update(
                    ROOMS_COLLECTION,
                    room_id,
                    {"lastMessageAt": stamp},
                    expected={"lastMessageAt": current},
                )
            except Conflict:
                logger.debug("lastMessageAt of room %s moved concurrently (attempt %s)", room_id, attempt)
                continue
            return Room.from_record(updated)

        raise Conflict(f"Room {room_id} kept changing while updating its activity time")
