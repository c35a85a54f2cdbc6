from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeClock
from roomchat.core.errors import Conflict, InvalidArgument, NotFound
from roomchat.schemas.chat import ROOMS_COLLECTION, RoomKind
from roomchat.services.room_registry import RoomRegistry
from roomchat.store.memory import InMemoryRecordStore


class InterferingStore(InMemoryRecordStore):
    """Runs a one-shot hook right before the next write, simulating a concurrent client."""

    def __init__(self):
        super().__init__()
        self.before_write = None

    async def _fire(self):
        if self.before_write is not None:
            hook, self.before_write = self.before_write, None
            await hook()

    async def update(self, collection, record_id, partial, expected=None):
        await self._fire()
        return await super().update(collection, record_id, partial, expected)

    async def delete(self, collection, record_id, expected=None):
        await self._fire()
        return await super().delete(collection, record_id, expected)


class AlwaysConflictingStore(InMemoryRecordStore):
    async def update(self, collection, record_id, partial, expected=None):
        raise Conflict("busy")


@pytest.fixture
def registry(store, clock):
    return RoomRegistry(store, clock=clock)


@pytest.mark.asyncio
async def test_direct_room_is_idempotent_regardless_of_order(registry, store):
    first = await registry.create_direct_room("u1", "u2")
    second = await registry.create_direct_room("u2", "u1")

    assert first.id == second.id
    assert first.kind == RoomKind.DIRECT
    assert first.members == ["u1", "u2"]
    assert first.name == ""
    assert len(await store.find(ROOMS_COLLECTION)) == 1


@pytest.mark.asyncio
async def test_direct_room_distinct_pairs_get_distinct_rooms(registry):
    a = await registry.create_direct_room("u1", "u2")
    b = await registry.create_direct_room("u1", "u3")
    assert a.id != b.id


@pytest.mark.asyncio
async def test_direct_room_rejects_self_and_empty_ids(registry):
    with pytest.raises(InvalidArgument):
        await registry.create_direct_room("u1", "u1")
    with pytest.raises(InvalidArgument):
        await registry.create_direct_room("u1", "")
    with pytest.raises(InvalidArgument):
        await registry.create_direct_room(None, "u2")


@pytest.mark.asyncio
async def test_direct_room_timestamps_start_equal(registry):
    room = await registry.create_direct_room("u1", "u2")
    assert room.created_at == room.last_message_at
    assert room.version == 0


@pytest.mark.asyncio
async def test_group_room_includes_creator_and_dedupes(registry):
    room = await registry.create_group_room("u1", "Team", ["u2", "u1", "u3", "u2"])

    assert room.kind == RoomKind.GROUP
    assert room.name == "Team"
    assert room.members == ["u1", "u2", "u3"]


@pytest.mark.asyncio
async def test_group_room_of_one_and_duplicate_names(registry):
    solo = await registry.create_group_room("u1", "Notes", [])
    other = await registry.create_group_room("u1", "Notes", [])

    assert solo.members == ["u1"]
    assert solo.id != other.id


@pytest.mark.asyncio
async def test_group_room_rejects_malformed_member(registry):
    with pytest.raises(InvalidArgument):
        await registry.create_group_room("u1", "Team", ["u2", " "])


@pytest.mark.asyncio
async def test_list_rooms_most_recent_first(registry):
    older = await registry.create_group_room("u1", "older", ["u2"])
    newer = await registry.create_group_room("u1", "newer", ["u3"])
    await registry.create_group_room("u9", "not mine", [])

    rooms = await registry.list_rooms("u1")
    assert [r.id for r in rooms] == [newer.id, older.id]

    await registry.touch_last_activity(older.id, datetime(2030, 1, 1, tzinfo=timezone.utc))
    rooms = await registry.list_rooms("u1")
    assert [r.id for r in rooms] == [older.id, newer.id]


@pytest.mark.asyncio
async def test_leave_shrinks_then_deletes(registry, store):
    room = await registry.create_group_room("u1", "g", ["u2", "u3"])

    after = await registry.leave_room(room.id, "u2")
    assert after.members == ["u1", "u3"]
    assert after.version == 1

    assert (await registry.leave_room(room.id, "u1")).members == ["u3"]
    assert await registry.leave_room(room.id, "u3") is None

    assert await store.find(ROOMS_COLLECTION) == []
    with pytest.raises(NotFound):
        await registry.get_room(room.id)


@pytest.mark.asyncio
async def test_leave_missing_room_raises_not_found(registry):
    with pytest.raises(NotFound):
        await registry.leave_room("nope", "u1")


@pytest.mark.asyncio
async def test_leave_by_non_member_writes_nothing(registry):
    room = await registry.create_group_room("u1", "g", ["u2"])
    same = await registry.leave_room(room.id, "u7")

    assert same.members == ["u1", "u2"]
    assert same.version == 0


@pytest.mark.asyncio
async def test_leaving_direct_room_keeps_it_for_remaining_member(registry):
    room = await registry.create_direct_room("u1", "u2")
    after = await registry.leave_room(room.id, "u1")

    assert after.members == ["u2"]
    fresh = await registry.create_direct_room("u1", "u2")
    assert fresh.id != room.id


@pytest.mark.asyncio
async def test_concurrent_leave_is_not_lost(clock):
    store = InterferingStore()
    registry = RoomRegistry(store, clock=clock)
    room = await registry.create_group_room("u1", "g", ["u2", "u3"])

    async def u3_leaves():
        await registry.leave_room(room.id, "u3")

    store.before_write = u3_leaves
    after = await registry.leave_room(room.id, "u2")

    assert after.members == ["u1"]
    assert after.version == 2


@pytest.mark.asyncio
async def test_leave_gives_up_after_max_attempts(clock):
    store = AlwaysConflictingStore()
    registry = RoomRegistry(store, clock=clock, max_attempts=2)
    room = await registry.create_group_room("u1", "g", ["u2"])

    with pytest.raises(Conflict):
        await registry.leave_room(room.id, "u2")


@pytest.mark.asyncio
async def test_touch_last_activity_is_monotonic(registry):
    room = await registry.create_group_room("u1", "g", [])
    later = room.last_message_at + timedelta(minutes=5)

    touched = await registry.touch_last_activity(room.id, later)
    assert touched.last_message_at == later

    untouched = await registry.touch_last_activity(room.id, later - timedelta(minutes=1))
    assert untouched.last_message_at == later


@pytest.mark.asyncio
async def test_touch_last_activity_on_missing_room(registry):
    with pytest.raises(NotFound):
        await registry.touch_last_activity("nope", datetime.now(timezone.utc))


@pytest.mark.asyncio
async def test_clock_drives_created_at():
    clock = FakeClock(start=datetime(2025, 5, 5, tzinfo=timezone.utc))
    registry = RoomRegistry(InMemoryRecordStore(), clock=clock)
    room = await registry.create_group_room("u1", "g", [])
    assert room.created_at == datetime(2025, 5, 5, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_explicit_zero_attempts_is_not_replaced_by_default(store, clock):
    registry = RoomRegistry(store, clock=clock, max_attempts=0)
    room = await registry.create_group_room("u1", "g", ["u2"])

    with pytest.raises(Conflict):
        await registry.leave_room(room.id, "u2")
    assert (await registry.get_room(room.id)).members == ["u1", "u2"]
