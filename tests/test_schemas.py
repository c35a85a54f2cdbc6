"""
Unit tests for the chat schemas and their store representation.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from roomchat.core.clock import format_timestamp
from roomchat.schemas.auth import ChatSession
from roomchat.schemas.chat import MessageCreate, MessageType, Room, RoomKind


def test_room_from_store_record():
    room = Room.from_record(
        {
            "id": "r1",
            "name": "",
            "kind": "direct",
            "members": ["u1", "u2"],
            "createdAt": "2024-01-01T00:00:00.000000Z",
            "lastMessageAt": "2024-01-01T00:00:05.000000Z",
        }
    )
    assert room.kind == RoomKind.DIRECT
    assert room.version == 0
    assert room.last_message_at == datetime(2024, 1, 1, 0, 0, 5, tzinfo=timezone.utc)


def test_message_rejects_unknown_type():
    with pytest.raises(ValidationError):
        MessageCreate(content="hi", type="video")


def test_message_create_defaults_to_text():
    assert MessageCreate(content="hi").type == MessageType.TEXT


def test_format_timestamp_is_fixed_width():
    whole = format_timestamp(datetime(2024, 1, 1, tzinfo=timezone.utc))
    naive = format_timestamp(datetime(2024, 1, 1, 0, 0, 0, 1))
    assert len(whole) == len(naive)
    assert whole < naive


def test_chat_session_email_optional():
    assert ChatSession(user_id="u1").email is None
