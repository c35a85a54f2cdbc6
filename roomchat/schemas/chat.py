from datetime import datetime
from typing import Any, Dict, List, Optional
import enum

from pydantic import BaseModel, Field


ROOMS_COLLECTION = "chat_rooms"
MESSAGES_COLLECTION = "messages"


class RoomKind(str, enum.Enum):
    DIRECT = "direct"
    GROUP = "group"


class MessageType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class Room(BaseModel):
    """A chat room as stored in the `chat_rooms` collection."""
    id: str
    name: str = ""
    kind: RoomKind
    members: List[str]
    created_at: datetime = Field(alias="createdAt")
    last_message_at: datetime = Field(alias="lastMessageAt")
    version: int = 0

    class Config:
        populate_by_name = True

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Room":
        return cls.model_validate(record)


class Message(BaseModel):
    """A chat message as stored in the `messages` collection."""
    id: str
    room_id: str = Field(alias="roomId")
    user_id: str = Field(alias="userId")
    content: str
    type: MessageType = MessageType.TEXT
    read_by: List[str] = Field(alias="readBy")
    created_at: datetime = Field(alias="createdAt")

    class Config:
        populate_by_name = True

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Message":
        return cls.model_validate(record)


class GroupRoomCreate(BaseModel):
    """Payload to create a group room."""
    name: str = ""
    member_ids: List[str] = []


class MessageCreate(BaseModel):
    """Body for sending a message into a room."""
    content: str
    type: MessageType = MessageType.TEXT


class MarkReadRequest(BaseModel):
    message_ids: List[str]


class MarkReadResult(BaseModel):
    updated: List[str]


class UnreadCount(BaseModel):
    room_id: Optional[str] = None
    count: int
