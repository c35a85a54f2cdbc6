from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from roomchat.api.deps import get_chat_service, get_chat_session
from roomchat.core.errors import ChatError, Conflict, InvalidArgument, NotAuthenticated, NotFound
from roomchat.schemas.auth import ChatSession
from roomchat.schemas.chat import (
    GroupRoomCreate,
    MarkReadRequest,
    MarkReadResult,
    Message,
    MessageCreate,
    Room,
    UnreadCount,
)
from roomchat.services.chat_service import ChatService


def to_http_error(exc: ChatError) -> HTTPException:
    if isinstance(exc, NotAuthenticated):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, Conflict):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, InvalidArgument):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


class ChatRouter:
    """
    APIRouter for chat endpoints.
    """

    def __init__(self) -> None:
        self.router = APIRouter(
            prefix="/chat",
            tags=["chat"],
        )
        self._register_routes()

    def _register_routes(self) -> None:
        self.router.post("/direct/{other_user_id}", response_model=Room)(self.open_direct_chat)
        self.router.post("/rooms", response_model=Room)(self.create_group_room)
        self.router.get("/rooms", response_model=List[Room])(self.list_rooms)
        self.router.get("/rooms/{room_id}", response_model=Room)(self.get_room)
        self.router.delete(
            "/rooms/{room_id}/members/me",
            status_code=status.HTTP_204_NO_CONTENT,
            response_class=Response,
        )(self.leave_room)
        self.router.get(
            "/rooms/{room_id}/messages",
            response_model=List[Message],
        )(self.get_messages)
        self.router.post(
            "/rooms/{room_id}/messages",
            response_model=Message,
        )(self.send_message)
        self.router.post("/messages/read", response_model=MarkReadResult)(self.mark_read)
        self.router.get("/unread", response_model=UnreadCount)(self.unread_count)
        self.router.get("/rooms/{room_id}/online", response_model=List[str])(self.online_users)

    async def open_direct_chat(
        self,
        other_user_id: str = Path(..., description="The user to DM"),
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        """
        Get or create the direct (1-1) room between the caller and another user.
        """
        try:
            return await service.create_direct_room(session, other_user_id)
        except ChatError as e:
            raise to_http_error(e)

    async def create_group_room(
        self,
        data: GroupRoomCreate,
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        """
        Create a group room; the caller is always a member.
        """
        try:
            return await service.create_group_room(session, data.name, data.member_ids)
        except ChatError as e:
            raise to_http_error(e)

    async def list_rooms(
        self,
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        """
        List all rooms the caller belongs to, most recently active first.
        """
        try:
            return await service.list_rooms(session)
        except ChatError as e:
            raise to_http_error(e)

    async def get_room(
        self,
        room_id: str,
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        try:
            return await service.get_room(session, room_id)
        except ChatError as e:
            raise to_http_error(e)

    async def leave_room(
        self,
        room_id: str,
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        try:
            await service.leave_room(session, room_id)
        except ChatError as e:
            raise to_http_error(e)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    async def get_messages(
        self,
        room_id: str,
        limit: int = Query(50, ge=1, le=500),
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        """
        Most recent messages of a room, oldest first.
        """
        try:
            return await service.list_messages(session, room_id, limit)
        except ChatError as e:
            raise to_http_error(e)

    async def send_message(
        self,
        room_id: str,
        body: MessageCreate,
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        try:
            return await service.send_message(session, room_id, body.content, body.type)
        except ChatError as e:
            raise to_http_error(e)

    async def mark_read(
        self,
        body: MarkReadRequest,
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        try:
            updated = await service.mark_read(session, body.message_ids)
        except ChatError as e:
            raise to_http_error(e)
        return MarkReadResult(updated=updated)

    async def unread_count(
        self,
        room_id: Optional[str] = None,
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        try:
            count = await service.unread_count(session, room_id)
        except ChatError as e:
            raise to_http_error(e)
        return UnreadCount(room_id=room_id, count=count)

    async def online_users(
        self,
        room_id: str,
        service: ChatService = Depends(get_chat_service),
        session: Optional[ChatSession] = Depends(get_chat_session),
    ):
        """
        Room members as a stand-in for presence; not a live online list.
        """
        try:
            return await service.get_online_users(session, room_id)
        except ChatError as e:
            raise to_http_error(e)
