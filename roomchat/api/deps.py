from typing import Optional

from fastapi import Header, Request

from roomchat.core.logger import get_logger
from roomchat.schemas.auth import ChatSession
from roomchat.security.security import session_from_token
from roomchat.services.chat_service import ChatService

logger = get_logger(__name__)


async def get_chat_session(
    authorization: Optional[str] = Header(default=None),
) -> Optional[ChatSession]:
    """
    Extract the session from `Authorization: Bearer <token>`.

    Returns None when the header is missing or the token is unusable; the
    chat service turns that into NotAuthenticated.
    """
    if not authorization or not authorization.startswith("Bearer "):
        logger.debug("Missing or malformed Authorization header")
        return None

    token = authorization.split(" ", 1)[1].strip()
    return session_from_token(token)


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service
