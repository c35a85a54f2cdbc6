from typing import Optional

from pydantic import BaseModel


class ChatSession(BaseModel):
    """
    The authenticated identity a chat operation runs as.

    Built per request from the bearer token; never kept on a service.
    """
    user_id: str
    email: Optional[str] = None
