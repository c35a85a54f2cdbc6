from datetime import timedelta
from typing import Optional, Dict, Any

from jose import jwt, JWTError

from roomchat.core.clock import utcnow
from roomchat.core.config import settings
from roomchat.core.logger import get_logger
from roomchat.schemas.auth import ChatSession

logger = get_logger(__name__)


def create_jwt_token(
    subject: str,
    expires_delta: timedelta,
    token_type: str = "access",
    email: Optional[str] = None,
) -> str:
    """
    Create a signed JWT token with subject, expiry, and type.

    Tokens are normally issued by the authentication service; this mirrors
    its format for local tooling and tests.
    """
    expire = utcnow() + expires_delta
    payload: Dict[str, Any] = {
        "sub": subject,
        "exp": expire,
        "type": token_type,
    }
    if email:
        payload["email"] = email
    encoded = jwt.encode(
        payload,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    logger.debug("Created %s token for subject=%s expires=%s", token_type, subject, expire.isoformat())
    return encoded


def decode_jwt_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode a JWT and return its payload if valid, otherwise None.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return payload
    except JWTError as e:
        logger.warning("JWT decode error: %s", str(e))
        return None


def session_from_token(token: str) -> Optional[ChatSession]:
    """
    Turn a bearer access token into a ChatSession, or None if it is invalid,
    expired, of the wrong type or has no subject.
    """
    payload = decode_jwt_token(token)
    if not payload or payload.get("type") != "access":
        logger.warning("Rejected token: invalid or wrong type")
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        logger.warning("Rejected token: missing subject")
        return None

    return ChatSession(user_id=subject, email=payload.get("email"))
