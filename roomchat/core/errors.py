"""
Errors raised by the chat core.

Routers map them to HTTP status codes; everything else lets them propagate.
"""


class ChatError(Exception):
    """Base class for every error the chat core raises on purpose."""


class NotAuthenticated(ChatError):
    """An operation that needs a session was called without one."""


class InvalidArgument(ChatError, ValueError):
    """Empty content, empty member set, malformed ids or query operators."""


class NotFound(ChatError, LookupError):
    """A room or record id is absent from the store."""


class Conflict(ChatError):
    """A conditional write found the record changed since it was read."""
