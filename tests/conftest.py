import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

import pytest

# settings are read at import time and the secret has no default
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from roomchat.notifications.notifier import Notifier
from roomchat.schemas.auth import ChatSession
from roomchat.services.chat_service import ChatService
from roomchat.store.memory import InMemoryRecordStore

pytest_plugins = ('pytest_asyncio',)


@pytest.fixture(autouse=True)
def suppress_logging(monkeypatch):
    """Lower logging during tests to reduce noise."""
    import logging
    logging.getLogger().setLevel(logging.WARNING)
    yield


class FakeClock:
    """Returns a strictly increasing time on every call."""

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class RecordingNotifier(Notifier):
    """Notifier that remembers every call; optionally fails for some users."""

    def __init__(self, fail_for: Optional[List[str]] = None):
        self.sent: List[Dict[str, Any]] = []
        self.fail_for = set(fail_for or [])

    async def send(
        self,
        user_id: str,
        type: str,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        if user_id in self.fail_for:
            raise RuntimeError(f"delivery to {user_id} failed")
        self.sent.append(
            {"user_id": user_id, "type": type, "message": message, "metadata": dict(metadata or {})}
        )
        return {"id": f"n{len(self.sent)}"}


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(store, notifier, clock):
    return ChatService.from_store(store, notifier=notifier, clock=clock)


@pytest.fixture
def u1():
    return ChatSession(user_id="u1", email="u1@example.com")


@pytest.fixture
def u2():
    return ChatSession(user_id="u2", email="u2@example.com")


@pytest.fixture
def u3():
    return ChatSession(user_id="u3")
