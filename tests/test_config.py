import pytest
from pydantic import ValidationError

from roomchat.core.config import Settings


def test_jwt_secret_is_required(monkeypatch):
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)
    assert "JWT_SECRET_KEY" in str(exc_info.value)


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", "from-env")
    monkeypatch.setenv("MESSAGE_PAGE_SIZE", "20")

    settings = Settings(_env_file=None)

    assert settings.JWT_SECRET_KEY == "from-env"
    assert settings.MESSAGE_PAGE_SIZE == 20
    assert settings.NOTIFICATION_PREVIEW_LENGTH == 50
