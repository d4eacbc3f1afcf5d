"""Settings validation tests."""

import pytest
from pydantic import ValidationError

from med_reminders.core.config import Settings


def test_redis_backend_requires_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", "redis")
    monkeypatch.delenv("REDIS_URL", raising=False)
    with pytest.raises(ValidationError, match="REDIS_URL"):
        Settings(_env_file=None)


def test_backend_defaults_follow_redis_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STORE_BACKEND", raising=False)
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    assert Settings(_env_file=None).store_backend == "redis"

    monkeypatch.delenv("REDIS_URL")
    assert Settings(_env_file=None).store_backend == "memory"
