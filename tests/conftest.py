"""Test fixtures for the medication reminder service."""
from __future__ import annotations

import os
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("APP_ENV", "test")
os.environ["STORE_BACKEND"] = "memory"
os.environ.pop("REDIS_URL", None)
os.environ.pop("CRON_SECRET", None)

from med_reminders.core.config import Settings, get_settings
from med_reminders.main import app
from med_reminders.schemas.reminder import DeliveryResult
from med_reminders.services.catalog_service import load_catalog
from med_reminders.services.container import ServiceContainer, build_container
from med_reminders.services.memory_store import InMemoryStore
from med_reminders.services.override_cache import OverrideCache
from med_reminders.services.reminder_service import ReminderGenerator
from med_reminders.services.schedule_service import ScheduleResolver

CATALOG_PATH = Path(__file__).resolve().parents[1] / "med_reminders" / "data" / "medications.yaml"

# 08:30 Pacific on 2026-01-14, day 3 of the bundled catalog.
MORNING_DAY3 = datetime(2026, 1, 14, 16, 30, tzinfo=UTC)


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


class FakeChannel:
    """Outbound channel that records messages instead of sending them."""

    def __init__(
        self,
        name: str = "whatsapp",
        *,
        recipients: tuple[str, ...] = ("+15550001", "+15550002"),
        configured: bool = True,
    ) -> None:
        self.name = name
        self.recipients = recipients
        self._configured = configured
        self.sent: list[str] = []
        self.failing: set[str] = set()
        self.fail_all = False

    @property
    def configured(self) -> bool:
        return self._configured

    async def send(self, message: str) -> list[DeliveryResult]:
        self.sent.append(message)
        results = []
        for recipient in self.recipients:
            ok = not self.fail_all and recipient not in self.failing
            results.append(
                DeliveryResult(
                    channel=self.name,
                    recipient=recipient,
                    success=ok,
                    message_id=f"SM{len(self.sent)}" if ok else None,
                    error=None if ok else "rejected",
                )
            )
        return results


@pytest.fixture()
def tz() -> ZoneInfo:
    return ZoneInfo("America/Los_Angeles")


@pytest.fixture()
def catalog():
    return load_catalog(CATALOG_PATH)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(MORNING_DAY3)


@pytest.fixture()
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture()
def store(clock: FakeClock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture()
def resolver(catalog, store: InMemoryStore, tz: ZoneInfo, monotonic: FakeMonotonic):
    return ScheduleResolver(
        catalog, store, tz=tz, cache=OverrideCache(ttl_seconds=300, clock=monotonic)
    )


@pytest.fixture()
def generator(resolver: ScheduleResolver) -> ReminderGenerator:
    return ReminderGenerator(resolver)


@pytest.fixture()
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture()
def settings() -> Settings:
    get_settings.cache_clear()
    return get_settings().model_copy(update={"dispatch_delay_seconds": 0.0})


@pytest.fixture()
def container(
    settings: Settings,
    catalog,
    store: InMemoryStore,
    channel: FakeChannel,
    clock: FakeClock,
) -> ServiceContainer:
    return build_container(settings, catalog, store=store, channels=[channel], clock=clock)


@pytest_asyncio.fixture()
async def client(container: ServiceContainer) -> AsyncIterator[AsyncClient]:
    """Yield an async client bound to the app with test services installed."""
    app.state.services = container
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    del app.state.services
