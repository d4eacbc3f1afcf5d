"""Tests for the override read-through cache."""

from __future__ import annotations

import pytest

from med_reminders.core.slots import Frequency
from med_reminders.schemas.medication import ScheduleOverride
from med_reminders.services.override_cache import OverrideCache
from med_reminders.services.store import StoreUnavailableError

pytestmark = pytest.mark.asyncio


class CountingLoader:
    def __init__(self, value: ScheduleOverride | None = None) -> None:
        self.value = value
        self.calls = 0

    async def __call__(self, medication_id: str) -> ScheduleOverride | None:
        self.calls += 1
        return self.value


async def test_entries_are_reused_within_ttl(monotonic) -> None:
    cache = OverrideCache(ttl_seconds=300, clock=monotonic)
    loader = CountingLoader(ScheduleOverride(frequency=Frequency.ONCE_DAILY))

    first = await cache.get("a", loader)
    monotonic.value = 299
    second = await cache.get("a", loader)

    assert first == second
    assert loader.calls == 1


async def test_stale_entries_are_refetched(monotonic) -> None:
    cache = OverrideCache(ttl_seconds=300, clock=monotonic)
    loader = CountingLoader()

    assert await cache.get("a", loader) is None
    loader.value = ScheduleOverride(active=False)
    monotonic.value = 300
    refreshed = await cache.get("a", loader)

    assert refreshed is not None and refreshed.active is False
    assert loader.calls == 2


async def test_invalidate_single_and_all(monotonic) -> None:
    cache = OverrideCache(clock=monotonic)
    loader = CountingLoader()
    await cache.get("a", loader)
    await cache.get("b", loader)
    assert len(cache) == 2

    cache.invalidate("a")
    assert len(cache) == 1
    await cache.get("a", loader)
    assert loader.calls == 3

    cache.invalidate()
    assert len(cache) == 0


async def test_loader_errors_propagate_and_are_not_cached(monotonic) -> None:
    cache = OverrideCache(clock=monotonic)

    async def failing(medication_id: str):
        raise StoreUnavailableError("down")

    with pytest.raises(StoreUnavailableError):
        await cache.get("a", failing)
    assert len(cache) == 0
