"""Short-lived read-through cache for schedule overrides."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from med_reminders.schemas.medication import ScheduleOverride

OverrideLoader = Callable[[str], Awaitable[ScheduleOverride | None]]


@dataclass(slots=True)
class _Entry:
    value: ScheduleOverride | None
    loaded_at: float


class OverrideCache:
    """Caches override lookups per medication id for ``ttl_seconds``.

    Absent overrides are cached as ``None`` too. The cache is never the source
    of truth; loader failures propagate and leave the cache untouched.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def _fresh(self, entry: _Entry) -> bool:
        return self._clock() - entry.loaded_at < self._ttl

    async def get(self, medication_id: str, loader: OverrideLoader) -> ScheduleOverride | None:
        entry = self._entries.get(medication_id)
        if entry is not None and self._fresh(entry):
            return entry.value
        value = await loader(medication_id)
        self._entries[medication_id] = _Entry(value=value, loaded_at=self._clock())
        return value

    def invalidate(self, medication_id: str | None = None) -> None:
        if medication_id is None:
            self._entries.clear()
        else:
            self._entries.pop(medication_id, None)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["OverrideCache", "OverrideLoader"]
