"""Pending-reminder store contract and backend selection.

Every runtime fact shared between invocations (the pending set, slot claims,
confirmation records and schedule overrides) lives behind these protocols.
Two implementations exist: :class:`~med_reminders.services.redis_store.RedisStore`
for deployments and :class:`~med_reminders.services.memory_store.InMemoryStore`
for local development and tests. The backend is chosen once at startup by
:func:`build_store`.

Operations that read then write (``add_pending``, ``remove_from_pending``,
``mark_sent``, ``dedupe_pending``) are not atomic across concurrent callers;
only ``claim_slot`` is guaranteed to have a single winner.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from med_reminders.core.slots import TimeSlot
from med_reminders.schemas.medication import (
    MedicationSnapshot,
    ScheduleOverride,
    ScheduleOverrideUpdate,
)
from med_reminders.schemas.reminder import ConfirmationRecord, DedupeResult, Reminder

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from med_reminders.core.config import Settings


class StoreUnavailableError(RuntimeError):
    """Raised when the backing store cannot be reached or answers with an error."""


@runtime_checkable
class PendingStore(Protocol):
    """In-flight reminders, slot claims and confirmation history."""

    async def get_pending(self) -> list[Reminder]: ...

    async def add_pending(self, reminders: Sequence[Reminder]) -> list[Reminder]: ...

    async def remove_from_pending(
        self,
        *,
        reminder_id: str | None = None,
        medication_id: str | None = None,
        slot: TimeSlot | None = None,
    ) -> list[Reminder]: ...

    async def mark_sent(
        self, reminder_ids: Iterable[str], sent_at: datetime
    ) -> list[Reminder]: ...

    async def clear_pending(self) -> None: ...

    async def claim_slot(self, slot: TimeSlot, on_date: date) -> bool: ...

    async def release_slot(self, slot: TimeSlot, on_date: date) -> None: ...

    async def record_confirmation(
        self,
        medication_id: str,
        slot: TimeSlot,
        on_date: date,
        snapshot: MedicationSnapshot,
        *,
        early: bool = False,
        confirmed_at: datetime | None = None,
    ) -> ConfirmationRecord: ...

    async def get_confirmation_history(self, on_date: date) -> list[ConfirmationRecord]: ...

    async def dedupe_pending(self) -> DedupeResult: ...


@runtime_checkable
class OverrideStore(Protocol):
    """Per-medication schedule overrides."""

    async def get_override(self, medication_id: str) -> ScheduleOverride | None: ...

    async def list_overrides(self) -> dict[str, ScheduleOverride]: ...

    async def save_override(
        self, medication_id: str, update: ScheduleOverrideUpdate
    ) -> ScheduleOverride: ...

    async def delete_override(self, medication_id: str) -> bool: ...


@runtime_checkable
class ReminderStore(PendingStore, OverrideStore, Protocol):
    """Both halves of the store, as provided by every backend."""


def matches(
    reminder: Reminder,
    *,
    reminder_id: str | None = None,
    medication_id: str | None = None,
    slot: TimeSlot | None = None,
) -> bool:
    """Return True when ``reminder`` is selected by the id or (medication, slot) pair."""
    if reminder_id is not None:
        return reminder.id == reminder_id
    if medication_id is None or slot is None:
        raise ValueError("Provide a reminder id or both medication_id and slot")
    return reminder.medication_id == medication_id and reminder.slot == slot


def merge_new(existing: Sequence[Reminder], incoming: Sequence[Reminder]) -> list[Reminder]:
    """Append reminders whose id is not already present, keeping insertion order."""
    seen = {reminder.id for reminder in existing}
    merged = list(existing)
    for reminder in incoming:
        if reminder.id in seen:
            continue
        seen.add(reminder.id)
        merged.append(reminder)
    return merged


def collapse_duplicates(pending: Sequence[Reminder]) -> list[Reminder]:
    """Keep one entry per (slot, medication), preferring the latest ``sent_at``."""
    kept: dict[tuple[TimeSlot, str], Reminder] = {}
    for reminder in pending:
        key = (reminder.slot, reminder.medication_id)
        current = kept.get(key)
        if current is None:
            kept[key] = reminder
            continue
        if reminder.sent_at is not None and (
            current.sent_at is None or reminder.sent_at > current.sent_at
        ):
            kept[key] = reminder
    return list(kept.values())


def apply_override_update(
    existing: ScheduleOverride | None,
    update: ScheduleOverrideUpdate,
    *,
    now: datetime,
) -> ScheduleOverride:
    """Merge the explicitly set fields of ``update`` into ``existing``."""
    base = existing.model_dump() if existing is not None else {}
    base.update(update.model_dump(exclude_unset=True))
    base["updated_at"] = now
    return ScheduleOverride.model_validate(base)


def build_store(settings: "Settings", redis_client: "Redis | None" = None) -> ReminderStore:
    """Construct the configured store backend."""
    from med_reminders.services.memory_store import InMemoryStore
    from med_reminders.services.redis_store import RedisStore

    if settings.store_backend == "redis":
        if redis_client is None:
            raise ValueError("STORE_BACKEND=redis requires a redis client")
        return RedisStore(
            redis_client,
            prefix=settings.redis_key_prefix,
            pending_ttl=settings.pending_ttl_seconds,
            claim_ttl=settings.slot_claim_ttl_seconds,
            confirmation_ttl=settings.confirmation_ttl_seconds,
        )
    return InMemoryStore(
        pending_ttl=settings.pending_ttl_seconds,
        claim_ttl=settings.slot_claim_ttl_seconds,
        confirmation_ttl=settings.confirmation_ttl_seconds,
    )


__all__ = [
    "OverrideStore",
    "PendingStore",
    "ReminderStore",
    "StoreUnavailableError",
    "apply_override_update",
    "build_store",
    "collapse_duplicates",
    "matches",
    "merge_new",
]
