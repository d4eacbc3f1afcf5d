"""Process-local store for development and tests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, date, datetime, timedelta

from med_reminders.core.slots import TimeSlot
from med_reminders.schemas.medication import (
    MedicationSnapshot,
    ScheduleOverride,
    ScheduleOverrideUpdate,
)
from med_reminders.schemas.reminder import ConfirmationRecord, DedupeResult, Reminder
from med_reminders.services.store import (
    apply_override_update,
    collapse_duplicates,
    matches,
    merge_new,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryStore:
    """Store backend holding all state in this process, with the same expiry rules."""

    def __init__(
        self,
        *,
        pending_ttl: int = 86400,
        claim_ttl: int = 7200,
        confirmation_ttl: int = 86400,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._pending_ttl = timedelta(seconds=pending_ttl)
        self._claim_ttl = timedelta(seconds=claim_ttl)
        self._confirmation_ttl = timedelta(seconds=confirmation_ttl)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._pending: list[Reminder] = []
        self._pending_expires_at: datetime | None = None
        self._claims: dict[tuple[date, TimeSlot], datetime] = {}
        self._confirmations: dict[
            tuple[date, TimeSlot, str], tuple[ConfirmationRecord, datetime]
        ] = {}
        self._overrides: dict[str, ScheduleOverride] = {}

    # ------------------------------------------------------------------
    # Pending set
    # ------------------------------------------------------------------
    def _live_pending(self) -> list[Reminder]:
        expires_at = self._pending_expires_at
        if expires_at is not None and self._clock() >= expires_at:
            self._pending = []
            self._pending_expires_at = None
        return self._pending

    def _write_pending(self, reminders: list[Reminder]) -> list[Reminder]:
        self._pending = reminders
        self._pending_expires_at = self._clock() + self._pending_ttl
        return list(reminders)

    async def get_pending(self) -> list[Reminder]:
        async with self._lock:
            return list(self._live_pending())

    async def add_pending(self, reminders: Sequence[Reminder]) -> list[Reminder]:
        async with self._lock:
            existing = self._live_pending()
            merged = merge_new(existing, reminders)
            dropped = len(existing) + len(reminders) - len(merged)
            if dropped:
                logger.info("Dropped %s duplicate reminders on insert", dropped)
            return self._write_pending(merged)

    async def remove_from_pending(
        self,
        *,
        reminder_id: str | None = None,
        medication_id: str | None = None,
        slot: TimeSlot | None = None,
    ) -> list[Reminder]:
        async with self._lock:
            survivors = [
                reminder
                for reminder in self._live_pending()
                if not matches(
                    reminder,
                    reminder_id=reminder_id,
                    medication_id=medication_id,
                    slot=slot,
                )
            ]
            return self._write_pending(survivors)

    async def mark_sent(self, reminder_ids: Iterable[str], sent_at: datetime) -> list[Reminder]:
        ids = set(reminder_ids)
        async with self._lock:
            updated = [
                reminder.model_copy(update={"sent_at": sent_at})
                if reminder.id in ids
                else reminder
                for reminder in self._live_pending()
            ]
            return self._write_pending(updated)

    async def clear_pending(self) -> None:
        async with self._lock:
            self._pending = []
            self._pending_expires_at = None

    async def dedupe_pending(self) -> DedupeResult:
        async with self._lock:
            pending = self._live_pending()
            deduped = collapse_duplicates(pending)
            removed = len(pending) - len(deduped)
            if removed:
                logger.info(
                    "Deduped pending set: removed %s duplicates, %s remaining",
                    removed,
                    len(deduped),
                )
                self._write_pending(deduped)
            return DedupeResult(before=len(pending), after=len(deduped), removed=removed)

    # ------------------------------------------------------------------
    # Slot claims
    # ------------------------------------------------------------------
    async def claim_slot(self, slot: TimeSlot, on_date: date) -> bool:
        key = (on_date, slot)
        async with self._lock:
            now = self._clock()
            expires_at = self._claims.get(key)
            if expires_at is not None and now < expires_at:
                return False
            self._claims[key] = now + self._claim_ttl
            return True

    async def release_slot(self, slot: TimeSlot, on_date: date) -> None:
        async with self._lock:
            self._claims.pop((on_date, slot), None)

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------
    async def record_confirmation(
        self,
        medication_id: str,
        slot: TimeSlot,
        on_date: date,
        snapshot: MedicationSnapshot,
        *,
        early: bool = False,
        confirmed_at: datetime | None = None,
    ) -> ConfirmationRecord:
        record = ConfirmationRecord(
            medication_id=medication_id,
            slot=slot,
            date=on_date,
            confirmed_at=confirmed_at or self._clock(),
            medication=snapshot,
            early=early,
        )
        async with self._lock:
            self._confirmations[(on_date, slot, medication_id)] = (
                record,
                self._clock() + self._confirmation_ttl,
            )
        return record

    async def get_confirmation_history(self, on_date: date) -> list[ConfirmationRecord]:
        async with self._lock:
            now = self._clock()
            expired = [
                key
                for key, (_, expires_at) in self._confirmations.items()
                if now >= expires_at
            ]
            for key in expired:
                del self._confirmations[key]
            records = [
                record
                for (record_date, _, _), (record, _) in self._confirmations.items()
                if record_date == on_date
            ]
        return sorted(records, key=lambda record: record.confirmed_at, reverse=True)

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------
    async def get_override(self, medication_id: str) -> ScheduleOverride | None:
        async with self._lock:
            return self._overrides.get(medication_id)

    async def list_overrides(self) -> dict[str, ScheduleOverride]:
        async with self._lock:
            return dict(self._overrides)

    async def save_override(
        self, medication_id: str, update: ScheduleOverrideUpdate
    ) -> ScheduleOverride:
        async with self._lock:
            override = apply_override_update(
                self._overrides.get(medication_id), update, now=self._clock()
            )
            self._overrides[medication_id] = override
            return override

    async def delete_override(self, medication_id: str) -> bool:
        async with self._lock:
            return self._overrides.pop(medication_id, None) is not None


__all__ = ["InMemoryStore"]
