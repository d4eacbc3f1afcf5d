"""Redis-backed store implementation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, date, datetime

from pydantic import TypeAdapter, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from med_reminders.core.slots import TimeSlot
from med_reminders.schemas.medication import (
    MedicationSnapshot,
    ScheduleOverride,
    ScheduleOverrideUpdate,
)
from med_reminders.schemas.reminder import ConfirmationRecord, DedupeResult, Reminder
from med_reminders.services.store import (
    StoreUnavailableError,
    apply_override_update,
    collapse_duplicates,
    matches,
    merge_new,
)

logger = logging.getLogger(__name__)

_REMINDER_LIST = TypeAdapter(list[Reminder])


class RedisStore:
    """Store backend on a shared redis instance.

    Key layout (``<p>`` is the configured prefix)::

        <p>:pending                           JSON list of reminders, 24h TTL
        <p>:sent:<date>:<slot>                slot claim, SET NX with 2h TTL
        <p>:confirmed:<date>:<slot>:<med>     JSON confirmation record, 24h TTL
        <p>:schedule:<med>                    JSON schedule override, no TTL
    """

    def __init__(
        self,
        client: Redis,
        *,
        prefix: str = "meds",
        pending_ttl: int = 86400,
        claim_ttl: int = 7200,
        confirmation_ttl: int = 86400,
    ) -> None:
        self._redis = client
        self._prefix = prefix
        self._pending_ttl = pending_ttl
        self._claim_ttl = claim_ttl
        self._confirmation_ttl = confirmation_ttl

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @property
    def pending_key(self) -> str:
        return f"{self._prefix}:pending"

    def claim_key(self, slot: TimeSlot, on_date: date) -> str:
        return f"{self._prefix}:sent:{on_date.isoformat()}:{slot.value}"

    def confirmation_key(self, on_date: date, slot: TimeSlot, medication_id: str) -> str:
        return f"{self._prefix}:confirmed:{on_date.isoformat()}:{slot.value}:{medication_id}"

    def override_key(self, medication_id: str) -> str:
        return f"{self._prefix}:schedule:{medication_id}"

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except RedisError as exc:
            logger.warning("Redis %s failed: %s", operation, exc)
            raise StoreUnavailableError(f"Store unavailable during {operation}") from exc

    async def _read_pending(self) -> list[Reminder]:
        raw = await self._redis.get(self.pending_key)
        if not raw:
            return []
        try:
            return _REMINDER_LIST.validate_json(raw)
        except ValidationError:
            logger.exception("Discarding unreadable pending set")
            return []

    async def _write_pending(self, reminders: list[Reminder]) -> list[Reminder]:
        payload = _REMINDER_LIST.dump_json(reminders)
        await self._redis.set(self.pending_key, payload, ex=self._pending_ttl)
        return reminders

    # ------------------------------------------------------------------
    # Pending set
    # ------------------------------------------------------------------
    async def get_pending(self) -> list[Reminder]:
        with self._guard("get_pending"):
            return await self._read_pending()

    async def add_pending(self, reminders: Sequence[Reminder]) -> list[Reminder]:
        with self._guard("add_pending"):
            existing = await self._read_pending()
            merged = merge_new(existing, reminders)
            dropped = len(existing) + len(reminders) - len(merged)
            if dropped:
                logger.info("Dropped %s duplicate reminders on insert", dropped)
            return await self._write_pending(merged)

    async def remove_from_pending(
        self,
        *,
        reminder_id: str | None = None,
        medication_id: str | None = None,
        slot: TimeSlot | None = None,
    ) -> list[Reminder]:
        with self._guard("remove_from_pending"):
            pending = await self._read_pending()
            survivors = [
                reminder
                for reminder in pending
                if not matches(
                    reminder,
                    reminder_id=reminder_id,
                    medication_id=medication_id,
                    slot=slot,
                )
            ]
            return await self._write_pending(survivors)

    async def mark_sent(self, reminder_ids: Iterable[str], sent_at: datetime) -> list[Reminder]:
        ids = set(reminder_ids)
        with self._guard("mark_sent"):
            pending = await self._read_pending()
            updated = [
                reminder.model_copy(update={"sent_at": sent_at})
                if reminder.id in ids
                else reminder
                for reminder in pending
            ]
            return await self._write_pending(updated)

    async def clear_pending(self) -> None:
        with self._guard("clear_pending"):
            await self._redis.delete(self.pending_key)

    async def dedupe_pending(self) -> DedupeResult:
        with self._guard("dedupe_pending"):
            pending = await self._read_pending()
            deduped = collapse_duplicates(pending)
            removed = len(pending) - len(deduped)
            if removed:
                logger.info(
                    "Deduped pending set: removed %s duplicates, %s remaining",
                    removed,
                    len(deduped),
                )
                await self._write_pending(deduped)
        return DedupeResult(before=len(pending), after=len(deduped), removed=removed)

    # ------------------------------------------------------------------
    # Slot claims
    # ------------------------------------------------------------------
    async def claim_slot(self, slot: TimeSlot, on_date: date) -> bool:
        stamp = int(datetime.now(UTC).timestamp() * 1000)
        with self._guard("claim_slot"):
            claimed = await self._redis.set(
                self.claim_key(slot, on_date), stamp, nx=True, ex=self._claim_ttl
            )
        return bool(claimed)

    async def release_slot(self, slot: TimeSlot, on_date: date) -> None:
        with self._guard("release_slot"):
            await self._redis.delete(self.claim_key(slot, on_date))

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
            confirmed_at=confirmed_at or datetime.now(UTC),
            medication=snapshot,
            early=early,
        )
        with self._guard("record_confirmation"):
            await self._redis.set(
                self.confirmation_key(on_date, slot, medication_id),
                record.model_dump_json(),
                ex=self._confirmation_ttl,
            )
        return record

    async def get_confirmation_history(self, on_date: date) -> list[ConfirmationRecord]:
        pattern = f"{self._prefix}:confirmed:{on_date.isoformat()}:*"
        with self._guard("get_confirmation_history"):
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            values = await self._redis.mget(keys) if keys else []
        records: list[ConfirmationRecord] = []
        for key, raw in zip(keys, values):
            if not raw:
                continue
            try:
                records.append(ConfirmationRecord.model_validate_json(raw))
            except ValidationError:
                logger.warning("Skipping unreadable confirmation record %s", key)
        return sorted(records, key=lambda record: record.confirmed_at, reverse=True)

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------
    async def get_override(self, medication_id: str) -> ScheduleOverride | None:
        with self._guard("get_override"):
            raw = await self._redis.get(self.override_key(medication_id))
        if not raw:
            return None
        try:
            return ScheduleOverride.model_validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring unreadable override for %s", medication_id)
            return None

    async def list_overrides(self) -> dict[str, ScheduleOverride]:
        prefix = f"{self._prefix}:schedule:"
        with self._guard("list_overrides"):
            keys = [key async for key in self._redis.scan_iter(match=f"{prefix}*")]
            values = await self._redis.mget(keys) if keys else []
        overrides: dict[str, ScheduleOverride] = {}
        for key, raw in zip(keys, values):
            if not raw:
                continue
            name = key.decode() if isinstance(key, bytes) else str(key)
            try:
                overrides[name[len(prefix):]] = ScheduleOverride.model_validate_json(raw)
            except ValidationError:
                logger.warning("Skipping unreadable override %s", name)
        return overrides

    async def save_override(
        self, medication_id: str, update: ScheduleOverrideUpdate
    ) -> ScheduleOverride:
        existing = await self.get_override(medication_id)
        override = apply_override_update(existing, update, now=datetime.now(UTC))
        with self._guard("save_override"):
            await self._redis.set(
                self.override_key(medication_id),
                override.model_dump_json(),
            )
        return override

    async def delete_override(self, medication_id: str) -> bool:
        with self._guard("delete_override"):
            removed = await self._redis.delete(self.override_key(medication_id))
        return bool(removed)


__all__ = ["RedisStore"]
