"""Slot resolution and medication due-checks."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from med_reminders.core.slots import (
    FREQUENCY_SLOTS,
    MINUTES_PER_DAY,
    SLOT_TIMES,
    TRIGGER_WINDOW_MINUTES,
    Frequency,
    TimeSlot,
    slot_minute,
)
from med_reminders.schemas.medication import (
    Catalog,
    EffectiveSchedule,
    Medication,
    ScheduleOverride,
)
from med_reminders.schemas.scheduling import DaySchedule, ScheduledMedication, SlotSchedule
from med_reminders.services.override_cache import OverrideCache
from med_reminders.services.store import OverrideStore, StoreUnavailableError

logger = logging.getLogger(__name__)

_NOON = time(12, 0)


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown timezone {name!r}") from exc


def _coerce_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_local(instant: datetime, tz: ZoneInfo) -> datetime:
    """Convert an instant (naive values are taken as UTC) to wall-clock time in ``tz``."""
    return _coerce_utc(instant).astimezone(tz)


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    return to_local(instant, tz).date()


def resolve_active_slot(instant: datetime, tz: ZoneInfo) -> TimeSlot | None:
    """Return the slot whose 15-minute trigger window contains ``instant``.

    The window is ``[slot_time, slot_time + 15min)``. Differences are taken
    modulo one day so the midnight slot also matches minutes 0-14.
    """
    local = to_local(instant, tz)
    minute = local.hour * 60 + local.minute
    for slot in TimeSlot:
        if (minute - slot_minute(slot)) % MINUTES_PER_DAY < TRIGGER_WINDOW_MINUTES:
            return slot
    return None


def day_number(anchor: date, check: date, tz: ZoneInfo) -> int:
    """1-based day count since ``anchor``, differencing both dates at local noon."""
    anchor_noon = datetime.combine(anchor, _NOON, tzinfo=tz)
    check_noon = datetime.combine(check, _NOON, tzinfo=tz)
    return round((check_noon - anchor_noon) / timedelta(days=1)) + 1


def merge_override(
    medication: Medication, override: ScheduleOverride | None
) -> EffectiveSchedule:
    """Shadow catalog fields with whichever override fields are set."""
    if override is None:
        return EffectiveSchedule(
            frequency=medication.frequency,
            time_slots=None,
            active=medication.active,
            notes=medication.notes,
        )
    return EffectiveSchedule(
        frequency=override.frequency or medication.frequency,
        time_slots=list(override.time_slots) if override.time_slots is not None else None,
        active=override.active if override.active is not None else medication.active,
        notes=override.notes if override.notes is not None else medication.notes,
        overridden=True,
    )


def effective_slots(
    medication: Medication, schedule: EffectiveSchedule, day: int
) -> tuple[TimeSlot, ...]:
    """Slots a medication is dosed in on ``day`` under ``schedule``."""
    if schedule.frequency == Frequency.AS_NEEDED:
        return ()
    if schedule.time_slots is not None:
        return tuple(schedule.time_slots)
    if schedule.frequency == Frequency.TAPERING:
        if medication.tapering is None:
            return ()
        return medication.tapering.slots_for_day(day)
    return FREQUENCY_SLOTS.get(schedule.frequency, ())


def is_medication_due(
    medication: Medication,
    slot: TimeSlot,
    check_date: date,
    *,
    anchor_date: date,
    tz: ZoneInfo,
    override: ScheduleOverride | None = None,
) -> bool:
    """Decide whether ``medication`` is due in ``slot`` on ``check_date``."""
    schedule = merge_override(medication, override)
    if not schedule.active:
        return False
    if medication.start_date is not None and medication.start_date > check_date:
        return False
    if medication.end_date is not None and medication.end_date < check_date:
        return False
    if schedule.frequency == Frequency.AS_NEEDED:
        return False
    day = day_number(anchor_date, check_date, tz)
    return slot in effective_slots(medication, schedule, day)


class ScheduleResolver:
    """Due-checks against the catalog merged with stored overrides."""

    def __init__(
        self,
        catalog: Catalog,
        overrides: OverrideStore,
        *,
        tz: ZoneInfo,
        cache: OverrideCache | None = None,
    ) -> None:
        self.catalog = catalog
        self.tz = tz
        self._overrides = overrides
        self._cache = cache or OverrideCache()

    def active_slot(self, instant: datetime) -> TimeSlot | None:
        return resolve_active_slot(instant, self.tz)

    def local_date(self, instant: datetime) -> date:
        return local_date(instant, self.tz)

    def day_number(self, check_date: date) -> int:
        return day_number(self.catalog.anchor_date, check_date, self.tz)

    def date_for_day(self, day: int) -> date:
        """Calendar date of day ``day`` (day 1 is the anchor date)."""
        return self.catalog.anchor_date + timedelta(days=day - 1)

    def invalidate(self, medication_id: str | None = None) -> None:
        self._cache.invalidate(medication_id)

    async def get_override(self, medication_id: str) -> ScheduleOverride | None:
        """Cached override lookup; an unreachable store means "use the catalog"."""
        try:
            return await self._cache.get(medication_id, self._overrides.get_override)
        except StoreUnavailableError:
            logger.warning(
                "Override lookup for %s failed; using catalog schedule", medication_id
            )
            return None

    async def effective_schedule(self, medication: Medication) -> EffectiveSchedule:
        return merge_override(medication, await self.get_override(medication.id))

    async def is_due(self, medication: Medication, slot: TimeSlot, check_date: date) -> bool:
        override = await self.get_override(medication.id)
        return is_medication_due(
            medication,
            slot,
            check_date,
            anchor_date=self.catalog.anchor_date,
            tz=self.tz,
            override=override,
        )

    async def due_medications(self, slot: TimeSlot, check_date: date) -> list[Medication]:
        """Due medications for ``slot`` in catalog order, carrying their effective notes."""
        due: list[Medication] = []
        for medication in self.catalog.medications:
            override = await self.get_override(medication.id)
            if not is_medication_due(
                medication,
                slot,
                check_date,
                anchor_date=self.catalog.anchor_date,
                tz=self.tz,
                override=override,
            ):
                continue
            notes = merge_override(medication, override).notes
            if notes != medication.notes:
                medication = medication.model_copy(update={"notes": notes})
            due.append(medication)
        return due

    async def day_schedule(self, check_date: date) -> DaySchedule:
        schedule: dict[TimeSlot, SlotSchedule] = {}
        for slot in TimeSlot:
            medications = await self.due_medications(slot, check_date)
            schedule[slot] = SlotSchedule(
                time=SLOT_TIMES[slot],
                medications=[
                    ScheduledMedication(
                        id=med.id,
                        name=med.name,
                        dose=med.dose,
                        location=med.location,
                        notes=med.notes,
                    )
                    for med in medications
                ],
            )
        return DaySchedule(
            day_number=self.day_number(check_date),
            date=check_date,
            schedule=schedule,
        )


__all__ = [
    "ScheduleResolver",
    "day_number",
    "effective_slots",
    "is_medication_due",
    "local_date",
    "merge_override",
    "resolve_active_slot",
    "resolve_timezone",
    "to_local",
]
