"""Expand due medications into staggered per-medication reminders."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime, time

from med_reminders.core.slots import (
    MINUTES_PER_DAY,
    SLOT_TIMES,
    STAGGER_MINUTES,
    TimeSlot,
    is_eye_location,
    location_rank,
    slot_minute,
)
from med_reminders.schemas.medication import Medication, MedicationSnapshot
from med_reminders.schemas.reminder import GenerationResult, Reminder
from med_reminders.services.notification_service import build_reminder_message, format_time
from med_reminders.services.schedule_service import ScheduleResolver

logger = logging.getLogger(__name__)


def reminder_id(on_date: date, slot: TimeSlot, medication_id: str) -> str:
    """Deterministic id so regenerating a slot yields the same reminders."""
    return f"{on_date.isoformat()}-{slot.value}-{medication_id}"


def staggered_time(slot: TimeSlot, stagger_index: int) -> time:
    total = (slot_minute(slot) + stagger_index * STAGGER_MINUTES) % MINUTES_PER_DAY
    return time(total // 60, total % 60)


def order_by_location(medications: Sequence[Medication]) -> list[Medication]:
    """Group by location in priority order, keeping catalog order within a group."""
    return sorted(medications, key=lambda med: location_rank(med.location))


def build_reminders(
    medications: Sequence[Medication],
    *,
    slot: TimeSlot,
    on_date: date,
    day_number: int,
) -> list[Reminder]:
    """Assign stagger offsets and render one reminder per medication.

    Eye-drop medications share a single stagger counter across every eye
    location; everything else is shown at the slot's base time.
    """
    reminders: list[Reminder] = []
    eye_index = 0
    for medication in order_by_location(medications):
        if is_eye_location(medication.location):
            stagger_index = eye_index
            eye_index += 1
        else:
            stagger_index = 0
        display_time = format_time(staggered_time(slot, stagger_index))
        snapshot = MedicationSnapshot.of(medication)
        reminders.append(
            Reminder(
                id=reminder_id(on_date, slot, medication.id),
                medication_id=medication.id,
                medication=snapshot,
                slot=slot,
                day_number=day_number,
                scheduled_time=display_time,
                message=build_reminder_message(
                    snapshot, display_time=display_time, day_number=day_number
                ),
            )
        )
    return reminders


class ReminderGenerator:
    """Produce the reminders for whichever slot is active at a moment."""

    def __init__(self, resolver: ScheduleResolver) -> None:
        self.resolver = resolver

    async def generate(self, instant: datetime) -> GenerationResult:
        slot = self.resolver.active_slot(instant)
        if slot is None:
            return GenerationResult()
        return await self.generate_for_slot(slot, self.resolver.local_date(instant))

    async def generate_for_slot(self, slot: TimeSlot, on_date: date) -> GenerationResult:
        day = self.resolver.day_number(on_date)
        due = await self.resolver.due_medications(slot, on_date)
        reminders = build_reminders(due, slot=slot, on_date=on_date, day_number=day)
        logger.info(
            "Generated %s reminders for %s on %s (day %s)",
            len(reminders),
            slot.value,
            on_date.isoformat(),
            day,
        )
        return GenerationResult(
            slot=slot,
            slot_time=SLOT_TIMES[slot],
            day_number=day,
            reminders=reminders,
        )


__all__ = [
    "ReminderGenerator",
    "build_reminders",
    "order_by_location",
    "reminder_id",
    "staggered_time",
]
