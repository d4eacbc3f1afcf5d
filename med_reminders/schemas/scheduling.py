"""Scheduling-related schemas."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from med_reminders.core.slots import TimeSlot


class ScheduledMedication(BaseModel):
    """Medication due in a slot."""

    id: str
    name: str
    dose: str
    location: str
    notes: str | None = None


class SlotSchedule(BaseModel):
    """Due medications for a single slot."""

    time: dt.time
    medications: list[ScheduledMedication] = Field(default_factory=list)


class DaySchedule(BaseModel):
    """Slot-by-slot preview of one day."""

    day_number: int
    date: dt.date
    schedule: dict[TimeSlot, SlotSchedule]
