"""Reminder, confirmation and trigger schemas."""

from __future__ import annotations

import datetime as dt
from datetime import datetime, time

from pydantic import BaseModel, Field

from med_reminders.core.slots import TimeSlot
from med_reminders.schemas.medication import MedicationSnapshot


class Reminder(BaseModel):
    """A single per-medication reminder for one slot on one day."""

    id: str
    medication_id: str
    medication: MedicationSnapshot
    slot: TimeSlot
    day_number: int
    scheduled_time: str
    message: str
    sent_at: datetime | None = None
    confirmed: bool = False


class GenerationResult(BaseModel):
    """Reminders generated for the slot active at a moment."""

    slot: TimeSlot | None = None
    slot_time: time | None = None
    day_number: int | None = None
    reminders: list[Reminder] = Field(default_factory=list)


class ConfirmationRecord(BaseModel):
    """Persisted fact that a medication was given for a slot."""

    medication_id: str
    slot: TimeSlot
    date: dt.date
    confirmed_at: datetime
    medication: MedicationSnapshot
    early: bool = False


class ConfirmationResult(BaseModel):
    """Outcome of a confirmation attempt; never raised as an error."""

    confirmed: bool
    reason: str | None = None
    message: str | None = None
    reminder_id: str | None = None
    medication: str | None = None
    remaining: int | None = None
    confirmed_at: datetime | None = None


class DedupeResult(BaseModel):
    before: int
    after: int
    removed: int


class DeliveryResult(BaseModel):
    """Per-recipient outcome reported by a channel."""

    channel: str
    recipient: str
    success: bool
    message_id: str | None = None
    error: str | None = None


class TriggerResult(BaseModel):
    """Summary of one scheduled trigger invocation."""

    triggered: bool = True
    resent: int = 0
    slot: TimeSlot | None = None
    day_number: int | None = None
    sent: bool = False
    count: int = 0
    reason: str | None = None
    pending_count: int | None = None
    reminders: list[dict[str, str]] = Field(default_factory=list)


class PendingReminderRead(BaseModel):
    """Dashboard view of a pending reminder."""

    id: str
    medication: str
    location: str
    dose: str
    scheduled_time: str
    slot: TimeSlot
    sent_at: datetime | None = None
    age_minutes: int | None = None


class PendingList(BaseModel):
    count: int
    reminders: list[PendingReminderRead]


class ConfirmRequest(BaseModel):
    id: str | None = None


class EarlyConfirmRequest(BaseModel):
    medication_id: str
    slot: TimeSlot
    date: dt.date | None = None


class ConfirmationHistory(BaseModel):
    date: dt.date
    count: int
    confirmations: list[ConfirmationRecord]
