"""Medication catalog and schedule override schemas."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from med_reminders.core.slots import Frequency, TimeSlot


class TaperingTable(BaseModel):
    """Slots dosed on day 1, day 2 and every day after, counted from the anchor date."""

    model_config = ConfigDict(frozen=True)

    day1: tuple[TimeSlot, ...]
    day2: tuple[TimeSlot, ...]
    day3plus: tuple[TimeSlot, ...]

    def slots_for_day(self, day_number: int) -> tuple[TimeSlot, ...]:
        if day_number <= 1:
            return self.day1
        if day_number == 2:
            return self.day2
        return self.day3plus


class Medication(BaseModel):
    """Static catalog definition of a medication."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    dose: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    frequency: Frequency
    start_date: date | None = None
    end_date: date | None = None
    active: bool = True
    notes: str | None = None
    tapering: TaperingTable | None = None

    @model_validator(mode="after")
    def _check_tapering(self) -> "Medication":
        if self.frequency == Frequency.TAPERING and self.tapering is None:
            raise ValueError("tapering medications require a tapering table")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class MedicationSnapshot(BaseModel):
    """Denormalized medication fields copied onto reminders and confirmations."""

    name: str
    dose: str
    location: str
    notes: str | None = None

    @classmethod
    def of(cls, medication: Medication) -> "MedicationSnapshot":
        return cls(
            name=medication.name,
            dose=medication.dose,
            location=medication.location,
            notes=medication.notes,
        )


class ScheduleOverride(BaseModel):
    """Per-medication record that shadows the catalog definition."""

    frequency: Frequency | None = None
    time_slots: list[TimeSlot] | None = None
    active: bool | None = None
    notes: str | None = None
    updated_at: datetime | None = None


class ScheduleOverrideUpdate(BaseModel):
    """Mutable override fields accepted from the management API."""

    frequency: Frequency | None = None
    time_slots: list[TimeSlot] | None = None
    active: bool | None = None
    notes: str | None = None


class EffectiveSchedule(BaseModel):
    """Catalog definition merged with its override."""

    frequency: Frequency
    time_slots: list[TimeSlot] | None = None
    active: bool
    notes: str | None = None
    overridden: bool = False


class MedicationSummary(BaseModel):
    """List view of a medication with its effective settings."""

    id: str
    name: str
    dose: str
    location: str
    frequency: Frequency
    active: bool
    notes: str | None = None
    has_custom_schedule: bool = False


class MedicationDetail(BaseModel):
    """Detail view of a medication, its override and effective schedule."""

    medication: Medication
    custom_schedule: ScheduleOverride | None = None
    effective_schedule: EffectiveSchedule
    available_frequencies: list[Frequency]
    time_slots: dict[TimeSlot, str]


class Catalog(BaseModel):
    """Validated medication catalog."""

    model_config = ConfigDict(frozen=True)

    anchor_date: date
    medications: tuple[Medication, ...]

    def get(self, medication_id: str) -> Medication | None:
        for medication in self.medications:
            if medication.id == medication_id:
                return medication
        return None
