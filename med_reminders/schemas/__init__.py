"""Schema exports."""

from med_reminders.schemas.medication import (
    Catalog,
    EffectiveSchedule,
    Medication,
    MedicationDetail,
    MedicationSnapshot,
    MedicationSummary,
    ScheduleOverride,
    ScheduleOverrideUpdate,
    TaperingTable,
)
from med_reminders.schemas.reminder import (
    ConfirmationHistory,
    ConfirmationRecord,
    ConfirmationResult,
    ConfirmRequest,
    DedupeResult,
    DeliveryResult,
    EarlyConfirmRequest,
    GenerationResult,
    PendingList,
    PendingReminderRead,
    Reminder,
    TriggerResult,
)
from med_reminders.schemas.scheduling import DaySchedule, ScheduledMedication, SlotSchedule

__all__ = [
    "Catalog",
    "ConfirmRequest",
    "ConfirmationHistory",
    "ConfirmationRecord",
    "ConfirmationResult",
    "DaySchedule",
    "DedupeResult",
    "DeliveryResult",
    "EarlyConfirmRequest",
    "EffectiveSchedule",
    "GenerationResult",
    "Medication",
    "MedicationDetail",
    "MedicationSnapshot",
    "MedicationSummary",
    "PendingList",
    "PendingReminderRead",
    "Reminder",
    "ScheduleOverride",
    "ScheduleOverrideUpdate",
    "ScheduledMedication",
    "SlotSchedule",
    "TaperingTable",
    "TriggerResult",
]
