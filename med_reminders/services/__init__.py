"""Service layer exports."""
from med_reminders.services import (
    catalog_service,
    confirmation_service,
    notification_service,
    reminder_service,
    schedule_service,
    trigger_service,
)

__all__ = [
    "catalog_service",
    "confirmation_service",
    "notification_service",
    "reminder_service",
    "schedule_service",
    "trigger_service",
]
