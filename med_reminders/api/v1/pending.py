"""Dashboard endpoints for the pending set."""

from __future__ import annotations

from fastapi import APIRouter, Body, HTTPException, status

from med_reminders.api.deps import ContainerDep
from med_reminders.schemas.reminder import (
    ConfirmationResult,
    ConfirmRequest,
    DedupeResult,
    PendingList,
    PendingReminderRead,
)
from med_reminders.services.confirmation_service import (
    confirm_by_id,
    confirm_oldest_pending,
    reminder_age_minutes,
)
from med_reminders.services.notification_service import NOTHING_PENDING_REPLY

router = APIRouter()


@router.get("", response_model=PendingList, summary="List pending reminders")
async def list_pending(container: ContainerDep) -> PendingList:
    now = container.clock()
    pending = await container.store.get_pending()
    reminders = [
        PendingReminderRead(
            id=reminder.id,
            medication=reminder.medication.name,
            location=reminder.medication.location,
            dose=reminder.medication.dose,
            scheduled_time=reminder.scheduled_time,
            slot=reminder.slot,
            sent_at=reminder.sent_at,
            age_minutes=reminder_age_minutes(reminder, now),
        )
        for reminder in pending
    ]
    return PendingList(count=len(reminders), reminders=reminders)


@router.post(
    "/confirm",
    response_model=ConfirmationResult,
    summary="Confirm a pending reminder",
)
async def confirm_pending(
    container: ContainerDep,
    payload: ConfirmRequest | None = Body(default=None),
) -> ConfirmationResult:
    """Confirm by id when one is given, otherwise the oldest pending entry."""
    now = container.clock()
    if payload is not None and payload.id:
        result = await confirm_by_id(container.store, payload.id, now=now)
    else:
        result = await confirm_oldest_pending(container.store, now=now)
    if result.reason == "store_unavailable":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable"
        )
    if result.reason == "nothing_pending":
        return result.model_copy(update={"message": NOTHING_PENDING_REPLY})
    return result


@router.post("/dedupe", response_model=DedupeResult, summary="Collapse duplicate entries")
async def dedupe_pending(container: ContainerDep) -> DedupeResult:
    return await container.store.dedupe_pending()


@router.delete("", summary="Clear the pending set")
async def clear_pending(container: ContainerDep) -> dict[str, bool]:
    await container.store.clear_pending()
    return {"cleared": True}
