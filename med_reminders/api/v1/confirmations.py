"""Confirmation history and early confirmation endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, HTTPException, Query, status

from med_reminders.api.deps import ContainerDep
from med_reminders.schemas.reminder import (
    ConfirmationHistory,
    ConfirmationResult,
    EarlyConfirmRequest,
)
from med_reminders.services.confirmation_service import confirm_early

router = APIRouter()


@router.get("", response_model=ConfirmationHistory, summary="Same-day confirmation history")
async def confirmation_history(
    container: ContainerDep,
    on_date: date | None = Query(default=None, alias="date"),
) -> ConfirmationHistory:
    target = on_date or container.resolver.local_date(container.clock())
    records = await container.store.get_confirmation_history(target)
    return ConfirmationHistory(date=target, count=len(records), confirmations=records)


@router.post(
    "/early",
    response_model=ConfirmationResult,
    summary="Confirm a dose ahead of its slot",
)
async def early_confirmation(
    payload: EarlyConfirmRequest, container: ContainerDep
) -> ConfirmationResult:
    now = container.clock()
    target = payload.date or container.resolver.local_date(now)
    try:
        result = await confirm_early(
            container.store,
            container.catalog,
            payload.medication_id,
            payload.slot,
            target,
            now=now,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if result.reason == "store_unavailable":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable"
        )
    return result
