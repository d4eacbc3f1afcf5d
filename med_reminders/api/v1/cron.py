"""Scheduled trigger entrypoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from med_reminders.api.deps import ContainerDep, require_cron_secret
from med_reminders.schemas.reminder import TriggerResult
from med_reminders.services.trigger_service import run_trigger

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.api_route(
    "",
    methods=["GET", "POST"],
    response_model=TriggerResult,
    summary="Run one trigger tick",
)
async def trigger(container: ContainerDep) -> TriggerResult:
    """Resend stale reminders, then claim and dispatch the active slot."""
    settings = container.settings
    now = container.clock()
    result = await run_trigger(
        now,
        store=container.store,
        generator=container.generator,
        notifier=container.notifier,
        resend_threshold_minutes=settings.resend_threshold_minutes,
        dispatch_delay_seconds=settings.dispatch_delay_seconds,
    )
    logger.info(
        "Trigger at %s: slot=%s sent=%s count=%s resent=%s reason=%s",
        now.isoformat(),
        result.slot.value if result.slot else None,
        result.sent,
        result.count,
        result.resent,
        result.reason,
    )
    return result
