"""Versioned API router."""

from fastapi import APIRouter

from . import (
    channels,
    confirmations,
    cron,
    health,
    medications,
    pending,
    schedule,
    webhooks,
)

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(cron.router, prefix="/cron", tags=["cron"])
router.include_router(pending.router, prefix="/pending", tags=["pending"])
router.include_router(
    confirmations.router, prefix="/confirmations", tags=["confirmations"]
)
router.include_router(medications.router, prefix="/medications", tags=["medications"])
router.include_router(schedule.router, prefix="/schedule", tags=["schedule"])
router.include_router(webhooks.router)
router.include_router(channels.router, prefix="/channels", tags=["channels"])

__all__ = ["router"]
