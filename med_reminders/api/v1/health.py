"""Health check endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter

from med_reminders.api.deps import ContainerDep

router = APIRouter()


@router.get("", summary="Service health status")
async def healthcheck(container: ContainerDep) -> dict[str, str | int]:
    """Return application health metadata."""
    settings = container.settings
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.app_env,
        "timezone": settings.timezone,
        "store_backend": settings.store_backend or "memory",
        "medications": len(container.catalog.medications),
    }
