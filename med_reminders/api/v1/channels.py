"""Outbound channel status."""

from fastapi import APIRouter

from med_reminders.api.deps import ContainerDep

router = APIRouter()


@router.get("", summary="Configured chat channels")
async def channel_status(container: ContainerDep) -> dict[str, dict[str, bool]]:
    return container.notifier.channel_status()
