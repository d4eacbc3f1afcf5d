"""Day-by-day schedule preview."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from med_reminders.api.deps import ContainerDep
from med_reminders.schemas.scheduling import DaySchedule

router = APIRouter()


@router.get("", response_model=DaySchedule, summary="Preview the slots of one day")
async def day_schedule(
    container: ContainerDep,
    day: int | None = Query(default=None, description="Day number; the anchor date is day 1"),
) -> DaySchedule:
    resolver = container.resolver
    if day is None:
        check_date = resolver.local_date(container.clock())
    elif day < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="day must be 1 or greater"
        )
    else:
        check_date = resolver.date_for_day(day)
    return await resolver.day_schedule(check_date)
