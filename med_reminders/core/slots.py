"""Time slot and dosing frequency definitions shared by every component."""

from __future__ import annotations

import enum
from datetime import time


class TimeSlot(str, enum.Enum):
    """Named times of day at which medications may be due."""

    MORNING = "MORNING"
    LATE_MORNING = "LATE_MORNING"
    MIDDAY = "MIDDAY"
    EVENING = "EVENING"
    LATE_NIGHT = "LATE_NIGHT"
    NIGHT = "NIGHT"


class Frequency(str, enum.Enum):
    """Dosing frequency classes understood by the catalog."""

    FOUR_TIMES_DAILY = "4x_daily"
    TWICE_DAILY = "2x_daily"
    ONCE_DAILY = "1x_daily"
    EVERY_12H = "12h"
    EVERY_12H_OFFSET = "12h_11"
    TAPERING = "tapering"
    AS_NEEDED = "as_needed"


# Wall-clock times in the reference timezone.
SLOT_TIMES: dict[TimeSlot, time] = {
    TimeSlot.MORNING: time(8, 30),
    TimeSlot.LATE_MORNING: time(11, 0),
    TimeSlot.MIDDAY: time(14, 0),
    TimeSlot.EVENING: time(19, 0),
    TimeSlot.LATE_NIGHT: time(23, 0),
    TimeSlot.NIGHT: time(0, 0),
}

FREQUENCY_SLOTS: dict[Frequency, tuple[TimeSlot, ...]] = {
    Frequency.FOUR_TIMES_DAILY: (
        TimeSlot.MORNING,
        TimeSlot.MIDDAY,
        TimeSlot.EVENING,
        TimeSlot.NIGHT,
    ),
    Frequency.TWICE_DAILY: (TimeSlot.MORNING, TimeSlot.EVENING),
    Frequency.ONCE_DAILY: (TimeSlot.MORNING,),
    Frequency.EVERY_12H: (TimeSlot.MORNING, TimeSlot.EVENING),
    Frequency.EVERY_12H_OFFSET: (TimeSlot.LATE_MORNING, TimeSlot.LATE_NIGHT),
}

TRIGGER_WINDOW_MINUTES = 15
STAGGER_MINUTES = 6
MINUTES_PER_DAY = 24 * 60

# Eye-drop locations are staggered first, in this order; oral doses last.
LOCATION_ORDER: tuple[str, ...] = ("LEFT eye", "RIGHT eye", "ORAL")

LOCATION_LABELS: dict[str, str] = {
    "LEFT eye": "👁️ LEFT",
    "RIGHT eye": "👁️ RIGHT",
    "ORAL": "💊 ORAL",
}


def slot_minute(slot: TimeSlot) -> int:
    """Return the slot's minute of day."""
    slot_time = SLOT_TIMES[slot]
    return slot_time.hour * 60 + slot_time.minute


def is_eye_location(location: str) -> bool:
    return "eye" in location.lower()


def location_rank(location: str) -> tuple[int, int, str]:
    """Sort key: eye sites before everything else, known locations in fixed order."""
    known = (
        LOCATION_ORDER.index(location)
        if location in LOCATION_ORDER
        else len(LOCATION_ORDER)
    )
    return (0 if is_eye_location(location) else 1, known, location)


__all__ = [
    "FREQUENCY_SLOTS",
    "Frequency",
    "LOCATION_LABELS",
    "LOCATION_ORDER",
    "MINUTES_PER_DAY",
    "SLOT_TIMES",
    "STAGGER_MINUTES",
    "TRIGGER_WINDOW_MINUTES",
    "TimeSlot",
    "is_eye_location",
    "location_rank",
    "slot_minute",
]
