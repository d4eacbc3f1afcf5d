"""Message templates and fan-out to the configured chat channels."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import time
from typing import Protocol, runtime_checkable

from med_reminders.core.slots import LOCATION_LABELS
from med_reminders.schemas.medication import MedicationSnapshot
from med_reminders.schemas.reminder import DeliveryResult

logger = logging.getLogger(__name__)


HELP_REPLY = (
    "🤔 I didn't understand that.\n\n"
    'Reply with "done", "yes", or "ok" to confirm the medication.\n'
    'Reply "status" to see pending medications.'
)
NOTHING_PENDING_REPLY = "✅ No pending medications to confirm. Great job!"
NOT_FOUND_MESSAGE = "Already handled or unknown reminder"


class ChannelConfigurationError(RuntimeError):
    """Raised when a channel is asked to send without credentials."""


def format_time(value: time) -> str:
    """Render a wall-clock time as ``8:30 AM``."""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def location_label(location: str) -> str:
    return LOCATION_LABELS.get(location, location)


def build_reminder_message(
    medication: MedicationSnapshot, *, display_time: str, day_number: int
) -> str:
    """Render the per-medication reminder text."""
    message = f"⏰ {display_time} - Day {day_number}\n\n"
    message += f"{location_label(medication.location)}\n"
    message += f"{medication.name}\n"
    message += f"Dose: {medication.dose}\n"
    if medication.notes:
        message += f"\n{medication.notes}\n"
    message += '\n✅ Reply "done" to confirm'
    return message


def build_resend_message(medication_name: str, original_message: str) -> str:
    return (
        f"⏰ REMINDER: {medication_name} not yet confirmed!\n\n"
        f"{original_message}\n\n"
        '⚠️ Please reply "done" when taken'
    )


def build_confirmation_reply(medication_name: str, remaining: int) -> str:
    reply = f"✅ Confirmed: {medication_name}"
    if remaining > 0:
        reply += f"\n\n⏳ {remaining} more medication(s) pending"
    else:
        reply += "\n\n🎉 All medications for this slot confirmed!"
    return reply


def build_status_reply(pending_names: Sequence[str]) -> str:
    if not pending_names:
        return NOTHING_PENDING_REPLY
    lines = "\n".join(f"• {name}" for name in pending_names)
    return f"⏳ {len(pending_names)} medication(s) pending:\n\n{lines}"


@runtime_checkable
class ChannelSender(Protocol):
    """One outbound chat channel."""

    name: str

    @property
    def configured(self) -> bool: ...

    async def send(self, message: str) -> list[DeliveryResult]: ...


class NotificationService:
    """Send one rendered message to every configured channel."""

    def __init__(self, channels: Sequence[ChannelSender]) -> None:
        self._channels = list(channels)

    @property
    def channels(self) -> list[ChannelSender]:
        return list(self._channels)

    def channel(self, name: str) -> ChannelSender | None:
        for channel in self._channels:
            if channel.name == name:
                return channel
        return None

    def channel_status(self) -> dict[str, dict[str, bool]]:
        return {
            channel.name: {"enabled": True, "configured": channel.configured}
            for channel in self._channels
        }

    async def send(self, message: str) -> list[DeliveryResult]:
        """Deliver ``message`` through every configured channel.

        Unconfigured channels are skipped. Per-recipient failures come back as
        unsuccessful results; an unexpected channel error is logged and
        reported as a failure for that channel.
        """
        results: list[DeliveryResult] = []
        for channel in self._channels:
            if not channel.configured:
                logger.debug("Channel %s not configured; skipping", channel.name)
                continue
            try:
                results.extend(await channel.send(message))
            except ChannelConfigurationError as exc:
                logger.warning("Channel %s misconfigured: %s", channel.name, exc)
                results.append(
                    DeliveryResult(
                        channel=channel.name, recipient="*", success=False, error=str(exc)
                    )
                )
            except Exception:  # pragma: no cover
                logger.exception("Channel %s failed unexpectedly", channel.name)
                results.append(
                    DeliveryResult(
                        channel=channel.name,
                        recipient="*",
                        success=False,
                        error="unexpected channel error",
                    )
                )
        succeeded = sum(1 for result in results if result.success)
        logger.info(
            "Dispatch complete: %s delivered, %s failed", succeeded, len(results) - succeeded
        )
        return results


def any_delivered(results: Sequence[DeliveryResult]) -> bool:
    return any(result.success for result in results)


__all__ = [
    "ChannelConfigurationError",
    "ChannelSender",
    "HELP_REPLY",
    "NOTHING_PENDING_REPLY",
    "NOT_FOUND_MESSAGE",
    "NotificationService",
    "any_delivered",
    "build_confirmation_reply",
    "build_reminder_message",
    "build_resend_message",
    "build_status_reply",
    "format_time",
    "location_label",
]
