"""Resolve inbound replies and dashboard actions against the pending set."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from med_reminders.core.slots import TimeSlot
from med_reminders.schemas.medication import Catalog, MedicationSnapshot
from med_reminders.schemas.reminder import ConfirmationResult, Reminder
from med_reminders.services.notification_service import (
    HELP_REPLY,
    NOT_FOUND_MESSAGE,
    NOTHING_PENDING_REPLY,
    build_confirmation_reply,
    build_status_reply,
)
from med_reminders.services.store import PendingStore, StoreUnavailableError

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_REPLY = "⚠️ Couldn't reach the reminder store. Please try again in a minute."

CONFIRMATION_WORDS: tuple[str, ...] = (
    "done",
    "yes",
    "good",
    "ack",
    "completed",
    "complete",
    "ok",
    "okay",
    "yep",
    "yup",
    "confirmed",
    "taken",
    "gave",
    "given",
    "finished",
    "did",
    "did it",
    "y",
    "👍",
    "✅",
    "✓",
    "check",
)

STATUS_WORDS: tuple[str, ...] = ("status", "pending", "list")


def _normalise(text: str | None) -> str:
    return (text or "").strip().lower()


def classify_inbound_text(text: str | None) -> bool:
    """Return True when ``text`` is a confirmation.

    Matches a vocabulary token exactly or as a prefix followed by a space,
    so ``"done now"`` confirms but ``"i am done with dinner"`` does not.
    """
    normalised = _normalise(text)
    if not normalised:
        return False
    return any(
        normalised == word or normalised.startswith(f"{word} ")
        for word in CONFIRMATION_WORDS
    )


def is_status_request(text: str | None) -> bool:
    return _normalise(text) in STATUS_WORDS


def _unavailable() -> ConfirmationResult:
    return ConfirmationResult(
        confirmed=False,
        reason="store_unavailable",
        message="Store unavailable; try again shortly",
    )


async def _confirm(
    store: PendingStore,
    reminder: Reminder,
    *,
    now: datetime,
    on_date: date,
) -> ConfirmationResult:
    # Record before removing; records upsert on (date, slot, medication).
    await store.record_confirmation(
        reminder.medication_id,
        reminder.slot,
        on_date,
        reminder.medication,
        confirmed_at=now,
    )
    survivors = await store.remove_from_pending(reminder_id=reminder.id)
    logger.info(
        "Confirmed %s (%s); %s still pending", reminder.medication.name, reminder.id, len(survivors)
    )
    return ConfirmationResult(
        confirmed=True,
        reminder_id=reminder.id,
        medication=reminder.medication.name,
        remaining=len(survivors),
        confirmed_at=now,
    )


def _reminder_date(reminder: Reminder, fallback: date) -> date:
    """The calendar date encoded in a reminder id (``YYYY-MM-DD-...``)."""
    try:
        return date.fromisoformat(reminder.id[:10])
    except ValueError:
        return fallback


async def confirm_by_id(
    store: PendingStore,
    reminder_id: str,
    *,
    now: datetime | None = None,
) -> ConfirmationResult:
    """Confirm exactly the pending entry with ``reminder_id``."""
    now = now or datetime.now(UTC)
    try:
        pending = await store.get_pending()
        reminder = next((item for item in pending if item.id == reminder_id), None)
        if reminder is None:
            logger.info("Confirm requested for unknown reminder %s", reminder_id)
            return ConfirmationResult(
                confirmed=False, reason="not_found", message=NOT_FOUND_MESSAGE
            )
        return await _confirm(
            store, reminder, now=now, on_date=_reminder_date(reminder, now.date())
        )
    except StoreUnavailableError:
        logger.warning("Confirm by id %s failed: store unavailable", reminder_id)
        return _unavailable()


async def confirm_oldest_pending(
    store: PendingStore,
    *,
    now: datetime | None = None,
) -> ConfirmationResult:
    """Confirm the earliest-inserted pending entry; used for chat replies only."""
    now = now or datetime.now(UTC)
    try:
        pending = await store.get_pending()
        if not pending:
            return ConfirmationResult(confirmed=False, reason="nothing_pending")
        oldest = pending[0]
        return await _confirm(
            store, oldest, now=now, on_date=_reminder_date(oldest, now.date())
        )
    except StoreUnavailableError:
        logger.warning("Confirm oldest failed: store unavailable")
        return _unavailable()


async def confirm_early(
    store: PendingStore,
    catalog: Catalog,
    medication_id: str,
    slot: TimeSlot,
    on_date: date,
    *,
    now: datetime | None = None,
) -> ConfirmationResult:
    """Record a dose given ahead of its slot.

    Raises ``ValueError`` for an unknown medication id.
    """
    medication = catalog.get(medication_id)
    if medication is None:
        raise ValueError(f"Unknown medication {medication_id!r}")
    now = now or datetime.now(UTC)
    try:
        await store.record_confirmation(
            medication_id,
            slot,
            on_date,
            MedicationSnapshot.of(medication),
            early=True,
            confirmed_at=now,
        )
        survivors = await store.remove_from_pending(medication_id=medication_id, slot=slot)
    except StoreUnavailableError:
        logger.warning("Early confirmation of %s failed: store unavailable", medication_id)
        return _unavailable()
    logger.info("Early confirmation of %s for %s on %s", medication_id, slot.value, on_date)
    return ConfirmationResult(
        confirmed=True,
        medication=medication.name,
        remaining=len(survivors),
        confirmed_at=now,
    )


@dataclass(slots=True)
class InboundOutcome:
    """What a chat channel should reply after an inbound message."""

    action: str
    reply: str
    result: ConfirmationResult | None = None


async def handle_inbound_text(
    store: PendingStore,
    text: str | None,
    *,
    now: datetime | None = None,
) -> InboundOutcome:
    """Shared inbound flow for every chat channel."""
    if is_status_request(text):
        try:
            pending = await store.get_pending()
        except StoreUnavailableError:
            return InboundOutcome(action="store_unavailable", reply=STORE_UNAVAILABLE_REPLY)
        return InboundOutcome(
            action="status",
            reply=build_status_reply([item.medication.name for item in pending]),
        )
    if not classify_inbound_text(text):
        return InboundOutcome(action="help_sent", reply=HELP_REPLY)
    result = await confirm_oldest_pending(store, now=now)
    if result.confirmed:
        return InboundOutcome(
            action="confirmed",
            reply=build_confirmation_reply(result.medication or "", result.remaining or 0),
            result=result,
        )
    if result.reason == "nothing_pending":
        return InboundOutcome(action="none_pending", reply=NOTHING_PENDING_REPLY, result=result)
    return InboundOutcome(action="store_unavailable", reply=STORE_UNAVAILABLE_REPLY, result=result)


def reminder_age_minutes(reminder: Reminder, now: datetime) -> int | None:
    if reminder.sent_at is None:
        return None
    sent_at = reminder.sent_at
    if sent_at.tzinfo is None:
        sent_at = sent_at.replace(tzinfo=UTC)
    return int((now - sent_at) / timedelta(minutes=1))


def get_resend_candidates(
    pending: Sequence[Reminder],
    threshold_minutes: int = 30,
    *,
    now: datetime,
) -> list[Reminder]:
    """Dispatched reminders that have waited longer than ``threshold_minutes``.

    Entries never successfully sent (``sent_at`` is None) are not candidates.
    """
    threshold = timedelta(minutes=threshold_minutes)
    candidates: list[Reminder] = []
    for reminder in pending:
        if reminder.sent_at is None:
            continue
        sent_at = reminder.sent_at
        if sent_at.tzinfo is None:
            sent_at = sent_at.replace(tzinfo=UTC)
        if now - sent_at > threshold:
            candidates.append(reminder)
    return candidates


__all__ = [
    "CONFIRMATION_WORDS",
    "InboundOutcome",
    "STATUS_WORDS",
    "STORE_UNAVAILABLE_REPLY",
    "handle_inbound_text",
    "classify_inbound_text",
    "confirm_by_id",
    "confirm_early",
    "confirm_oldest_pending",
    "get_resend_candidates",
    "is_status_request",
    "reminder_age_minutes",
]
