"""Scheduled trigger: resend stale reminders, then claim and dispatch the active slot."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, datetime

from med_reminders.core.slots import TimeSlot
from med_reminders.schemas.reminder import Reminder, TriggerResult
from med_reminders.services.confirmation_service import get_resend_candidates
from med_reminders.services.notification_service import (
    NotificationService,
    any_delivered,
    build_resend_message,
)
from med_reminders.services.reminder_service import ReminderGenerator
from med_reminders.services.store import PendingStore, StoreUnavailableError

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


async def resend_unconfirmed(
    now: datetime,
    *,
    store: PendingStore,
    notifier: NotificationService,
    threshold_minutes: int,
    delay_seconds: float = 0.0,
    sleep: Sleeper = asyncio.sleep,
) -> int:
    """Re-send reminders still pending past the threshold; returns how many went out."""
    try:
        pending = await store.get_pending()
    except StoreUnavailableError:
        logger.warning("Skipping resend check: store unavailable")
        return 0
    candidates = get_resend_candidates(pending, threshold_minutes, now=now)
    if not candidates:
        return 0
    logger.info("Re-sending %s unconfirmed reminders", len(candidates))
    resent: list[str] = []
    for index, reminder in enumerate(candidates):
        if index and delay_seconds:
            await sleep(delay_seconds)
        results = await notifier.send(
            build_resend_message(reminder.medication.name, reminder.message)
        )
        if any_delivered(results):
            resent.append(reminder.id)
        else:
            logger.warning("Resend of %s reached no recipient", reminder.id)
    if resent:
        await store.mark_sent(resent, now)
    return len(resent)


async def _confirmed_today(
    store: PendingStore, slot: TimeSlot, on_date: date
) -> set[str]:
    try:
        history = await store.get_confirmation_history(on_date)
    except StoreUnavailableError:
        logger.warning("Confirmation history unavailable; sending every due reminder")
        return set()
    return {record.medication_id for record in history if record.slot == slot}


async def dispatch(
    reminders: Sequence[Reminder],
    *,
    notifier: NotificationService,
    sent_at: datetime,
    delay_seconds: float = 0.0,
    sleep: Sleeper = asyncio.sleep,
) -> list[Reminder]:
    """Send each reminder; return the ones at least one recipient received."""
    delivered: list[Reminder] = []
    for index, reminder in enumerate(reminders):
        if index and delay_seconds:
            await sleep(delay_seconds)
        results = await notifier.send(reminder.message)
        if any_delivered(results):
            delivered.append(reminder.model_copy(update={"sent_at": sent_at}))
        else:
            logger.warning("Reminder %s reached no recipient; not tracking it", reminder.id)
    return delivered


async def run_trigger(
    now: datetime,
    *,
    store: PendingStore,
    generator: ReminderGenerator,
    notifier: NotificationService,
    resend_threshold_minutes: int = 30,
    dispatch_delay_seconds: float = 0.0,
    sleep: Sleeper = asyncio.sleep,
) -> TriggerResult:
    """One trigger tick. Safe to call more often than the slot grid."""
    resent = await resend_unconfirmed(
        now,
        store=store,
        notifier=notifier,
        threshold_minutes=resend_threshold_minutes,
        delay_seconds=dispatch_delay_seconds,
        sleep=sleep,
    )

    resolver = generator.resolver
    slot = resolver.active_slot(now)
    if slot is None:
        return TriggerResult(resent=resent, reason="no_active_slot")

    on_date = resolver.local_date(now)
    try:
        claimed = await store.claim_slot(slot, on_date)
    except StoreUnavailableError:
        logger.warning("Could not claim %s on %s: store unavailable", slot.value, on_date)
        return TriggerResult(resent=resent, slot=slot, reason="claim_unavailable")
    if not claimed:
        logger.info("%s on %s already claimed; nothing to do", slot.value, on_date)
        return TriggerResult(resent=resent, slot=slot, reason="already_claimed")

    generation = await generator.generate_for_slot(slot, on_date)
    confirmed = await _confirmed_today(store, slot, on_date)
    reminders = [r for r in generation.reminders if r.medication_id not in confirmed]
    if not reminders:
        logger.info("No medications due for %s on %s", slot.value, on_date)
        return TriggerResult(
            resent=resent,
            slot=slot,
            day_number=generation.day_number,
            reason="nothing_due",
        )

    delivered = await dispatch(
        reminders,
        notifier=notifier,
        sent_at=now,
        delay_seconds=dispatch_delay_seconds,
        sleep=sleep,
    )
    if not delivered:
        logger.warning("Every reminder for %s failed to send; releasing claim", slot.value)
        try:
            await store.release_slot(slot, on_date)
        except StoreUnavailableError:
            logger.warning("Could not release claim for %s on %s", slot.value, on_date)
        return TriggerResult(
            resent=resent,
            slot=slot,
            day_number=generation.day_number,
            reason="dispatch_failed",
        )

    pending = await store.add_pending(delivered)
    logger.info(
        "Sent %s/%s reminders for %s; %s pending",
        len(delivered),
        len(reminders),
        slot.value,
        len(pending),
    )
    return TriggerResult(
        resent=resent,
        slot=slot,
        day_number=generation.day_number,
        sent=True,
        count=len(delivered),
        pending_count=len(pending),
        reminders=[
            {
                "id": reminder.id,
                "medication": reminder.medication.name,
                "time": reminder.scheduled_time,
            }
            for reminder in delivered
        ],
    )


__all__ = ["dispatch", "resend_unconfirmed", "run_trigger"]
