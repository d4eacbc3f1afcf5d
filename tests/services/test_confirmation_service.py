"""Tests for inbound classification and confirmation resolution."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest
import pytest_asyncio

from med_reminders.core.slots import TimeSlot
from med_reminders.schemas.medication import MedicationSnapshot
from med_reminders.schemas.reminder import Reminder
from med_reminders.services.confirmation_service import (
    classify_inbound_text,
    confirm_by_id,
    confirm_early,
    confirm_oldest_pending,
    get_resend_candidates,
    handle_inbound_text,
)
from med_reminders.services.memory_store import InMemoryStore
from med_reminders.services.notification_service import HELP_REPLY, NOTHING_PENDING_REPLY
from med_reminders.services.store import StoreUnavailableError

NOW = datetime(2026, 1, 14, 17, 30, tzinfo=UTC)


def _reminder(name: str, *, sent_at: datetime | None = None) -> Reminder:
    return Reminder(
        id=f"2026-01-14-MORNING-{name}",
        medication_id=name,
        medication=MedicationSnapshot(name=name.upper(), dose="1", location="LEFT eye"),
        slot=TimeSlot.MORNING,
        day_number=3,
        scheduled_time="8:30 AM",
        message=f"take {name}",
        sent_at=sent_at,
    )


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("done", True),
        ("DONE", True),
        ("  Done  ", True),
        ("done now", True),
        ("i am done with dinner", False),
        ("ok", True),
        ("okay then", True),
        ("did it", True),
        ("👍", True),
        ("✅", True),
        ("y", True),
        ("yes please", True),
        ("yesterday was fine", False),
        ("checked", False),
        ("status", False),
        ("", False),
        (None, False),
    ],
)
def test_classify_inbound_text(text: str | None, expected: bool) -> None:
    assert classify_inbound_text(text) is expected


@pytest_asyncio.fixture()
async def four_pending(store):
    reminders = [_reminder(name, sent_at=NOW) for name in ("a", "b", "c", "d")]
    await store.add_pending(reminders)
    return reminders


@pytest.mark.asyncio
async def test_confirm_by_id_removes_only_that_entry(store, four_pending) -> None:
    result = await confirm_by_id(store, four_pending[3].id, now=NOW)

    assert result.confirmed is True
    assert result.medication == "D"
    assert result.remaining == 3
    assert result.confirmed_at == NOW
    assert [r.medication_id for r in await store.get_pending()] == ["a", "b", "c"]
    history = await store.get_confirmation_history(date(2026, 1, 14))
    assert [record.medication_id for record in history] == ["d"]
    assert history[0].early is False


@pytest.mark.asyncio
async def test_confirm_oldest_removes_first_entry(store, four_pending) -> None:
    result = await confirm_oldest_pending(store, now=NOW)

    assert result.confirmed is True
    assert result.medication == "A"
    assert [r.medication_id for r in await store.get_pending()] == ["b", "c", "d"]


@pytest.mark.asyncio
async def test_confirm_unknown_id_is_not_found(store, four_pending) -> None:
    result = await confirm_by_id(store, "2026-01-14-MORNING-zzz", now=NOW)
    assert result.confirmed is False
    assert result.reason == "not_found"
    assert result.message == "Already handled or unknown reminder"
    assert len(await store.get_pending()) == 4


@pytest.mark.asyncio
async def test_double_confirm_is_not_found(store, four_pending) -> None:
    first = await confirm_by_id(store, four_pending[0].id, now=NOW)
    second = await confirm_by_id(store, four_pending[0].id, now=NOW)
    assert first.confirmed is True
    assert second.reason == "not_found"


@pytest.mark.asyncio
async def test_confirm_oldest_with_nothing_pending(store) -> None:
    result = await confirm_oldest_pending(store, now=NOW)
    assert result.confirmed is False
    assert result.reason == "nothing_pending"


@pytest.mark.asyncio
async def test_store_failures_become_results() -> None:
    class BrokenStore:
        async def get_pending(self):
            raise StoreUnavailableError("down")

    by_id = await confirm_by_id(BrokenStore(), "x", now=NOW)
    oldest = await confirm_oldest_pending(BrokenStore(), now=NOW)
    assert by_id.reason == "store_unavailable"
    assert oldest.reason == "store_unavailable"


@pytest.mark.asyncio
async def test_confirm_early_records_and_drops_pending(store, catalog) -> None:
    atropine = _reminder("atropine", sent_at=NOW)
    await store.add_pending([atropine, _reminder("plasma", sent_at=NOW)])

    result = await confirm_early(
        store, catalog, "atropine", TimeSlot.MORNING, date(2026, 1, 14), now=NOW
    )

    assert result.confirmed is True
    assert result.medication == "Atropine 1%"
    assert [r.medication_id for r in await store.get_pending()] == ["plasma"]
    history = await store.get_confirmation_history(date(2026, 1, 14))
    assert history[0].early is True


@pytest.mark.asyncio
async def test_confirm_early_unknown_medication(store, catalog) -> None:
    with pytest.raises(ValueError):
        await confirm_early(store, catalog, "nope", TimeSlot.MORNING, date(2026, 1, 14))


def test_resend_candidates_threshold() -> None:
    stale = _reminder("stale", sent_at=NOW - timedelta(minutes=31))
    fresh = _reminder("fresh", sent_at=NOW - timedelta(minutes=29))
    unsent = _reminder("unsent", sent_at=None)
    ancient_unsent = _reminder("ancient", sent_at=None)

    candidates = get_resend_candidates([stale, fresh, unsent, ancient_unsent], 30, now=NOW)

    assert [r.medication_id for r in candidates] == ["stale"]


def test_resend_candidates_default_threshold() -> None:
    stale = _reminder("stale", sent_at=NOW - timedelta(hours=2))
    assert get_resend_candidates([stale], now=NOW) == [stale]


@pytest.mark.asyncio
async def test_handle_inbound_text_replies(store, four_pending) -> None:
    help_outcome = await handle_inbound_text(store, "what time is it", now=NOW)
    assert help_outcome.action == "help_sent"
    assert help_outcome.reply == HELP_REPLY

    status_outcome = await handle_inbound_text(store, "status", now=NOW)
    assert status_outcome.action == "status"
    assert "4 medication(s) pending" in status_outcome.reply

    confirmed = await handle_inbound_text(store, "done", now=NOW)
    assert confirmed.action == "confirmed"
    assert confirmed.reply == "✅ Confirmed: A\n\n⏳ 3 more medication(s) pending"

    for _ in range(3):
        last = await handle_inbound_text(store, "ok", now=NOW)
    assert last.reply.endswith("🎉 All medications for this slot confirmed!")

    none_left = await handle_inbound_text(store, "yes", now=NOW)
    assert none_left.action == "none_pending"
    assert none_left.reply == NOTHING_PENDING_REPLY


class _RecordFailsStore(InMemoryStore):
    async def record_confirmation(self, *args, **kwargs):
        raise StoreUnavailableError("write refused")


@pytest.mark.asyncio
async def test_failed_record_keeps_reminder_pending(clock) -> None:
    store = _RecordFailsStore(clock=clock)
    reminders = [_reminder(name, sent_at=NOW) for name in ("a", "b")]
    await store.add_pending(reminders)

    result = await confirm_by_id(store, reminders[1].id, now=NOW)

    assert result.reason == "store_unavailable"
    assert [r.id for r in await store.get_pending()] == [r.id for r in reminders]
    assert await store.get_confirmation_history(date(2026, 1, 14)) == []


@pytest.mark.asyncio
async def test_failed_early_record_keeps_reminder_pending(clock, catalog) -> None:
    store = _RecordFailsStore(clock=clock)
    await store.add_pending([_reminder("atropine", sent_at=NOW)])

    result = await confirm_early(
        store, catalog, "atropine", TimeSlot.MORNING, date(2026, 1, 14), now=NOW
    )

    assert result.reason == "store_unavailable"
    assert [r.medication_id for r in await store.get_pending()] == ["atropine"]
