"""API tests for the catalog, schedule overrides and day preview."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def test_list_medications(client: AsyncClient) -> None:
    response = await client.get("/api/v1/medications")
    assert response.status_code == 200
    payload = response.json()
    assert len(payload) == 9
    assert payload[0]["id"] == "ofloxacin"
    assert all(item["has_custom_schedule"] is False for item in payload)


async def test_medication_detail_and_404(client: AsyncClient) -> None:
    detail = await client.get("/api/v1/medications/atropine")
    assert detail.status_code == 200
    payload = detail.json()
    assert payload["medication"]["frequency"] == "tapering"
    assert payload["custom_schedule"] is None
    assert payload["time_slots"]["MORNING"] == "8:30 AM"
    assert "as_needed" in payload["available_frequencies"]

    missing = await client.get("/api/v1/medications/unknown")
    assert missing.status_code == 404


async def test_override_changes_schedule_preview(client: AsyncClient) -> None:
    before = await client.get("/api/v1/schedule", params={"day": 3})
    midday = [med["id"] for med in before.json()["schedule"]["MIDDAY"]["medications"]]
    assert "ofloxacin" in midday

    update = await client.put(
        "/api/v1/medications/ofloxacin/schedule", json={"frequency": "1x_daily"}
    )
    assert update.status_code == 200
    payload = update.json()
    assert payload["custom_schedule"]["frequency"] == "1x_daily"
    assert payload["effective_schedule"]["overridden"] is True

    after = await client.get("/api/v1/schedule", params={"day": 3})
    schedule = after.json()["schedule"]
    assert "ofloxacin" not in [med["id"] for med in schedule["MIDDAY"]["medications"]]
    assert "ofloxacin" in [med["id"] for med in schedule["MORNING"]["medications"]]

    listing = await client.get("/api/v1/medications")
    ofloxacin = next(item for item in listing.json() if item["id"] == "ofloxacin")
    assert ofloxacin["has_custom_schedule"] is True
    assert ofloxacin["frequency"] == "1x_daily"

    removed = await client.delete("/api/v1/medications/ofloxacin/schedule")
    assert removed.json() == {"deleted": True}
    restored = await client.get("/api/v1/schedule", params={"day": 3})
    assert "ofloxacin" in [
        med["id"] for med in restored.json()["schedule"]["MIDDAY"]["medications"]
    ]


async def test_deactivating_stops_generation(client: AsyncClient) -> None:
    await client.put("/api/v1/medications/amoxicillin/schedule", json={"active": False})
    response = await client.post("/api/v1/cron")
    ids = [item["id"] for item in response.json()["reminders"]]
    assert response.json()["count"] == 6
    assert "2026-01-14-MORNING-amoxicillin" not in ids


async def test_tapering_requires_table(client: AsyncClient) -> None:
    response = await client.put(
        "/api/v1/medications/ofloxacin/schedule", json={"frequency": "tapering"}
    )
    assert response.status_code == 400


async def test_invalid_slot_is_rejected(client: AsyncClient) -> None:
    response = await client.put(
        "/api/v1/medications/ofloxacin/schedule", json={"time_slots": ["DAWN"]}
    )
    assert response.status_code == 422


async def test_schedule_defaults_to_today(client: AsyncClient) -> None:
    response = await client.get("/api/v1/schedule")
    payload = response.json()
    assert payload["day_number"] == 3
    assert payload["date"] == "2026-01-14"
    assert set(payload["schedule"]) == {
        "MORNING",
        "LATE_MORNING",
        "MIDDAY",
        "EVENING",
        "LATE_NIGHT",
        "NIGHT",
    }
    assert payload["schedule"]["NIGHT"]["time"] == "00:00:00"


async def test_schedule_rejects_day_zero(client: AsyncClient) -> None:
    response = await client.get("/api/v1/schedule", params={"day": 0})
    assert response.status_code == 400
