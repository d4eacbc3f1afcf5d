"""API tests for the inbound WhatsApp and Messenger webhooks."""

from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest
from httpx import AsyncClient

from med_reminders.integrations import MessengerClient, TwilioWhatsAppClient
from med_reminders.main import app
from med_reminders.security.signatures import messenger_signature
from med_reminders.services.container import build_container

pytestmark = pytest.mark.asyncio

GRAPH_URL = "https://graph.facebook.com/v18.0/me/messages"


class Recorder:
    """Capture outbound HTTP calls made by the channel clients."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if "twilio" in request.url.host:
            return httpx.Response(201, json={"sid": f"SM{len(self.requests)}"})
        return httpx.Response(200, json={"message_id": f"mid.{len(self.requests)}"})

    def whatsapp_bodies(self) -> list[str]:
        return [
            parse_qs(request.content.decode())["Body"][0]
            for request in self.requests
            if "twilio" in request.url.host
        ]

    def messenger_payloads(self) -> list[dict]:
        return [
            json.loads(request.content)
            for request in self.requests
            if "facebook" in request.url.host
        ]


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def live_channels(settings, catalog, store, clock, recorder):
    """Install a container whose channels talk to a mock transport."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    channels = [
        TwilioWhatsAppClient(
            http,
            account_sid="AC123",
            auth_token="token",
            from_number="+14155238886",
            recipients=["+15550001"],
        ),
        MessengerClient(
            http, page_access_token="page-token", recipients=["psid-1"], api_url=GRAPH_URL
        ),
    ]
    container = build_container(
        settings.model_copy(update={"fb_verify_token": "verify-me"}),
        catalog,
        store=store,
        channels=channels,
        clock=clock,
    )
    app.state.services = container
    return container


async def test_whatsapp_done_confirms_oldest(
    client: AsyncClient, live_channels, recorder, store
) -> None:
    await client.post("/api/v1/cron")
    recorder.requests.clear()

    response = await client.post(
        "/api/v1/webhooks/whatsapp",
        data={"Body": "Done", "From": "whatsapp:+15550001"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "processed": True,
        "action": "confirmed",
        "medication": "Ofloxacin 0.3%",
        "remaining": 6,
    }
    assert recorder.whatsapp_bodies() == [
        "✅ Confirmed: Ofloxacin 0.3%\n\n⏳ 6 more medication(s) pending"
    ]
    to = parse_qs(recorder.requests[0].content.decode())["To"][0]
    assert to == "whatsapp:+15550001"
    assert len(await store.get_pending()) == 6


async def test_whatsapp_unrecognised_text_gets_help(
    client: AsyncClient, live_channels, recorder, store
) -> None:
    await client.post("/api/v1/cron")
    recorder.requests.clear()

    response = await client.post(
        "/api/v1/webhooks/whatsapp",
        data={"Body": "i am done with dinner", "From": "whatsapp:+15550001"},
    )

    assert response.json() == {"processed": True, "action": "help_sent"}
    assert recorder.whatsapp_bodies()[0].startswith("🤔 I didn't understand that.")
    assert len(await store.get_pending()) == 7


async def test_whatsapp_status_and_nothing_pending(
    client: AsyncClient, live_channels, recorder
) -> None:
    status_response = await client.post(
        "/api/v1/webhooks/whatsapp", data={"Body": "status", "From": "+15550001"}
    )
    assert status_response.json()["action"] == "status"

    done = await client.post(
        "/api/v1/webhooks/whatsapp", data={"Body": "ok", "From": "+15550001"}
    )
    assert done.json()["action"] == "none_pending"
    assert recorder.whatsapp_bodies()[-1] == "✅ No pending medications to confirm. Great job!"


async def test_messenger_verification(client: AsyncClient, live_channels) -> None:
    ok = await client.get(
        "/api/v1/webhooks/messenger",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "42"},
    )
    assert ok.status_code == 200
    assert ok.text == "42"

    bad = await client.get(
        "/api/v1/webhooks/messenger",
        params={"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "42"},
    )
    assert bad.status_code == 403


async def test_messenger_reply_confirms_and_responds(
    client: AsyncClient, live_channels, recorder, store
) -> None:
    await client.post("/api/v1/cron")
    recorder.requests.clear()
    body = {
        "object": "page",
        "entry": [
            {"messaging": [{"sender": {"id": "psid-1"}, "message": {"text": "👍"}}]}
        ],
    }

    response = await client.post("/api/v1/webhooks/messenger", json=body)

    assert response.json() == {"status": "ok"}
    payloads = recorder.messenger_payloads()
    assert payloads[0]["recipient"] == {"id": "psid-1"}
    assert payloads[0]["messaging_type"] == "RESPONSE"
    assert payloads[0]["message"]["text"].startswith("✅ Confirmed: Ofloxacin 0.3%")
    assert len(await store.get_pending()) == 6


async def test_messenger_ignores_non_page_objects(client: AsyncClient, live_channels) -> None:
    response = await client.post("/api/v1/webhooks/messenger", json={"object": "user"})
    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}


async def test_messenger_rejects_bad_json(client: AsyncClient, live_channels) -> None:
    response = await client.post(
        "/api/v1/webhooks/messenger",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400


async def test_messenger_signature_enforced_when_secret_set(
    client: AsyncClient, live_channels, store
) -> None:
    live_channels.settings = live_channels.settings.model_copy(
        update={"fb_app_secret": "app-secret"}
    )
    raw = json.dumps({"object": "page", "entry": []}).encode()

    unsigned = await client.post(
        "/api/v1/webhooks/messenger",
        content=raw,
        headers={"Content-Type": "application/json"},
    )
    assert unsigned.status_code == 403

    signed = await client.post(
        "/api/v1/webhooks/messenger",
        content=raw,
        headers={
            "Content-Type": "application/json",
            "X-Hub-Signature-256": messenger_signature(raw, "app-secret"),
        },
    )
    assert signed.status_code == 200
    assert signed.json() == {"status": "ok"}
