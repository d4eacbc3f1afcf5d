"""Inbound chat webhooks (Twilio WhatsApp and Facebook Messenger)."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Form, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from med_reminders.api.deps import WEBHOOK_RATE_DEP, ContainerDep
from med_reminders.integrations import MessengerClient, TwilioWhatsAppClient
from med_reminders.security.signatures import verify_messenger_signature
from med_reminders.services.confirmation_service import handle_inbound_text
from med_reminders.services.notification_service import ChannelConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/whatsapp", dependencies=[WEBHOOK_RATE_DEP], summary="Twilio WhatsApp reply")
async def whatsapp_webhook(
    container: ContainerDep,
    body: str = Form(default="", alias="Body"),
    sender: str = Form(default="", alias="From"),
) -> dict[str, Any]:
    logger.info("WhatsApp message from %s: %r", sender, body[:50])
    outcome = await handle_inbound_text(container.store, body, now=container.clock())
    channel = container.channel("whatsapp")
    if sender and isinstance(channel, TwilioWhatsAppClient):
        try:
            await channel.send_to(sender, outcome.reply)
        except ChannelConfigurationError as exc:
            logger.warning("Cannot reply on WhatsApp: %s", exc)
    response: dict[str, Any] = {"processed": True, "action": outcome.action}
    if outcome.result is not None and outcome.result.confirmed:
        response["medication"] = outcome.result.medication
        response["remaining"] = outcome.result.remaining
    return response


@router.get("/messenger", summary="Messenger webhook verification")
async def messenger_verify(
    container: ContainerDep,
    mode: str | None = Query(default=None, alias="hub.mode"),
    token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
) -> PlainTextResponse:
    expected = container.settings.fb_verify_token
    if mode == "subscribe" and expected and token == expected:
        logger.info("Messenger webhook verified")
        return PlainTextResponse(challenge or "")
    logger.warning("Messenger webhook verification failed")
    return PlainTextResponse("Verification failed", status_code=status.HTTP_403_FORBIDDEN)


def _messaging_events(payload: dict[str, Any]) -> list[tuple[str, str]]:
    events: list[tuple[str, str]] = []
    for entry in payload.get("entry") or []:
        for event in entry.get("messaging") or []:
            psid = (event.get("sender") or {}).get("id")
            text = (event.get("message") or {}).get("text")
            if psid and text:
                events.append((psid, text))
    return events


@router.post("/messenger", dependencies=[WEBHOOK_RATE_DEP], summary="Messenger reply")
async def messenger_webhook(request: Request, container: ContainerDep) -> dict[str, str]:
    raw = await request.body()
    app_secret = container.settings.fb_app_secret
    if app_secret and not verify_messenger_signature(
        raw, request.headers.get("X-Hub-Signature-256"), app_secret
    ):
        logger.warning("Rejected Messenger webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")
    try:
        payload = json.loads(raw or b"{}")
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body"
        ) from exc
    if not isinstance(payload, dict) or payload.get("object") != "page":
        return {"status": "ignored"}

    channel = container.channel("messenger")
    for psid, text in _messaging_events(payload):
        logger.info("Messenger message from %s: %r", psid, text[:50])
        outcome = await handle_inbound_text(container.store, text, now=container.clock())
        if not isinstance(channel, MessengerClient):
            continue
        try:
            await channel.send_to(psid, outcome.reply)
        except ChannelConfigurationError as exc:
            logger.warning("Cannot reply on Messenger: %s", exc)
    return {"status": "ok"}
