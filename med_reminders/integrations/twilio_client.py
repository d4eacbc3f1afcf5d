"""Twilio WhatsApp sender over the Messages REST API."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from med_reminders.schemas.reminder import DeliveryResult
from med_reminders.services.notification_service import ChannelConfigurationError

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def whatsapp_address(number: str) -> str:
    number = number.strip()
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


class TwilioWhatsAppClient:
    """Send one message to every configured WhatsApp recipient."""

    name = "whatsapp"

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str,
        recipients: Sequence[str],
        api_base: str = TWILIO_API_BASE,
    ) -> None:
        self._http = http
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from = whatsapp_address(from_number)
        self._recipients = [number for number in recipients if number]
        self._api_base = api_base.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._account_sid and self._auth_token and self._recipients)

    @property
    def messages_url(self) -> str:
        return f"{self._api_base}/Accounts/{self._account_sid}/Messages.json"

    async def send(self, message: str) -> list[DeliveryResult]:
        if not (self._account_sid and self._auth_token):
            raise ChannelConfigurationError(
                "Missing TWILIO_ACCOUNT_SID or TWILIO_AUTH_TOKEN"
            )
        logger.info("Sending WhatsApp message to %s recipients", len(self._recipients))
        results = [await self._send_one(number, message) for number in self._recipients]
        failed = sum(1 for result in results if not result.success)
        logger.info("WhatsApp complete: %s sent, %s failed", len(results) - failed, failed)
        return results

    async def send_to(self, number: str, message: str) -> DeliveryResult:
        if not (self._account_sid and self._auth_token):
            raise ChannelConfigurationError(
                "Missing TWILIO_ACCOUNT_SID or TWILIO_AUTH_TOKEN"
            )
        return await self._send_one(number, message)

    async def _send_one(self, number: str, message: str) -> DeliveryResult:
        to = whatsapp_address(number)
        try:
            response = await self._http.post(
                self.messages_url,
                data={"From": self._from, "To": to, "Body": message},
                auth=(self._account_sid or "", self._auth_token or ""),
            )
        except httpx.HTTPError as exc:
            logger.warning("WhatsApp send to %s failed: %s", number, exc)
            return DeliveryResult(
                channel=self.name, recipient=number, success=False, error=str(exc)
            )
        if response.is_success:
            sid = response.json().get("sid")
            logger.debug("WhatsApp send to %s accepted as %s", number, sid)
            return DeliveryResult(
                channel=self.name, recipient=number, success=True, message_id=sid
            )
        error = _error_message(response)
        logger.warning("WhatsApp send to %s rejected: %s", number, error)
        return DeliveryResult(channel=self.name, recipient=number, success=False, error=error)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text}"
    return f"HTTP {response.status_code}: {payload.get('message', response.text)}"


__all__ = ["TWILIO_API_BASE", "TwilioWhatsAppClient", "whatsapp_address"]
