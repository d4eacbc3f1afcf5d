"""Facebook Messenger sender over the Graph API send endpoint."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from med_reminders.schemas.reminder import DeliveryResult
from med_reminders.services.notification_service import ChannelConfigurationError

logger = logging.getLogger(__name__)


class MessengerClient:
    """Send reminders to page-scoped user ids.

    Messages are tagged ``CONFIRMED_EVENT_UPDATE`` so they may be delivered
    outside the 24 hour standard messaging window.
    """

    name = "messenger"

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        page_access_token: str | None,
        recipients: Sequence[str],
        api_url: str,
    ) -> None:
        self._http = http
        self._token = page_access_token
        self._recipients = [psid for psid in recipients if psid]
        self._api_url = api_url

    @property
    def configured(self) -> bool:
        return bool(self._token and self._recipients)

    async def send(self, message: str) -> list[DeliveryResult]:
        self._require_token()
        logger.info("Sending Messenger message to %s recipients", len(self._recipients))
        results = [
            await self._post(psid, message, tagged=True) for psid in self._recipients
        ]
        failed = sum(1 for result in results if not result.success)
        logger.info("Messenger complete: %s sent, %s failed", len(results) - failed, failed)
        return results

    async def send_to(self, psid: str, text: str) -> DeliveryResult:
        """Reply to a single sender inside the standard messaging window."""
        self._require_token()
        return await self._post(psid, text, tagged=False)

    def _require_token(self) -> None:
        if not self._token:
            raise ChannelConfigurationError("Missing FB_PAGE_ACCESS_TOKEN")

    async def _post(self, psid: str, text: str, *, tagged: bool) -> DeliveryResult:
        payload: dict[str, Any] = {"recipient": {"id": psid}, "message": {"text": text}}
        if tagged:
            payload["messaging_type"] = "MESSAGE_TAG"
            payload["tag"] = "CONFIRMED_EVENT_UPDATE"
        else:
            payload["messaging_type"] = "RESPONSE"
        try:
            response = await self._http.post(
                self._api_url, params={"access_token": self._token}, json=payload
            )
        except httpx.HTTPError as exc:
            logger.warning("Messenger send to %s failed: %s", psid, exc)
            return DeliveryResult(
                channel=self.name, recipient=psid, success=False, error=str(exc)
            )
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.is_success:
            return DeliveryResult(
                channel=self.name,
                recipient=psid,
                success=True,
                message_id=data.get("message_id"),
            )
        error = (data.get("error") or {}).get("message") or f"HTTP {response.status_code}"
        logger.warning("Messenger send to %s rejected: %s", psid, error)
        return DeliveryResult(channel=self.name, recipient=psid, success=False, error=error)


__all__ = ["MessengerClient"]
