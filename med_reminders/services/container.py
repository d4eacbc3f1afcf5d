"""Runtime wiring of the catalog, store, resolver and channels."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx
from redis.asyncio import Redis

from med_reminders.core.config import Settings
from med_reminders.integrations import MessengerClient, TwilioWhatsAppClient
from med_reminders.schemas.medication import Catalog
from med_reminders.services.notification_service import ChannelSender, NotificationService
from med_reminders.services.override_cache import OverrideCache
from med_reminders.services.reminder_service import ReminderGenerator
from med_reminders.services.schedule_service import ScheduleResolver, resolve_timezone
from med_reminders.services.store import ReminderStore, build_store

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class ServiceContainer:
    """Everything a request handler needs, built once per process."""

    settings: Settings
    catalog: Catalog
    store: ReminderStore
    resolver: ScheduleResolver
    generator: ReminderGenerator
    notifier: NotificationService
    clock: Callable[[], datetime] = field(default=_utcnow)

    def channel(self, name: str) -> ChannelSender | None:
        return self.notifier.channel(name)


def build_channels(settings: Settings, http: httpx.AsyncClient) -> list[ChannelSender]:
    channels: list[ChannelSender] = [
        TwilioWhatsAppClient(
            http,
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_whatsapp_from,
            recipients=settings.whatsapp_recipients,
        ),
        MessengerClient(
            http,
            page_access_token=settings.fb_page_access_token,
            recipients=settings.fb_recipient_psids,
            api_url=settings.fb_graph_api_url,
        ),
    ]
    for channel in channels:
        if not channel.configured:
            logger.info("Channel %s disabled: credentials or recipients missing", channel.name)
    return channels


def build_container(
    settings: Settings,
    catalog: Catalog,
    *,
    http: httpx.AsyncClient | None = None,
    redis_client: Redis | None = None,
    store: ReminderStore | None = None,
    channels: list[ChannelSender] | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> ServiceContainer:
    store = store or build_store(settings, redis_client)
    resolver = ScheduleResolver(
        catalog,
        store,
        tz=resolve_timezone(settings.timezone),
        cache=OverrideCache(ttl_seconds=settings.override_cache_ttl_seconds),
    )
    if channels is None:
        if http is None:
            raise ValueError("An HTTP client is required to build the chat channels")
        channels = build_channels(settings, http)
    notifier = NotificationService(channels)
    logger.info(
        "Loaded %s medications; store backend %s; timezone %s",
        len(catalog.medications),
        settings.store_backend,
        settings.timezone,
    )
    return ServiceContainer(
        settings=settings,
        catalog=catalog,
        store=store,
        resolver=resolver,
        generator=ReminderGenerator(resolver),
        notifier=notifier,
        clock=clock,
    )


__all__ = ["ServiceContainer", "build_channels", "build_container"]
