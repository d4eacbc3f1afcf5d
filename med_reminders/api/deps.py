"""Common API dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

from med_reminders.core.config import get_settings
from med_reminders.security.signatures import verify_bearer
from med_reminders.services.container import ServiceContainer

_SECONDS = {
    "second": 1,
    "seconds": 1,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}


def parse_rate(value: str, *, fallback: tuple[int, int]) -> tuple[int, int]:
    """Parse ``"60/minute"`` into ``(times, seconds)``."""
    try:
        count_str, window_str = value.split("/", 1)
        count = int(count_str.strip())
    except ValueError:
        return fallback
    return count, _SECONDS.get(window_str.strip().lower(), fallback[1])


def _rate_dependency(limit: tuple[int, int]):
    async def _dependency(request: Request, response: Response) -> None:
        if FastAPILimiter.redis is None:
            return None
        limiter = RateLimiter(times=limit[0], seconds=limit[1])
        await limiter(request, response)

    return Depends(_dependency)


WEBHOOK_RATE_DEP = _rate_dependency(
    parse_rate(get_settings().rate_limit_webhook, fallback=(60, 60))
)


def get_container(request: Request) -> ServiceContainer:
    """Return the services built at startup."""
    container = getattr(request.app.state, "services", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialised",
        )
    return container


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]


async def require_cron_secret(request: Request, container: ContainerDep) -> None:
    """Enforce ``Authorization: Bearer <CRON_SECRET>`` when a secret is configured."""
    secret = container.settings.cron_secret
    if not secret:
        return None
    if not verify_bearer(request.headers.get("Authorization"), secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return None


__all__ = [
    "ContainerDep",
    "WEBHOOK_RATE_DEP",
    "get_container",
    "parse_rate",
    "require_cron_secret",
]
