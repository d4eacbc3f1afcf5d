"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

import httpx
import redis.asyncio as redis  # type: ignore[import-untyped]
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from secure import Secure

from med_reminders.api import api_router
from med_reminders.core.config import get_settings
from med_reminders.security.logging_filters import install_sensitive_filter
from med_reminders.services.catalog_service import load_catalog
from med_reminders.services.container import build_container
from med_reminders.services.store import StoreUnavailableError

logger = logging.getLogger(__name__)

settings = get_settings()

_ALLOWED_ORIGINS = [origin for origin in settings.cors_allowlist if origin]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A broken catalog aborts startup.
    catalog = load_catalog(settings.catalog_path)
    redis_pool = None
    if settings.store_backend == "redis":
        redis_pool = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        try:
            await FastAPILimiter.init(redis_pool)
        except Exception:  # pragma: no cover - limiter startup is best effort
            logger.exception("Failed to initialize rate limiter")
    http = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
    app.state.services = build_container(
        settings, catalog, http=http, redis_client=redis_pool
    )
    try:
        yield
    finally:
        await http.aclose()
        if redis_pool is not None:
            try:
                await FastAPILimiter.close()
            except Exception:  # pragma: no cover - limiter shutdown
                logger.exception("Failed to close rate limiter")
            try:
                await redis_pool.aclose()
            except Exception:
                logger.exception("Failed to close redis pool")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(CorrelationIdMiddleware, header_name="X-Request-ID")

_secure_headers = Secure()


@app.middleware("http")
async def _apply_security_headers(request, call_next):
    response = await call_next(request)
    _secure_headers.set_headers(response)
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        response.headers.setdefault("X-Request-ID", str(correlation_id))
    return response


@app.exception_handler(StoreUnavailableError)
async def _store_unavailable(_: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.warning("Request failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Store unavailable"},
    )


install_sensitive_filter("uvicorn", "uvicorn.access", "uvicorn.error", "")

app.include_router(api_router)


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    """Return a simple welcome message."""
    return {"message": settings.app_name}
