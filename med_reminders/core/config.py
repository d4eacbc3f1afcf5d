"""Application configuration via pydantic settings."""

from functools import lru_cache
from pathlib import Path

from typing import Annotated, Any

from pydantic import Field
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_DEFAULT_CATALOG = Path(__file__).resolve().parents[1] / "data" / "medications.yaml"


class Settings(BaseSettings):
    """Typed application configuration."""

    app_env: str = Field("local", alias="APP_ENV")
    app_name: str = "Medication Reminder API"
    api_v1_prefix: str = "/api/v1"

    timezone: str = Field("America/Los_Angeles", alias="TIMEZONE")
    catalog_path: Path = Field(_DEFAULT_CATALOG, alias="CATALOG_PATH")

    store_backend: str | None = Field(default=None, alias="STORE_BACKEND")
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    redis_key_prefix: str = Field("meds", alias="REDIS_KEY_PREFIX")

    pending_ttl_seconds: int = Field(86400, alias="PENDING_TTL_SECONDS")
    slot_claim_ttl_seconds: int = Field(7200, alias="SLOT_CLAIM_TTL_SECONDS")
    confirmation_ttl_seconds: int = Field(86400, alias="CONFIRMATION_TTL_SECONDS")
    override_cache_ttl_seconds: int = Field(300, alias="OVERRIDE_CACHE_TTL_SECONDS")

    resend_threshold_minutes: int = Field(30, alias="RESEND_THRESHOLD_MINUTES")
    dispatch_delay_seconds: float = Field(1.0, alias="DISPATCH_DELAY_SECONDS")

    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")

    twilio_account_sid: str | None = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str | None = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    twilio_whatsapp_from: str = Field("+14155238886", alias="TWILIO_WHATSAPP_FROM")
    whatsapp_recipients: Annotated[list[str], NoDecode] = Field(
        default_factory=list, alias="WHATSAPP_RECIPIENTS"
    )

    fb_page_access_token: str | None = Field(default=None, alias="FB_PAGE_ACCESS_TOKEN")
    fb_recipient_psids: Annotated[list[str], NoDecode] = Field(
        default_factory=list, alias="FB_RECIPIENT_PSIDS"
    )
    fb_app_secret: str | None = Field(default=None, alias="FB_APP_SECRET")
    fb_verify_token: str | None = Field(default=None, alias="FB_VERIFY_TOKEN")
    fb_graph_api_url: str = Field(
        "https://graph.facebook.com/v18.0/me/messages", alias="FB_GRAPH_API_URL"
    )

    cors_allowlist: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:5173"], alias="CORS_ALLOWLIST"
    )
    rate_limit_webhook: str = Field("60/minute", alias="RATE_LIMIT_WEBHOOK")

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[2] / ".env",
        case_sensitive=False,
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick the store backend from the redis URL when not set explicitly."""

        if not self.store_backend:
            backend = "redis" if self.redis_url else "memory"
            object.__setattr__(self, "store_backend", backend)

    @field_validator(
        "cors_allowlist", "whatsapp_recipients", "fb_recipient_psids", mode="before"
    )
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("store_backend")
    @classmethod
    def _check_backend(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        normalised = value.strip().lower()
        if normalised not in {"redis", "memory"}:
            raise ValueError("STORE_BACKEND must be 'redis' or 'memory'")
        return normalised

    @model_validator(mode="after")
    def _require_redis_url(self) -> "Settings":
        if self.store_backend == "redis" and not self.redis_url:
            raise ValueError("STORE_BACKEND=redis requires REDIS_URL to be set")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]
