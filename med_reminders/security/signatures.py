"""Inbound webhook authentication helpers."""

from __future__ import annotations

import hashlib
import hmac


def messenger_signature(payload: bytes, app_secret: str) -> str:
    digest = hmac.new(app_secret.encode(), payload, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_messenger_signature(
    payload: bytes, signature: str | None, app_secret: str | None
) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw request body."""
    if not signature or not app_secret:
        return False
    return hmac.compare_digest(messenger_signature(payload, app_secret), signature)


def verify_bearer(header: str | None, secret: str) -> bool:
    """Constant-time check of ``Authorization: Bearer <secret>``."""
    if not header:
        return False
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return False
    return hmac.compare_digest(token.strip(), secret)


__all__ = ["messenger_signature", "verify_bearer", "verify_messenger_signature"]
