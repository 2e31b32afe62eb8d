from __future__ import annotations

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

from config.settings import settings

log = logging.getLogger("twilio_ext.host_signature")

SIGNATURE_HEADER = "X-Extension-Signature"
TIMESTAMP_HEADER = "X-Extension-Timestamp"


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    signed = timestamp.encode("utf-8") + b"." + body
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(secret: str, timestamp: str, body: bytes, signature: str,
                     tolerance_s: int, now: Optional[float] = None) -> None:
    if not signature or not timestamp:
        raise HTTPException(status_code=401, detail="missing_signature")
    try:
        ts = int(timestamp)
    except ValueError:
        raise HTTPException(status_code=401, detail="invalid_signature")
    now = time.time() if now is None else now
    if abs(now - ts) > tolerance_s:
        raise HTTPException(status_code=401, detail="stale_signature")
    expected = compute_signature(secret, timestamp, body)
    if not hmac.compare_digest(expected, signature.strip()):
        raise HTTPException(status_code=401, detail="invalid_signature")


async def require_host_signature(request: Request) -> None:
    secret = settings.EXTENSION_SIGNING_SECRET
    if not secret:
        if settings.ENVIRONMENT == "production":
            # Fail closed: production must not accept unsigned host events.
            raise HTTPException(status_code=500, detail="extension_signing_secret_not_configured")
        return

    body = await request.body()
    try:
        verify_signature(
            secret,
            request.headers.get(TIMESTAMP_HEADER, ""),
            body,
            request.headers.get(SIGNATURE_HEADER, ""),
            settings.SIGNATURE_TOLERANCE_SECONDS,
        )
    except HTTPException as e:
        log.warning("host signature verify failed", extra={"extra": {"detail": e.detail, "path": request.url.path}})
        raise
