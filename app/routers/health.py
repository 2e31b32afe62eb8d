from __future__ import annotations

import os
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.deps import get_extension
from config.settings import settings
from extension.handlers import TwilioNotificationExtension
from models.schema import COL_SYSTEM, DOC_HEALTHZ

router = APIRouter()


def _firestore_probe(db, timeout_s: float = 0.20) -> Dict[str, Any]:
    """
    Read-only, bounded-time Firestore connectivity probe.
    - No PII
    - No writes
    - Uses a fixed doc path.
    """
    try:
        t0 = time.time()
        db.collection(COL_SYSTEM).document(DOC_HEALTHZ).get(timeout=timeout_s)
        dt_ms = int((time.time() - t0) * 1000)
        return {"ok": True, "latency_ms": dt_ms}
    except Exception as e:
        return {"ok": False, "error_type": type(e).__name__, "message": str(e)}


@router.get("/health")
def health(extension: TwilioNotificationExtension = Depends(get_extension)):
    rev = os.getenv("K_REVISION") or ""
    svc = os.getenv("K_SERVICE") or settings.SERVICE_NAME

    delivery_log = extension.delivery_log
    backend = getattr(delivery_log, "backend", "memory")

    payload: Dict[str, Any] = {
        "ok": True,
        "service": settings.SERVICE_NAME,
        "cloudrun_service": svc,
        "revision": rev,
        "environment": settings.ENVIRONMENT,
        "twilio_configured": bool(
            settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_PHONE_NUMBER
        ),
        "rate_limit": extension.rate_limiter.snapshot(),
        "delivery_log_backend": backend,
        "time_unix": time.time(),
    }

    if backend == "firestore":
        fs = _firestore_probe(delivery_log.db)
        payload["firestore_ok"] = bool(fs.get("ok", False))
        payload["firestore"] = fs
        if not payload["firestore_ok"]:
            payload["ok"] = False

    return payload
