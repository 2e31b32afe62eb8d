from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from config.settings import settings
from ops.metrics import Timer
from utils.clock import utc_now_iso
from utils.ids import dest_hint
from utils.request_context import request_id_headers

log = logging.getLogger("twilio_ext.host")

_PHONE_KEYS = ("to", "phone_number", "recipient")


def _redacted(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (dest_hint(str(v)) if k in _PHONE_KEYS and v else v) for k, v in (data or {}).items()}


class HostEndpoints:
    """
    Callbacks into the host runtime.

    Events are always written to the structured log. When the host supplied an
    events_url they are also forwarded there; forwarding is best effort and
    never fails the handler that emitted the event.
    """

    def __init__(self, events_url: Optional[str] = None, token: Optional[str] = None,
                 client: Optional[httpx.Client] = None):
        self.events_url = events_url or ""
        self.token = token or ""
        self.client = client

    def log_event(self, name: str, data: Dict[str, Any]) -> None:
        log.info(name, extra={"extra": {"event": name, **_redacted(data)}})
        if self.events_url:
            self._forward(name, data)

    def _forward(self, name: str, data: Dict[str, Any]) -> None:
        rev = os.getenv("K_REVISION") or ""
        headers = {**request_id_headers()}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        body = {"event": name, "data": data, "occurred_at": utc_now_iso()}

        timer = Timer()
        try:
            if self.client is not None:
                r = self.client.post(self.events_url, json=body, headers=headers)
            else:
                r = httpx.post(self.events_url, json=body, headers=headers,
                               timeout=settings.HOST_EVENT_TIMEOUT_SECONDS)
            dt_ms = timer.ms()
            if r.status_code >= 400:
                log.warning(
                    "host_event_forward_failed",
                    extra={"extra": {"event": "host_event_forward_failed", "name": name,
                                     "status_code": r.status_code, "latency_ms": dt_ms, "revision": rev}},
                )
        except Exception as e:
            # Includes InvalidURL and UnicodeError from a malformed events_url.
            dt_ms = timer.ms()
            log.error(
                "host_event_forward_exception",
                extra={"extra": {"event": "host_event_forward_exception", "name": name,
                                 "error_type": type(e).__name__, "message": str(e),
                                 "latency_ms": dt_ms, "revision": rev}},
            )
