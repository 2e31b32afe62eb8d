from __future__ import annotations

import logging
import os
from typing import Callable, List, Optional, TypeVar

from messaging.twilio_gateway import PlacedCall, SentMessage, TwilioGateway
from ops.metrics import Timer
from utils.ids import dest_hint

log = logging.getLogger("twilio_ext.dispatcher")

T = TypeVar("T")


class MessageDispatcher:
    """Instrumented sends through a TwilioGateway. Provider errors propagate to the caller."""

    def __init__(self, gateway: TwilioGateway):
        self.gateway = gateway

    def _send(self, channel: str, to_number: str, fn: Callable[[], T]) -> T:
        rev = os.getenv("K_REVISION") or ""
        timer = Timer()
        log.info(
            "message_send_attempt",
            extra={"extra": {"event": "message_send_attempt", "channel": channel, "dest": dest_hint(to_number), "revision": rev}},
        )
        try:
            result = fn()
        except Exception as e:
            dt_ms = timer.ms()
            log.error(
                "message_send_exception",
                extra={
                    "extra": {
                        "event": "message_send_exception",
                        "channel": channel,
                        "dest": dest_hint(to_number),
                        "error_type": type(e).__name__,
                        "message": str(e),
                        "latency_ms": dt_ms,
                        "revision": rev,
                    }
                },
                exc_info=True,
            )
            raise
        dt_ms = timer.ms()
        log.info(
            "message_send_result",
            extra={
                "extra": {
                    "event": "message_send_result",
                    "channel": channel,
                    "dest": dest_hint(to_number),
                    "sid": getattr(result, "sid", ""),
                    "status": getattr(result, "status", ""),
                    "latency_ms": dt_ms,
                    "revision": rev,
                }
            },
        )
        return result

    def send_sms(self, from_number: str, to_number: str, text: str,
                 status_callback: Optional[str] = None) -> SentMessage:
        return self._send(
            "sms",
            to_number,
            lambda: self.gateway.send_message(from_number, to_number, text, status_callback=status_callback),
        )

    def send_mms(self, from_number: str, to_number: str, text: str, media_urls: List[str],
                 status_callback: Optional[str] = None) -> SentMessage:
        return self._send(
            "mms",
            to_number,
            lambda: self.gateway.send_message(
                from_number, to_number, text, media_urls=media_urls, status_callback=status_callback
            ),
        )

    def send_voice(self, from_number: str, to_number: str, twiml: str,
                   status_callback: Optional[str] = None) -> PlacedCall:
        return self._send(
            "voice",
            to_number,
            lambda: self.gateway.place_call(from_number, to_number, twiml, status_callback=status_callback),
        )
