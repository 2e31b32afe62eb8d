from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from twilio.rest import Client

from messaging.errors import ConfigurationError

CALL_STATUS_EVENTS = ["initiated", "ringing", "answered", "completed"]


@dataclass(frozen=True)
class SentMessage:
    sid: str
    to: str
    status: str
    num_media: int = 0


@dataclass(frozen=True)
class PlacedCall:
    sid: str
    to: str
    status: str


class TwilioGateway:
    def __init__(self, account_sid: str, auth_token: str, client: Optional[Client] = None):
        if not (account_sid and auth_token):
            raise ConfigurationError("Missing Twilio credentials")
        self.account_sid = account_sid
        self.client = client or Client(account_sid, auth_token)

    def send_message(
        self,
        from_number: str,
        to: str,
        body: str,
        media_urls: Optional[List[str]] = None,
        status_callback: Optional[str] = None,
    ) -> SentMessage:
        params: Dict[str, Any] = {"from_": from_number, "to": to, "body": body}
        if media_urls:
            params["media_url"] = list(media_urls)
        if status_callback:
            params["status_callback"] = status_callback
        msg = self.client.messages.create(**params)
        return SentMessage(
            sid=msg.sid,
            to=msg.to,
            status=msg.status,
            num_media=int(getattr(msg, "num_media", 0) or 0),
        )

    def place_call(
        self,
        from_number: str,
        to: str,
        twiml: str,
        status_callback: Optional[str] = None,
    ) -> PlacedCall:
        params: Dict[str, Any] = {"from_": from_number, "to": to, "twiml": twiml}
        if status_callback:
            params["status_callback"] = status_callback
            params["status_callback_event"] = CALL_STATUS_EVENTS
        call = self.client.calls.create(**params)
        return PlacedCall(sid=call.sid, to=call.to, status=call.status)
