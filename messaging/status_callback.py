from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from twilio.request_validator import RequestValidator


def _form(body: str) -> Dict[str, Any]:
    # Later duplicates win, same as dict(form) on the inbound route.
    return dict(parse_qsl(body, keep_blank_values=True))


def _json(body: str) -> Dict[str, Any]:
    data = json.loads(body)
    return data if isinstance(data, dict) else {}


def parse_callback_body(body: Any, content_type: Optional[str] = None) -> Dict[str, Any]:
    if isinstance(body, dict):
        return body
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not body or not isinstance(body, str):
        return {}

    ctype = (content_type or "").lower()
    if "application/x-www-form-urlencoded" in ctype:
        return _form(body)
    if "application/json" in ctype:
        return _json(body)

    # Twilio posts form-encoded by default; relayed bodies are sometimes JSON.
    if body.lstrip().startswith("{"):
        try:
            return _json(body)
        except ValueError:
            return {}
    return _form(body)


def header_value(headers: Mapping[str, Any], name: str) -> str:
    lname = name.lower()
    for k, v in (headers or {}).items():
        if str(k).lower() == lname:
            return str(v or "")
    return ""


def verify_twilio_signature(auth_token: str, url: str, params: Dict[str, Any], signature: Optional[str]) -> bool:
    if not signature:
        return False
    return RequestValidator(auth_token).validate(url, params, signature)


@dataclass(frozen=True)
class StatusUpdate:
    sid: Optional[str]
    status: Optional[str]
    error_code: Optional[str]
    channel: str

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "StatusUpdate":
        return cls(
            sid=params.get("MessageSid") or params.get("CallSid"),
            status=params.get("MessageStatus") or params.get("CallStatus"),
            error_code=params.get("ErrorCode") or None,
            channel="voice" if params.get("CallSid") else "message",
        )
