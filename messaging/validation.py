from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import urlparse

from config.settings import settings
from messaging.errors import InvalidRequest


def require_field(payload: Dict[str, Any], name: str) -> Any:
    v = (payload or {}).get(name)
    if v is None or (isinstance(v, (str, list, dict)) and not v):
        raise InvalidRequest(f"Missing required field: {name}")
    return v


def _require_text(payload: Dict[str, Any], name: str) -> str:
    v = require_field(payload, name)
    if not isinstance(v, str):
        raise InvalidRequest(f"{name} must be a string")
    return v


def validate_sms_request(payload: Dict[str, Any]) -> None:
    require_field(payload, "to")
    message = _require_text(payload, "message")
    max_len = settings.MAX_SMS_LENGTH
    if len(message) > max_len:
        raise InvalidRequest(f"Message too long (max {max_len} chars)")


def validate_voice_request(payload: Dict[str, Any]) -> None:
    require_field(payload, "to")
    _require_text(payload, "message")


def validate_mms_request(payload: Dict[str, Any]) -> List[str]:
    require_field(payload, "to")
    _require_text(payload, "message")

    media_urls = (payload or {}).get("media_urls")
    if media_urls is None:
        raise InvalidRequest("Missing required field: media_urls")
    if not isinstance(media_urls, list):
        raise InvalidRequest("media_urls must be an array")
    if not media_urls:
        raise InvalidRequest("At least one media URL required")
    max_media = settings.MAX_MEDIA_URLS
    if len(media_urls) > max_media:
        raise InvalidRequest(f"Too many media URLs (max {max_media})")
    for url in media_urls:
        parts = urlparse(url) if isinstance(url, str) else None
        if parts is None or parts.scheme not in ("http", "https") or not parts.netloc:
            raise InvalidRequest(f"Invalid media URL: {url}")
    return media_urls
