from __future__ import annotations

from contextvars import ContextVar
from typing import Dict

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(rid: str) -> None:
    _request_id_var.set(rid or "")


def get_request_id() -> str:
    return _request_id_var.get() or ""


def clear_request_id() -> None:
    _request_id_var.set("")


def request_id_headers() -> Dict[str, str]:
    """Headers that propagate the current request id to outbound calls."""
    rid = get_request_id()
    return {"X-Request-Id": rid} if rid else {}
