from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from config.settings import settings
from extension.host_endpoints import HostEndpoints


class AuthContext(BaseModel):
    org_id: Optional[str] = None
    user_id: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)


class EventContext(BaseModel):
    auth: AuthContext = Field(default_factory=AuthContext)
    secrets: Dict[str, Any] = Field(default_factory=dict)
    webhook_base_url: Optional[str] = None
    events_url: Optional[str] = None
    events_token: Optional[str] = None


class EventEnvelope(BaseModel):
    event: str = Field(..., min_length=1, max_length=128)
    version: str = Field(default="v1", max_length=16)
    payload: Dict[str, Any] = Field(default_factory=dict)
    context: EventContext = Field(default_factory=EventContext)


def _render(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, bool):
        return "true" if v else "false"
    s = str(v)
    return s or None


@dataclass
class HandlerContext:
    """What a handler sees of the host request: caller identity, secrets and host callbacks."""

    auth: Dict[str, Any] = field(default_factory=dict)
    secrets: Mapping[str, Any] = field(default_factory=dict)
    endpoints: Any = field(default_factory=HostEndpoints)
    webhook_base_url: Optional[str] = None

    @classmethod
    def from_event(cls, ctx: EventContext) -> "HandlerContext":
        return cls(
            auth=ctx.auth.model_dump(),
            secrets=dict(ctx.secrets),
            endpoints=HostEndpoints(events_url=ctx.events_url, token=ctx.events_token),
            webhook_base_url=ctx.webhook_base_url,
        )

    @property
    def org_id(self) -> Optional[str]:
        return (self.auth or {}).get("org_id")

    @property
    def scopes(self) -> List[str]:
        return list((self.auth or {}).get("scopes") or [])

    def secret(self, key: str) -> Optional[str]:
        # Host-provided secrets win; otherwise fall back to this deployment's settings.
        v = _render(self.secrets.get(key)) if self.secrets else None
        if v is not None:
            return v
        return _render(getattr(settings, key, None))

    def flag(self, key: str, default: str = "true") -> bool:
        return (self.secret(key) or default).strip().lower() == "true"

    def webhook_url(self, name: str) -> Optional[str]:
        base = (self.webhook_base_url or "").rstrip("/")
        if not base:
            return None
        return f"{base}/{name}"
