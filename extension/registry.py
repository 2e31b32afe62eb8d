from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Tuple

from extension.context import HandlerContext

Handler = Callable[[Dict[str, Any], HandlerContext], Dict[str, Any]]


class UnknownEvent(Exception):
    def __init__(self, event: str, version: str):
        super().__init__(f"unknown_event:{event}@{version}")
        self.event = event
        self.version = version


class MissingScopes(Exception):
    def __init__(self, missing: Sequence[str]):
        super().__init__("missing_scopes")
        self.missing = list(missing)


@dataclass(frozen=True)
class Registration:
    event: str
    version: str
    handler: Handler
    required_scopes: Tuple[str, ...] = field(default_factory=tuple)


class HandlerRegistry:
    def __init__(self):
        self._handlers: Dict[Tuple[str, str], Registration] = {}

    def register(self, event: str, version: str = "v1", required_scopes: Sequence[str] = ()):
        def decorator(fn: Handler) -> Handler:
            self.add(event, fn, version=version, required_scopes=required_scopes)
            return fn

        return decorator

    def add(self, event: str, handler: Handler, version: str = "v1", required_scopes: Sequence[str] = ()) -> None:
        key = (event, version)
        if key in self._handlers:
            raise ValueError(f"handler already registered for {event}@{version}")
        self._handlers[key] = Registration(event, version, handler, tuple(required_scopes))

    def lookup(self, event: str, version: str = "v1") -> Registration:
        reg = self._handlers.get((event, version))
        if reg is None:
            raise UnknownEvent(event, version)
        return reg

    def dispatch(self, event: str, version: str, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        reg = self.lookup(event, version)
        granted = set(context.scopes)
        missing = [s for s in reg.required_scopes if s not in granted]
        if missing:
            raise MissingScopes(missing)
        return reg.handler(payload or {}, context)

    def manifest(self) -> List[Dict[str, Any]]:
        return [
            {"event": r.event, "version": r.version, "required_scopes": list(r.required_scopes)}
            for r in sorted(self._handlers.values(), key=lambda r: (r.event, r.version))
        ]
