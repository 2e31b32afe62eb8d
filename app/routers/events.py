from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from app.deps import get_extension
from extension.context import EventEnvelope, HandlerContext
from extension.handlers import TwilioNotificationExtension
from extension.registry import MissingScopes, UnknownEvent
from security.host_signature import require_host_signature

log = logging.getLogger("twilio_ext.router.events")
router = APIRouter()


@router.post("/v1/events", dependencies=[Depends(require_host_signature)])
def deliver_event(envelope: EventEnvelope, extension: TwilioNotificationExtension = Depends(get_extension)) -> Dict[str, Any]:
    context = HandlerContext.from_event(envelope.context)
    try:
        return extension.dispatch(envelope.event, envelope.version, envelope.payload, context)
    except UnknownEvent:
        raise HTTPException(status_code=404, detail="unknown_event")
    except MissingScopes as e:
        log.warning(
            "missing_scopes",
            extra={"extra": {"event": "missing_scopes", "handler": envelope.event, "missing": e.missing,
                             "org_id": context.org_id}},
        )
        raise HTTPException(status_code=403, detail="missing_scopes")


@router.get("/v1/events")
def list_events(extension: TwilioNotificationExtension = Depends(get_extension)):
    return {"ok": True, "handlers": extension.registry.manifest()}
