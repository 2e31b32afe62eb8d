from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from app.deps import get_extension
from extension.handlers import TwilioNotificationExtension
from ops.delivery_metrics import compute_daily_metrics
from security.admin_auth import AdminRequired

router = APIRouter()


@router.get("/metrics/daily", dependencies=[AdminRequired])
def daily_metrics(since: str = "", extension: TwilioNotificationExtension = Depends(get_extension)):
    if since:
        try:
            date.fromisoformat(since)
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid_since_date")
    records = extension.delivery_log.list_since(since)
    rows = compute_daily_metrics(records)
    return {"ok": True, "since": since or None, "rows": rows}
