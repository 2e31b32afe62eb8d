from __future__ import annotations

from datetime import datetime, timezone


def utc_now_iso(ts: datetime | None = None) -> str:
    ts = ts or datetime.now(timezone.utc)
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def utc_day_key(iso_ts: str) -> str:
    # "2026-10-18T16:29:00Z" -> "2026-10-18"
    return (iso_ts or "")[:10]
