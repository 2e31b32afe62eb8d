from __future__ import annotations

import uuid


def dest_hint(v: str, keep: int = 4) -> str:
    # Log-safe destination: only the trailing digits of a phone number.
    v = (v or "").strip()
    if not v:
        return ""
    if len(v) <= keep:
        return v
    return f"...{v[-keep:]}"


def new_request_id() -> str:
    return str(uuid.uuid4())
