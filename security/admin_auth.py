from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException, Request

from config.settings import settings


def parse_bearer_token(request: Request) -> str:
    h = request.headers.get("Authorization", "").strip()
    if not h:
        raise HTTPException(status_code=401, detail="missing_auth")
    parts = h.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise HTTPException(status_code=401, detail="invalid_auth_header")
    return parts[1].strip()


def require_admin(request: Request) -> None:
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        # Fail closed: operator endpoints stay shut until a token is configured.
        raise HTTPException(status_code=500, detail="admin_token_not_configured")
    token = parse_bearer_token(request)
    if not hmac.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="invalid_admin_token")


AdminRequired = Depends(require_admin)
