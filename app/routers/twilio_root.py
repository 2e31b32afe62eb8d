from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.deps import get_extension
from config.settings import settings
from extension.context import HandlerContext

router = APIRouter()


@router.post("/twilio/status")
async def twilio_status(request: Request):
    # Direct Twilio delivery-status callback (application/x-www-form-urlencoded).
    if not settings.TWILIO_AUTH_TOKEN and settings.ENVIRONMENT == "production":
        raise HTTPException(status_code=500, detail="twilio_auth_token_not_configured")

    form = await request.form()

    # Behind a proxy the signature must validate against the public URL.
    proto = request.headers.get("X-Forwarded-Proto", request.url.scheme)
    host = request.headers.get("X-Forwarded-Host", request.url.netloc)
    url = f"{proto}://{host}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"

    payload = {
        "external_webhook": {
            "body": {k: str(v) for k, v in form.items()},
            "headers": dict(request.headers),
            "original_url": url,
            "content_type": request.headers.get("content-type", ""),
        }
    }
    extension = get_extension(request)
    result = await run_in_threadpool(extension.handle_status_webhook, payload, HandlerContext())

    if result.get("success"):
        return result
    if result.get("error") == "Invalid signature":
        return JSONResponse(status_code=403, content=result)
    return JSONResponse(status_code=400, content=result)
