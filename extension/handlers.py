from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Optional

from twilio.base.exceptions import TwilioRestException

from config.settings import settings
from consent.opt_in_registry import OptInRegistry
from extension.context import HandlerContext
from extension.registry import HandlerRegistry
from limits.rate_window import FixedWindowRateLimiter
from messaging.dispatcher import MessageDispatcher
from messaging.errors import ConfigurationError, InvalidRequest, NotificationError, OptInRequired
from messaging.status_callback import (
    StatusUpdate,
    header_value,
    parse_callback_body,
    verify_twilio_signature,
)
from messaging.twilio_gateway import TwilioGateway
from messaging.twiml import voice_twiml
from messaging.validation import (
    require_field,
    validate_mms_request,
    validate_sms_request,
    validate_voice_request,
)
from phone.normalizer import describe, normalize_e164
from repos.delivery_log_repo import DeliveryRecord, get_delivery_log_repository
from utils.clock import utc_now_iso
from utils.ids import dest_hint

log = logging.getLogger("twilio_ext.handlers")

REQUIRED_NOTIFY_SCOPES = ("notifications:send",)
REQUIRED_VALIDATE_SCOPES = ("notifications:read",)
REQUIRED_PREFERENCES_SCOPES = ("users:write",)

GatewayFactory = Callable[[str, str], TwilioGateway]


class TwilioNotificationExtension:
    """
    Host-facing handlers for SMS, MMS and voice notifications via Twilio.

    Every send goes through the same gate, in order: request validation, the
    per-process send quota, recipient normalization to E.164, and (unless
    REQUIRE_OPT_IN is "false") the recipient's opt-in. Handlers never raise;
    failures come back as {"success": False, "error": ...}.
    """

    def __init__(
        self,
        gateway_factory: Optional[GatewayFactory] = None,
        opt_ins: Optional[OptInRegistry] = None,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        delivery_log=None,
    ):
        self.gateway_factory = gateway_factory or TwilioGateway
        self.opt_ins = opt_ins if opt_ins is not None else OptInRegistry()
        self.rate_limiter = rate_limiter if rate_limiter is not None else FixedWindowRateLimiter()
        self.delivery_log = delivery_log if delivery_log is not None else get_delivery_log_repository()
        self.registry = HandlerRegistry()
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        r = self.registry
        r.add("twilio.sms.send", self.handle_send_sms, version="v1", required_scopes=REQUIRED_NOTIFY_SCOPES)
        r.add("twilio.voice.send", self.handle_send_voice, version="v1", required_scopes=REQUIRED_NOTIFY_SCOPES)
        r.add("twilio.mms.send", self.handle_send_mms, version="v1", required_scopes=REQUIRED_NOTIFY_SCOPES)
        r.add("twilio.opt_in.check", self.handle_check_opt_in, version="v1", required_scopes=REQUIRED_VALIDATE_SCOPES)
        r.add("twilio.opt_in.update", self.handle_update_opt_in, version="v1", required_scopes=REQUIRED_PREFERENCES_SCOPES)
        r.add("twilio.validate", self.handle_validate_phone, version="v1", required_scopes=REQUIRED_VALIDATE_SCOPES)
        # Status callbacks are forwarded by the host's external webhook routing.
        r.add("external.webhook.status_callback", self.handle_status_webhook, version="v1", required_scopes=())

    def dispatch(self, event: str, version: str, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        return self.registry.dispatch(event, version, payload, context)

    # --- sends ---

    def handle_send_sms(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        return self._guarded("sms", lambda: self._send_sms(payload, context))

    def handle_send_voice(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        return self._guarded("voice", lambda: self._send_voice(payload, context))

    def handle_send_mms(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        return self._guarded("mms", lambda: self._send_mms(payload, context))

    def _send_sms(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        validate_sms_request(payload)
        self.rate_limiter.check()
        to_number = self._normalize(payload["to"], context)
        self._require_opt_in(to_number, "SMS", context)
        dispatcher, from_number = self._dispatcher(context)

        msg = self._counted(lambda: dispatcher.send_sms(
            from_number, to_number, payload["message"], status_callback=self._status_callback_url(context)
        ))

        context.endpoints.log_event("twilio.sms.sent", {
            "to": to_number,
            "message_sid": msg.sid,
            "org_id": context.org_id,
        })
        self._record("sms", msg.sid, to_number, msg.status, context)
        return {
            "success": True,
            "message_sid": msg.sid,
            "to": msg.to,
            "status": msg.status,
            "sent_at": utc_now_iso(),
        }

    def _send_voice(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        validate_voice_request(payload)
        self.rate_limiter.check()
        to_number = self._normalize(payload["to"], context)
        self._require_opt_in(to_number, "voice", context)
        dispatcher, from_number = self._dispatcher(context)

        twiml = voice_twiml(payload["message"], voice=settings.VOICE_NAME)
        call = self._counted(lambda: dispatcher.send_voice(
            from_number, to_number, twiml, status_callback=self._status_callback_url(context)
        ))

        context.endpoints.log_event("twilio.voice.sent", {
            "to": to_number,
            "call_sid": call.sid,
            "org_id": context.org_id,
        })
        self._record("voice", call.sid, to_number, call.status, context)
        return {
            "success": True,
            "call_sid": call.sid,
            "to": call.to,
            "status": call.status,
            "initiated_at": utc_now_iso(),
        }

    def _send_mms(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        media_urls = validate_mms_request(payload)
        self.rate_limiter.check()
        to_number = self._normalize(payload["to"], context)
        self._require_opt_in(to_number, "MMS", context)
        dispatcher, from_number = self._dispatcher(context)

        msg = self._counted(lambda: dispatcher.send_mms(
            from_number, to_number, payload["message"], media_urls,
            status_callback=self._status_callback_url(context),
        ))

        context.endpoints.log_event("twilio.mms.sent", {
            "to": to_number,
            "message_sid": msg.sid,
            "media_count": msg.num_media,
            "org_id": context.org_id,
        })
        self._record("mms", msg.sid, to_number, msg.status, context)
        return {
            "success": True,
            "message_sid": msg.sid,
            "to": msg.to,
            "status": msg.status,
            "media_count": msg.num_media,
            "sent_at": utc_now_iso(),
        }

    def _guarded(self, channel: str, fn: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        rev = os.getenv("K_REVISION") or ""
        try:
            return fn()
        except NotificationError as e:
            log.warning(
                "notification_rejected",
                extra={"extra": {"event": "notification_rejected", "channel": channel,
                                 "error_type": type(e).__name__, "message": str(e), "revision": rev}},
            )
            return {"success": False, "error": str(e)}
        except TwilioRestException as e:
            log.error(
                "twilio_api_error",
                extra={"extra": {"event": "twilio_api_error", "channel": channel, "status_code": e.status,
                                 "error_code": e.code, "message": e.msg, "revision": rev}},
            )
            return {"success": False, "error": f"Twilio API error: {e.msg}", "error_code": e.code}
        except Exception as e:
            log.error(
                "internal_unhandled_exception",
                extra={"extra": {"event": "internal_unhandled_exception", "channel": channel,
                                 "error_type": type(e).__name__, "message": str(e), "revision": rev}},
                exc_info=True,
            )
            return {"success": False, "error": "Internal server error"}

    def _counted(self, send: Callable[[], Any]) -> Any:
        token = self.rate_limiter.reserve()
        try:
            return send()
        except Exception:
            self.rate_limiter.release(token)
            raise

    def _record(self, message_type: str, sid: str, recipient: str, status: str, context: HandlerContext) -> None:
        record = DeliveryRecord(
            sid=sid,
            message_type=message_type,
            recipient=recipient,
            status=status,
            sent_at=utc_now_iso(),
            org_id=context.org_id,
        )
        try:
            self.delivery_log.record_send(record)
        except Exception:
            # The provider already accepted the send; report success regardless.
            log.exception(
                "delivery_log_write_failed",
                extra={"extra": {"event": "delivery_log_write_failed", "sid": sid, "message_type": message_type}},
            )

    # --- consent & validation ---

    def handle_check_opt_in(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        try:
            phone_number = self._normalize(require_field(payload, "phone_number"), context)
            return {
                "success": True,
                "phone_number": phone_number,
                "opted_in": self.opt_ins.is_opted_in(phone_number),
                "checked_at": utc_now_iso(),
            }
        except NotificationError as e:
            return {"success": False, "error": str(e)}

    def handle_update_opt_in(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        try:
            raw_number = require_field(payload, "phone_number")
            if payload.get("opted_in") is None:
                raise InvalidRequest("Missing required field: opted_in")
            opted_in = payload["opted_in"]
            if not isinstance(opted_in, bool):
                raise InvalidRequest("opted_in must be a boolean")

            phone_number = self._normalize(raw_number, context)
            rec = self.opt_ins.set_opt_in(phone_number, opted_in, updated_by=(context.auth or {}).get("user_id"))
            log.info(
                "opt_in_updated",
                extra={"extra": {"event": "opt_in_updated", "dest": dest_hint(phone_number),
                                 "opted_in": opted_in, "org_id": context.org_id}},
            )
            return {
                "success": True,
                "phone_number": phone_number,
                "opted_in": rec.opted_in,
                "updated_at": rec.updated_at,
            }
        except NotificationError as e:
            return {"success": False, "error": str(e)}

    def handle_validate_phone(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        try:
            raw = require_field(payload, "phone_number")
        except NotificationError as e:
            return {"success": False, "error": str(e)}

        info = describe(raw, self._default_country(context))
        return {
            "success": True,
            "phone_number": raw,
            "valid": info.valid,
            "e164_format": info.e164,
            "country": info.country,
            "national_format": info.national,
            "type": info.type,
            "possible": info.possible,
        }

    # --- delivery status ---

    def handle_status_webhook(self, payload: Dict[str, Any], context: HandlerContext) -> Dict[str, Any]:
        try:
            if "external_webhook" in payload:
                external = payload.get("external_webhook") or {}
                params = parse_callback_body(external.get("body") or {}, external.get("content_type"))
            else:
                # Already-decoded Twilio parameters.
                external = {}
                params = dict(payload)
            headers = external.get("headers") or {}
            original_url = external.get("original_url")

            auth_token = context.secret("TWILIO_AUTH_TOKEN")
            if auth_token and original_url:
                signature = header_value(headers, "X-Twilio-Signature")
                if not verify_twilio_signature(auth_token, original_url, params, signature):
                    log.warning(
                        "twilio_signature_invalid",
                        extra={"extra": {"event": "twilio_signature_invalid", "org_id": context.org_id}},
                    )
                    return {"success": False, "error": "Invalid signature"}

            update = StatusUpdate.from_params(params)
            log.info(
                "twilio_status_callback",
                extra={"extra": {"event": "twilio_status_callback", "sid": update.sid, "status": update.status,
                                 "channel": update.channel, "error_code": update.error_code}},
            )
            context.endpoints.log_event("twilio.status.received", {
                "message_sid": update.sid,
                "status": update.status,
                "error_code": update.error_code,
                "org_id": context.org_id,
            })
            if update.sid:
                self.delivery_log.update_status(update.sid, update.status, update.error_code)
            return {"success": True, "received_at": utc_now_iso()}
        except Exception as e:
            log.error(
                "twilio_status_callback_failed",
                extra={"extra": {"event": "twilio_status_callback_failed",
                                 "error_type": type(e).__name__, "message": str(e)}},
                exc_info=True,
            )
            return {"success": False, "error": str(e)}

    # --- helpers ---

    def _default_country(self, context: HandlerContext) -> str:
        return context.secret("DEFAULT_COUNTRY_CODE") or "US"

    def _normalize(self, number: Any, context: HandlerContext) -> str:
        return normalize_e164(number, self._default_country(context))

    def _require_opt_in(self, to_number: str, label: str, context: HandlerContext) -> None:
        if context.flag("REQUIRE_OPT_IN") and not self.opt_ins.is_opted_in(to_number):
            raise OptInRequired(f"Recipient {to_number} has not opted in for {label} notifications")

    def _dispatcher(self, context: HandlerContext):
        account_sid = context.secret("TWILIO_ACCOUNT_SID")
        auth_token = context.secret("TWILIO_AUTH_TOKEN")
        if not (account_sid and auth_token):
            raise ConfigurationError("Missing Twilio credentials")
        from_number = context.secret("TWILIO_PHONE_NUMBER")
        if not from_number:
            raise ConfigurationError("Missing TWILIO_PHONE_NUMBER")
        return MessageDispatcher(self.gateway_factory(account_sid, auth_token)), from_number

    def _status_callback_url(self, context: HandlerContext) -> Optional[str]:
        if not context.flag("ENABLE_DELIVERY_TRACKING"):
            return None
        url = context.webhook_url("status_callback")
        if url:
            return url
        base = (settings.PUBLIC_BASE_URL or "").rstrip("/")
        return f"{base}/twilio/status" if base else None
