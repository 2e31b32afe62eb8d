import json

import httpx
import pytest

from extension.context import EventContext, HandlerContext
from extension.host_endpoints import HostEndpoints
from extension.registry import HandlerRegistry, MissingScopes, UnknownEvent


def _ctx(scopes):
    return HandlerContext(auth={"org_id": "o1", "scopes": scopes})


def test_dispatch_checks_scopes():
    reg = HandlerRegistry()

    @reg.register("demo.ping", version="v1", required_scopes=["a:read", "b:write"])
    def ping(payload, context):
        return {"success": True, "echo": payload.get("x")}

    assert reg.dispatch("demo.ping", "v1", {"x": 1}, _ctx(["a:read", "b:write"])) == {"success": True, "echo": 1}
    with pytest.raises(MissingScopes) as exc:
        reg.dispatch("demo.ping", "v1", {}, _ctx(["a:read"]))
    assert exc.value.missing == ["b:write"]


def test_unknown_event_and_version():
    reg = HandlerRegistry()
    reg.add("demo.ping", lambda p, c: {"success": True})
    with pytest.raises(UnknownEvent):
        reg.dispatch("demo.pong", "v1", {}, _ctx([]))
    with pytest.raises(UnknownEvent):
        reg.dispatch("demo.ping", "v2", {}, _ctx([]))


def test_duplicate_registration_rejected():
    reg = HandlerRegistry()
    reg.add("demo.ping", lambda p, c: {})
    with pytest.raises(ValueError):
        reg.add("demo.ping", lambda p, c: {})


def test_extension_manifest(extension):
    manifest = {m["event"]: m for m in extension.registry.manifest()}
    assert set(manifest) == {
        "twilio.sms.send",
        "twilio.voice.send",
        "twilio.mms.send",
        "twilio.opt_in.check",
        "twilio.opt_in.update",
        "twilio.validate",
        "external.webhook.status_callback",
    }
    assert manifest["twilio.opt_in.update"]["required_scopes"] == ["users:write"]
    assert manifest["external.webhook.status_callback"]["required_scopes"] == []


def test_context_secret_fallback(monkeypatch):
    from config.settings import settings

    monkeypatch.setattr(settings, "TWILIO_PHONE_NUMBER", "+12015550123")
    ctx = HandlerContext(secrets={"REQUIRE_OPT_IN": False})
    assert ctx.secret("TWILIO_PHONE_NUMBER") == "+12015550123"
    assert ctx.secret("REQUIRE_OPT_IN") == "false"
    assert ctx.flag("REQUIRE_OPT_IN") is False
    assert ctx.flag("ENABLE_DELIVERY_TRACKING") is True  # settings default True
    assert ctx.secret("TWILIO_ACCOUNT_SID") is None
    assert ctx.webhook_url("status_callback") is None


def test_context_from_event():
    ctx = HandlerContext.from_event(EventContext.model_validate({
        "auth": {"org_id": "o1", "scopes": ["notifications:send"]},
        "secrets": {"TWILIO_ACCOUNT_SID": "AC1"},
        "webhook_base_url": "https://host.example/ext/tok",
        "events_url": "https://host.example/events",
    }))
    assert ctx.org_id == "o1"
    assert ctx.scopes == ["notifications:send"]
    assert ctx.secret("TWILIO_ACCOUNT_SID") == "AC1"
    assert ctx.webhook_url("status_callback") == "https://host.example/ext/tok/status_callback"
    assert ctx.endpoints.events_url == "https://host.example/events"


def test_host_endpoints_forward_events():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    endpoints = HostEndpoints(events_url="https://host.example/events", token="t0k", client=client)
    endpoints.log_event("twilio.sms.sent", {"to": "+16502530000", "message_sid": "SM1"})

    assert len(seen) == 1
    assert seen[0].headers["Authorization"] == "Bearer t0k"
    body = json.loads(seen[0].content)
    assert body["event"] == "twilio.sms.sent"
    assert body["data"]["to"] == "+16502530000"


def test_host_endpoints_forward_failure_is_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    HostEndpoints(events_url="https://host.example/events", client=client).log_event("x", {})


@pytest.mark.parametrize("events_url", ["::::", "http://exa\nmple/"])
def test_host_endpoints_malformed_url_is_not_raised(events_url):
    HostEndpoints(events_url=events_url).log_event("twilio.sms.sent", {"to": "+16502530000"})
