import json
import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from twilio.request_validator import RequestValidator

from app.api_service import app
from config.settings import settings
from repos.delivery_log_repo import FirestoreDeliveryLogRepository
from security.host_signature import compute_signature

from fakes import RECIPIENT

SECRETS = {
    "TWILIO_ACCOUNT_SID": "AC1",
    "TWILIO_AUTH_TOKEN": "tok",
    "TWILIO_PHONE_NUMBER": "+12015550123",
    "REQUIRE_OPT_IN": "false",
    "ENABLE_DELIVERY_TRACKING": "false",
}


def _envelope(event, payload, scopes=("notifications:send", "notifications:read", "users:write")):
    return {
        "event": event,
        "version": "v1",
        "payload": payload,
        "context": {"auth": {"org_id": "org-1", "user_id": "u-1", "scopes": list(scopes)}, "secrets": SECRETS},
    }


@pytest.fixture
def client(extension):
    app.state.extension = extension
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.state.extension = None


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert data["delivery_log_backend"] == "memory"
    assert data["rate_limit"]["max_per_window"] == 10
    assert r.headers["X-Request-Id"]


def test_event_sms_send(client, gateway):
    r = client.post("/v1/events", json=_envelope("twilio.sms.send", {"to": RECIPIENT, "message": "hello"}))
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert gateway.messages[0]["to"] == RECIPIENT


def test_event_handler_failure_is_200(client):
    r = client.post("/v1/events", json=_envelope("twilio.sms.send", {"message": "hello"}))
    assert r.status_code == 200
    assert r.json() == {"success": False, "error": "Missing required field: to"}


def test_event_unknown(client):
    r = client.post("/v1/events", json=_envelope("twilio.fax.send", {}))
    assert r.status_code == 404
    assert r.json()["detail"] == "unknown_event"


def test_event_missing_scopes(client):
    r = client.post("/v1/events", json=_envelope("twilio.opt_in.update", {"phone_number": RECIPIENT, "opted_in": True},
                                                 scopes=["notifications:read"]))
    assert r.status_code == 403
    assert r.json()["detail"] == "missing_scopes"


def test_event_envelope_validation(client):
    r = client.post("/v1/events", json={"payload": {}})
    assert r.status_code == 422


def test_manifest(client):
    r = client.get("/v1/events")
    assert r.status_code == 200
    assert len(r.json()["handlers"]) == 7


def _signed_post(client, body, secret, ts=None):
    raw = json.dumps(body).encode("utf-8")
    ts = str(int(ts if ts is not None else time.time()))
    return client.post(
        "/v1/events",
        content=raw,
        headers={
            "Content-Type": "application/json",
            "X-Extension-Timestamp": ts,
            "X-Extension-Signature": compute_signature(secret, ts, raw),
        },
    )


def test_signed_events(client, monkeypatch):
    monkeypatch.setattr(settings, "EXTENSION_SIGNING_SECRET", "s3cret")
    body = _envelope("twilio.validate", {"phone_number": RECIPIENT})

    assert _signed_post(client, body, "s3cret").json()["valid"] is True
    assert _signed_post(client, body, "wrong").json()["detail"] == "invalid_signature"
    assert _signed_post(client, body, "s3cret", ts=time.time() - 3600).json()["detail"] == "stale_signature"
    assert client.post("/v1/events", json=body).json()["detail"] == "missing_signature"


def test_unsigned_events_refused_in_production(client, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    r = client.post("/v1/events", json=_envelope("twilio.validate", {"phone_number": RECIPIENT}))
    assert r.status_code == 500
    assert r.json()["detail"] == "extension_signing_secret_not_configured"


def test_direct_twilio_status(client, extension, monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "tok")
    sent = client.post("/v1/events", json=_envelope("twilio.sms.send", {"to": RECIPIENT, "message": "hi"})).json()

    form = {"MessageSid": sent["message_sid"], "MessageStatus": "delivered"}
    url = "https://notify.example.com/twilio/status"
    sig = RequestValidator("tok").compute_signature(url, form)
    r = client.post(
        "/twilio/status",
        data=form,
        headers={"X-Twilio-Signature": sig, "X-Forwarded-Proto": "https", "X-Forwarded-Host": "notify.example.com"},
    )
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert extension.delivery_log.get(sent["message_sid"]).status == "delivered"

    r = client.post("/twilio/status", data=form, headers={"X-Twilio-Signature": "nope"})
    assert r.status_code == 403


def test_admin_metrics(client, monkeypatch):
    client.post("/v1/events", json=_envelope("twilio.sms.send", {"to": RECIPIENT, "message": "hi"}))

    assert client.get("/admin/metrics/daily").json()["detail"] == "admin_token_not_configured"

    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "adm")
    assert client.get("/admin/metrics/daily").status_code == 401
    assert client.get("/admin/metrics/daily", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.get("/admin/metrics/daily?since=yesterday",
                      headers={"Authorization": "Bearer adm"}).status_code == 400

    r = client.get("/admin/metrics/daily", headers={"Authorization": "Bearer adm"})
    assert r.status_code == 200
    rows = r.json()["rows"]
    assert rows[0]["message_type"] == "sms"
    assert rows[0]["total_sent"] == 1


def test_health_reports_firestore_probe_failure(client, extension):
    db = MagicMock()
    db.collection.return_value.document.return_value.get.side_effect = RuntimeError("unavailable")
    extension.delivery_log = FirestoreDeliveryLogRepository(db=db)

    data = client.get("/health").json()

    assert data["delivery_log_backend"] == "firestore"
    assert data["firestore_ok"] is False
    assert data["firestore"]["error_type"] == "RuntimeError"
    assert data["ok"] is False


def test_health_reports_firestore_probe_success(client, extension):
    extension.delivery_log = FirestoreDeliveryLogRepository(db=MagicMock())

    data = client.get("/health").json()

    assert data["firestore_ok"] is True
    assert data["ok"] is True


def test_direct_twilio_status_failure_is_400(client, extension):
    extension.delivery_log = MagicMock()
    extension.delivery_log.update_status.side_effect = RuntimeError("store down")

    r = client.post("/twilio/status", data={"MessageSid": "SM1", "MessageStatus": "delivered"})

    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "store down"}
