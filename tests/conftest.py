from __future__ import annotations

import pytest

from config.settings import settings
from consent.opt_in_registry import OptInRegistry
from extension.handlers import TwilioNotificationExtension
from limits.rate_window import FixedWindowRateLimiter
from repos.delivery_log_repo import InMemoryDeliveryLogRepository

from fakes import FakeClock, FakeGateway, build_context


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    # Keep deployment env out of handler behavior.
    monkeypatch.setattr(settings, "ENVIRONMENT", "test")
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "")
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "")
    monkeypatch.setattr(settings, "TWILIO_PHONE_NUMBER", "")
    monkeypatch.setattr(settings, "PUBLIC_BASE_URL", "")
    monkeypatch.setattr(settings, "EXTENSION_SIGNING_SECRET", "")
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "")
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 10)
    monkeypatch.setattr(settings, "DELIVERY_LOG_BACKEND", "memory")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def extension(gateway, clock):
    def factory(account_sid, auth_token):
        gateway.account_sid = account_sid
        gateway.auth_token = auth_token
        return gateway

    return TwilioNotificationExtension(
        gateway_factory=factory,
        opt_ins=OptInRegistry(),
        rate_limiter=FixedWindowRateLimiter(window_seconds=60, clock=clock),
        delivery_log=InMemoryDeliveryLogRepository(),
    )


@pytest.fixture
def context():
    return build_context()


@pytest.fixture
def context_no_opt_in():
    return build_context({"REQUIRE_OPT_IN": "false"})
