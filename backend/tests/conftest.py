import os

# contact_relay.main builds its module-level app from the environment at import time
os.environ.setdefault("ZOHO_USER", "relay@example.com")
os.environ.setdefault("ZOHO_PASS", "fake-password")
os.environ.setdefault("MAIL_PROVIDER", "fake")
os.environ.setdefault("VERIFY_ON_STARTUP", "false")

import pytest
from fastapi.testclient import TestClient
from limits.storage import MemoryStorage

from contact_relay.core.ratelimit import ContactRateLimiter
from contact_relay.core.relay import FakeRelay
from contact_relay.core.settings import Settings
from contact_relay.main import create_app

ALLOWED_ORIGIN = "http://localhost:5173"


@pytest.fixture
def make_settings():
    def _make(**overrides) -> Settings:
        values = {
            "ZOHO_USER": "relay@example.com",
            "ZOHO_PASS": "fake-password",
            "MAIL_PROVIDER": "fake",
            "VERIFY_ON_STARTUP": False,
            "CORS_ORIGIN": f"{ALLOWED_ORIGIN}, https://www.example.com",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def limiter():
    return ContactRateLimiter(limit=10, window_seconds=60, storage=MemoryStorage())


@pytest.fixture
def client(make_settings, relay, limiter):
    app = create_app(make_settings(), relay=relay, limiter=limiter)
    return TestClient(app)
