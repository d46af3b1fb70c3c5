"""
Shared fixtures. Every test gets its own app (fresh token store and used-code set);
upstream Xero calls are patched per test.
"""
import pytest
from fastapi.testclient import TestClient

from xero_broker.config import Settings
from xero_broker.main import create_app


@pytest.fixture
def settings():
    return Settings(
        client_id="abc123",
        client_secret="secret",
        callback_url="https://app.test/callback",
        default_tenant_id="default-tenant",
        frontend_url="https://frontend.test",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)
