"""Tests for authorization URL building and GET /xero/auth."""
import re
from dataclasses import replace
from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from xero_broker.authorize import build_authorize_url, generate_state
from xero_broker.config import DEFAULT_SCOPES, Settings
from xero_broker.main import create_app


def test_generate_state_length():
    s = generate_state()
    assert len(s) >= 20
    assert re.match(r"^[A-Za-z0-9_-]+$", s)
    assert generate_state() != s


def test_build_authorize_url_includes_required_params():
    url = build_authorize_url(
        client_id="client1",
        redirect_uri="https://client.example/cb",
        scope="openid email",
        state="mystate",
    )
    assert url.startswith("https://login.xero.com/identity/connect/authorize?")
    query = parse_qs(urlparse(url).query)
    assert query["response_type"] == ["code"]
    assert query["client_id"] == ["client1"]
    assert query["redirect_uri"] == ["https://client.example/cb"]
    assert query["scope"] == ["openid email"]
    assert query["state"] == ["mystate"]


def test_auth_endpoint_from_environment(monkeypatch):
    monkeypatch.setenv("XERO_CLIENT_ID", "abc123")
    monkeypatch.setenv("XERO_CLIENT_SECRET", "secret")
    monkeypatch.setenv("XERO_CALLBACK_URL", "https://app.test/callback")
    monkeypatch.delenv("XERO_SCOPES", raising=False)
    client = TestClient(create_app(Settings.from_env()))

    r = client.get("/xero/auth")
    assert r.status_code == 200
    data = r.json()
    assert "client_id=abc123&redirect_uri=https%3A%2F%2Fapp.test%2Fcallback" in data["authUrl"]
    assert len(data["state"]) >= 20
    query = parse_qs(urlparse(data["authUrl"]).query)
    assert query["state"] == [data["state"]]
    assert query["scope"] == [DEFAULT_SCOPES]


def test_auth_endpoint_uses_configured_scopes(settings):
    client = TestClient(create_app(replace(settings, scopes="openid accounting.transactions")))
    data = client.get("/xero/auth").json()
    assert parse_qs(urlparse(data["authUrl"]).query)["scope"] == ["openid accounting.transactions"]


def test_auth_endpoint_misconfigured():
    client = TestClient(create_app(Settings(client_id=None, callback_url=None)))
    r = client.get("/xero/auth")
    assert r.status_code == 500
    assert r.json()["kind"] == "ServerMisconfigured"


def test_auth_url_endpoint_includes_request_id(client):
    r = client.get("/xero/auth/url", headers={"X-Request-ID": "req-42"})
    assert r.status_code == 200
    assert r.json()["requestId"] == "req-42"
    assert r.headers["X-Request-ID"] == "req-42"
