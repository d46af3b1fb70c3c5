"""Tests for the /xero routes, with Xero's HTTP endpoints mocked at the httpx layer."""
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
from fastapi.testclient import TestClient

from xero_broker.config import Settings, XERO_TOKEN_URL
from xero_broker.main import create_app
from xero_broker.tests.tokens import make_token

CODE = "valid-authorization-code-123"


class MockTokenResponse:
    status_code = 200
    headers = {"content-type": "application/json"}

    def json(self):
        return {
            "access_token": "xero-at",
            "refresh_token": "xero-rt",
            "id_token": make_token(email="user@example.com", sub="sub-123"),
            "expires_in": 1800,
            "token_type": "Bearer",
        }


class MockConnections:
    status_code = 200
    headers = {"content-type": "application/json"}

    def json(self):
        return [{"tenantId": "tenant-A", "tenantName": "Demo Company"}]


def _error_response(status_code, body):
    class MockError:
        headers = {"content-type": "application/json"}

        def json(self):
            return body

    MockError.status_code = status_code
    return MockError()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("service") == "xero_broker"


def test_callback_exchanges_code_and_stores_tokens(client, app):
    with patch("xero_broker.xero_client.httpx.post", return_value=MockTokenResponse()) as post, patch(
        "xero_broker.xero_client.httpx.get", return_value=MockConnections()
    ):
        r = client.post("/xero/callback", json={"code": CODE, "state": "st"})
    assert r.status_code == 200
    data = r.json()
    assert data["accessToken"] == "xero-at"
    assert data["refreshToken"] == "xero-rt"
    assert data["userId"] == "user@example.com"
    assert data["tenants"][0]["tenantId"] == "tenant-A"
    assert data["userInfo"]["sub"] == "sub-123"

    args, kwargs = post.call_args
    assert args[0] == XERO_TOKEN_URL
    assert kwargs["data"] == {
        "grant_type": "authorization_code",
        "code": CODE,
        "redirect_uri": "https://app.test/callback",
    }
    # base64("abc123:secret")
    assert kwargs["headers"]["Authorization"] == "Basic YWJjMTIzOnNlY3JldA=="
    assert kwargs["timeout"] <= 15

    assert app.state.token_store.tenant_id("sub-123") == "tenant-A"


def test_callback_twice_with_same_code(client):
    with patch("xero_broker.xero_client.httpx.post", return_value=MockTokenResponse()), patch(
        "xero_broker.xero_client.httpx.get", return_value=MockConnections()
    ):
        first = client.post("/xero/callback", json={"code": CODE})
        second = client.post("/xero/callback", json={"code": CODE})
    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["kind"] == "CodeAlreadyUsed"


def test_callback_missing_code(client):
    r = client.post("/xero/callback", json={"state": "st"})
    assert r.status_code == 400
    assert r.json()["kind"] == "MissingCode"


def test_callback_short_code_is_malformed_and_stays_marked(client, app):
    r = client.post("/xero/callback", json={"code": "short"})
    assert r.status_code == 400
    assert r.json()["kind"] == "MalformedCode"
    assert "requestId" in r.json()
    assert app.state.used_codes.has_been_used("short") is True


def test_callback_misconfigured():
    client = TestClient(create_app(Settings(client_id="abc123")))
    r = client.post("/xero/callback", json={"code": CODE})
    assert r.status_code == 500
    assert r.json()["kind"] == "ServerMisconfigured"


def test_callback_invalid_grant(client, app):
    with patch(
        "xero_broker.xero_client.httpx.post",
        return_value=_error_response(400, {"error": "invalid_grant"}),
    ):
        r = client.post("/xero/callback", json={"code": CODE})
    assert r.status_code == 400
    body = r.json()
    assert body["kind"] == "UpstreamRejected"
    assert body["xeroErrorCode"] == "invalid_grant"
    assert body["error"] == "Authorization Code Error"
    assert app.state.used_codes.has_been_used(CODE) is True

    r = client.post("/xero/callback", json={"code": CODE})
    assert r.json()["kind"] == "CodeAlreadyUsed"


def test_callback_invalid_client_is_401_and_retryable(client, app):
    with patch(
        "xero_broker.xero_client.httpx.post",
        return_value=_error_response(400, {"error": "invalid_client"}),
    ):
        r = client.post("/xero/callback", json={"code": CODE})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid Client Credentials"
    assert app.state.used_codes.has_been_used(CODE) is False


def test_callback_unauthorized_client(client):
    with patch(
        "xero_broker.xero_client.httpx.post",
        return_value=_error_response(400, {"error": "unauthorized_client"}),
    ):
        r = client.post("/xero/callback", json={"code": CODE})
    assert r.status_code == 400
    assert r.json()["error"] == "Xero App Configuration Error"


def test_callback_upstream_unreachable_is_503(client, app):
    with patch("xero_broker.xero_client.httpx.post", side_effect=httpx.ConnectTimeout("timed out")):
        r = client.post("/xero/callback", json={"code": CODE})
    assert r.status_code == 503
    assert r.json()["kind"] == "UpstreamUnavailable"
    assert app.state.used_codes.has_been_used(CODE) is False


def test_callback_upstream_5xx_is_generic_500(client, app):
    with patch("xero_broker.xero_client.httpx.post", return_value=_error_response(502, {})):
        r = client.post("/xero/callback", json={"code": CODE})
    assert r.status_code == 500
    assert r.json()["kind"] == "ExchangeFailed"
    assert app.state.used_codes.has_been_used(CODE) is False


def test_callback_succeeds_when_connections_fail(client, app):
    with patch("xero_broker.xero_client.httpx.post", return_value=MockTokenResponse()), patch(
        "xero_broker.xero_client.httpx.get", side_effect=httpx.ConnectError("refused")
    ):
        r = client.post("/xero/callback", json={"code": CODE})
    assert r.status_code == 200
    assert r.json()["tenants"] == []
    assert app.state.token_store.tenant_id("user@example.com") == "default-tenant"


def test_get_callback_redirects_to_frontend(client):
    r = client.get("/xero/callback", params={"code": "abc", "state": "xyz"}, follow_redirects=False)
    assert r.status_code == 302
    location = urlparse(r.headers["location"])
    assert f"{location.scheme}://{location.netloc}{location.path}" == "https://frontend.test/xero/callback"
    assert parse_qs(location.query) == {"code": ["abc"], "state": ["xyz"]}


def test_get_callback_forwards_error(client):
    r = client.get(
        "/xero/callback",
        params={"error": "access_denied", "error_description": "User denied"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    query = parse_qs(urlparse(r.headers["location"]).query)
    assert query == {"error": ["access_denied"], "error_description": ["User denied"]}


def test_store_tokens_and_status(client, app):
    r = client.get("/xero/tokens/status", params={"userId": "u1"})
    assert r.json()["hasValidTokens"] is False

    r = client.post("/xero/store-tokens", json={"userId": "u1", "accessToken": "manual-at"})
    assert r.status_code == 200
    assert r.json()["success"] is True

    r = client.get("/xero/tokens/status", params={"userId": "u1"})
    assert r.json() == {"hasValidTokens": True, "userId": "u1", "requestId": r.json()["requestId"]}
    # Defaults: 30 minute lifetime and the configured tenant
    record = app.state.token_store.get("u1")
    assert record.expires_at - record.stored_at == 1800 * 1000
    assert record.tenant_id == "default-tenant"


def test_store_tokens_requires_user_and_token(client):
    r = client.post("/xero/store-tokens", json={"userId": "u1"})
    assert r.status_code == 400
    r = client.post("/xero/store-tokens", json={"accessToken": "at"})
    assert r.status_code == 400


def test_tokens_status_requires_user_id(client):
    assert client.get("/xero/tokens/status").status_code == 400


def test_tokens_debug_is_redacted(client):
    client.post("/xero/store-tokens", json={"userId": "u1", "accessToken": "very-secret-at"})
    r = client.get("/xero/tokens/debug")
    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert "very-secret-at" not in r.text


def test_debug_endpoints_hidden_in_production(settings):
    from dataclasses import replace

    client = TestClient(create_app(replace(settings, environment="production")))
    assert client.get("/xero/tokens/debug").status_code == 403
    assert client.get("/xero/debug/config").status_code == 403


def test_debug_config_never_returns_secret(client):
    r = client.get("/xero/debug/config")
    assert r.status_code == 200
    assert r.json()["hasClientSecret"] is True
    assert "secret" not in {str(v) for v in r.json().values()}
