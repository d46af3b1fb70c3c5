"""
HTTP calls to Xero: authorization-code exchange, tenant connections, organisation
lookup and invoice creation. Every call carries an explicit timeout; failures are
raised as broker errors so callers never see raw httpx exceptions.
"""
import base64
import logging

import httpx

from xero_broker.config import (
    TOKEN_EXCHANGE_TIMEOUT,
    XERO_API_BASE_URL,
    XERO_API_TIMEOUT,
    XERO_CONNECTIONS_URL,
    XERO_TOKEN_URL,
)
from xero_broker.errors import ExchangeFailed, UpstreamRejected, UpstreamUnavailable, XeroApiError

logger = logging.getLogger(__name__)

USER_AGENT = "Xero-Broker/1.0"


def _json_or_empty(r) -> dict:
    if not r.headers.get("content-type", "").startswith("application/json"):
        return {}
    try:
        body = r.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def basic_auth_header(client_id: str, client_secret: str) -> str:
    encoded = base64.b64encode(f"{client_id}:{client_secret}".encode("utf-8")).decode("ascii")
    return f"Basic {encoded}"


def exchange_code(code: str, *, client_id: str, client_secret: str, redirect_uri: str) -> dict:
    """
    POST the authorization code to Xero's token endpoint (client credentials via HTTP Basic).
    Returns the token response (access_token, refresh_token, id_token, expires_in, token_type).
    Raises UpstreamRejected (Xero error response), UpstreamUnavailable (no response) or ExchangeFailed.
    """
    try:
        r = httpx.post(
            XERO_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            },
            headers={
                "Authorization": basic_auth_header(client_id, client_secret),
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=TOKEN_EXCHANGE_TIMEOUT,
        )
    except httpx.RequestError as e:
        logger.error("Network error during token exchange: %s", e)
        raise UpstreamUnavailable(str(e) or type(e).__name__) from e

    if r.status_code != 200:
        err = _json_or_empty(r)
        logger.error(
            "Xero token endpoint returned %s: error=%s correlation_id=%s",
            r.status_code,
            err.get("error"),
            r.headers.get("xero-correlation-id"),
        )
        if err.get("error"):
            raise UpstreamRejected(err["error"], err.get("error_description"), http_status=r.status_code)
        if r.status_code == 400:
            raise UpstreamRejected(
                None,
                "Please check your Xero app configuration and ensure the redirect URI matches exactly",
                http_status=r.status_code,
            )
        if r.status_code == 401:
            raise UpstreamRejected(None, "Check your XERO_CLIENT_ID and XERO_CLIENT_SECRET", http_status=r.status_code)
        raise ExchangeFailed(f"Xero token endpoint returned {r.status_code}")

    try:
        data = r.json()
    except ValueError as e:
        raise ExchangeFailed("Xero token endpoint returned a non-JSON body") from e
    if not isinstance(data, dict) or not data.get("access_token"):
        raise ExchangeFailed("Xero token response did not include an access token")
    return data


def get_connections(access_token: str) -> list[dict]:
    """Tenants (organisations) the access token is connected to."""
    try:
        r = httpx.get(
            XERO_CONNECTIONS_URL,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            timeout=XERO_API_TIMEOUT,
        )
    except httpx.RequestError as e:
        raise XeroApiError(f"Could not reach Xero connections endpoint: {e}") from e
    if r.status_code != 200:
        raise XeroApiError(f"Xero connections endpoint returned {r.status_code}")
    try:
        data = r.json()
    except ValueError as e:
        raise XeroApiError("Xero connections endpoint returned a non-JSON body") from e
    return data if isinstance(data, list) else []


def get_organisation(access_token: str, tenant_id: str) -> dict | None:
    """Organisation record for tenant_id, or None if it cannot be fetched."""
    try:
        r = httpx.get(
            f"{XERO_API_BASE_URL}/Organisation",
            headers={
                "Authorization": f"Bearer {access_token}",
                "xero-tenant-id": tenant_id,
                "Accept": "application/json",
            },
            timeout=XERO_API_TIMEOUT,
        )
    except httpx.RequestError as e:
        logger.error("Error fetching organisation info for tenant %s: %s", tenant_id, e)
        return None
    if r.status_code != 200:
        logger.error("Organisation lookup for tenant %s returned %s", tenant_id, r.status_code)
        return None
    organisations = _json_or_empty(r).get("Organisations") or []
    return organisations[0] if organisations else None


def create_invoice(invoice: dict, access_token: str, tenant_id: str) -> dict:
    """POST one invoice to Xero; returns the created invoice as Xero echoes it back."""
    logger.info(
        "Sending invoice to Xero: tenant=%s number=%s contact=%s total=%s",
        tenant_id,
        invoice.get("InvoiceNumber"),
        (invoice.get("Contact") or {}).get("Name"),
        invoice.get("Total"),
    )
    try:
        r = httpx.post(
            f"{XERO_API_BASE_URL}/Invoices",
            json={"Invoices": [invoice]},
            headers={
                "Authorization": f"Bearer {access_token}",
                "xero-tenant-id": tenant_id,
                "Accept": "application/json",
            },
            timeout=XERO_API_TIMEOUT,
        )
    except httpx.RequestError as e:
        raise XeroApiError(f"Could not reach Xero: {e}") from e
    if r.status_code != 200:
        body = _json_or_empty(r)
        logger.error("Xero API error response: status=%s body=%s", r.status_code, body)
        raise XeroApiError(f"Xero API error: {r.status_code} - {body.get('Message') or body.get('Title') or 'request failed'}")
    created = (_json_or_empty(r).get("Invoices") or [None])[0]
    if not created:
        raise XeroApiError("No invoice data returned from Xero API")
    logger.info(
        "Invoice created in Xero: id=%s number=%s status=%s",
        created.get("InvoiceID"),
        created.get("InvoiceNumber"),
        created.get("Status"),
    )
    return created
