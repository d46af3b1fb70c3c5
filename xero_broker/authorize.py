"""
Authorization request helpers: state generation and the Xero /authorize URL.
"""
import secrets
from urllib.parse import urlencode

from xero_broker.config import XERO_AUTHORIZE_URL


def generate_state() -> str:
    """Opaque value for CSRF protection; echoed back by Xero on the callback."""
    return secrets.token_urlsafe(32)


def build_authorize_url(
    *,
    client_id: str,
    redirect_uri: str,
    scope: str,
    state: str,
    authorize_url: str = XERO_AUTHORIZE_URL,
) -> str:
    """Build the authorization-code request URL (response_type=code)."""
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
        "state": state,
    }
    return f"{authorize_url}?{urlencode(params)}"
