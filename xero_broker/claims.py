"""
Structural JWT decoding. No signature verification: Xero tokens arrive over TLS
from Xero itself and the broker has no issuer keys configured, so transport
security is the only guarantee on these claims.
"""
import logging

import jwt

logger = logging.getLogger(__name__)


def decode_unverified(token: str) -> dict:
    """Decode header and payload segments without checking signature, exp, aud or iss. Raises jwt.DecodeError."""
    return jwt.decode(token, options={"verify_signature": False})


def decode_id_token(id_token: str | None) -> dict | None:
    """
    Payload of an ID token, or None when absent or undecodable. Never raises:
    a successful token exchange must not be lost because identity decoding failed.
    """
    if not id_token:
        return None
    try:
        payload = decode_unverified(id_token)
    except jwt.PyJWTError as e:
        logger.error("Failed to decode ID token: %s", e)
        return None
    logger.info(
        "ID token decoded: email=%s sub=%s",
        payload.get("email"),
        payload.get("sub"),
    )
    return payload


def display_name(claims: dict, fallback: str | None = None) -> str | None:
    """name claim, else 'given family', else fallback."""
    if claims.get("name"):
        return claims["name"]
    joined = f"{claims.get('given_name') or ''} {claims.get('family_name') or ''}".strip()
    return joined or fallback
