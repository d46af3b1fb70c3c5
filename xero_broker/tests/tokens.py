"""
Bearer tokens for tests, shaped like Xero access tokens. The gate decodes without
signature verification, so the signing key only has to satisfy PyJWT.
"""
import time

import jwt

TEST_SIGNING_KEY = "xero-broker-test-signing-key-0123456789"


def make_token(**claims) -> str:
    """Override claims via kwargs; a None value drops the claim."""
    now = int(time.time())
    payload = {
        "iss": "https://identity.xero.com",
        "aud": "https://identity.xero.com/resources",
        "sub": "sub-123",
        "email": "user@example.com",
        "iat": now,
        "exp": now + 3600,
    }
    payload.update(claims)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, TEST_SIGNING_KEY, algorithm="HS256")


def auth_header(**claims) -> dict:
    return {"Authorization": f"Bearer {make_token(**claims)}"}
