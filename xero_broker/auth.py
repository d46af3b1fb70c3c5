"""
Bearer-token gate for the /api routes.
Shape and expiry checks only: the token is decoded without signature verification
(see claims.py), so the trust boundary is Xero issuing the token over TLS.
"""
import logging
import time
from dataclasses import dataclass
from typing import Annotated

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from xero_broker.claims import decode_unverified
from xero_broker.errors import InvalidTokenFormat, MissingToken, MissingUserIdentifier, TokenExpired

logger = logging.getLogger(__name__)

# Tried in order to find who the token belongs to
IDENTIFIER_CLAIMS = ("email", "sub", "xero_userid")


@dataclass
class AuthenticatedIdentity:
    user_identifier: str
    email: str
    id: str
    sub: str
    raw_claims: dict

    @property
    def identifier_type(self) -> str:
        for claim in IDENTIFIER_CLAIMS:
            if self.raw_claims.get(claim):
                return claim
        return "unknown"


def authenticate_token(token: str, now: float | None = None) -> AuthenticatedIdentity:
    """
    Validate token structure and expiry and derive the user identifier.
    An absent or zero exp means the token does not expire.
    Raises InvalidTokenFormat, TokenExpired or MissingUserIdentifier.
    """
    try:
        payload = decode_unverified(token)
    except jwt.PyJWTError as e:
        logger.warning("Invalid token format: %s", e)
        raise InvalidTokenFormat() from e

    if not payload.get("iss") or not payload.get("aud"):
        logger.warning(
            "Token missing required fields: has_iss=%s has_aud=%s",
            bool(payload.get("iss")),
            bool(payload.get("aud")),
        )
        raise InvalidTokenFormat("Token must carry iss and aud claims")

    exp = payload.get("exp")
    if exp:
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise InvalidTokenFormat("exp claim must be numeric")
        current = time.time() if now is None else now
        if current >= exp:
            logger.warning("Token has expired (exp=%s)", exp)
            raise TokenExpired()

    user_identifier = next((payload[c] for c in IDENTIFIER_CLAIMS if payload.get(c)), None)
    if not user_identifier:
        logger.warning("Token missing user identifier (iss=%s)", payload.get("iss"))
        raise MissingUserIdentifier()

    identity = AuthenticatedIdentity(
        user_identifier=str(user_identifier),
        email=payload.get("email") or str(user_identifier),
        id=str(user_identifier),
        sub=payload.get("sub") or str(user_identifier),
        raw_claims=payload,
    )
    logger.info("Authenticated user %s via %s", identity.user_identifier, identity.identifier_type)
    return identity


security = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract Bearer token from Authorization header. Raises MissingToken (401) if absent."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise MissingToken()
    return credentials.credentials


def get_identity(
    request: Request,
    token: Annotated[str, Depends(get_bearer_token)],
) -> AuthenticatedIdentity:
    """Dependency: valid Bearer token -> identity, also attached to request.state.user."""
    identity = authenticate_token(token)
    request.state.user = identity
    return identity


CurrentIdentity = Annotated[AuthenticatedIdentity, Depends(get_identity)]
