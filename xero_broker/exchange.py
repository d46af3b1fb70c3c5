"""
Authorization-code exchange for the POST /xero/callback flow.

Order matters: the code is claimed in the used-code tracker before anything else
can fail or touch the network, so two concurrent callbacks with the same code
cannot both reach Xero. Only an upstream invalid_grant leaves the code burned
after a failed exchange; every other failure releases it for a retry.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from xero_broker import xero_client
from xero_broker.claims import decode_id_token
from xero_broker.code_tracker import UsedCodeTracker, code_prefix
from xero_broker.config import DEFAULT_EXPIRES_IN, MIN_CODE_LENGTH, Settings
from xero_broker.errors import (
    CodeAlreadyUsed,
    ExchangeFailed,
    MalformedCode,
    MissingCode,
    ServerMisconfigured,
    UpstreamRejected,
    XeroApiError,
    XeroBrokerError,
)
from xero_broker.token_store import TokenRecord, TokenStore

logger = logging.getLogger(__name__)


def _expires_in(value, request_id: str) -> int:
    """Token lifetime in seconds from the token response; DEFAULT_EXPIRES_IN when absent or unreadable."""
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        logger.warning("[%s] Unreadable expires_in %r; assuming %ss", request_id, value, DEFAULT_EXPIRES_IN)
        return DEFAULT_EXPIRES_IN
    return seconds if seconds > 0 else DEFAULT_EXPIRES_IN


def _first_tenant_id(tenants: list) -> str | None:
    for tenant in tenants:
        if isinstance(tenant, dict) and tenant.get("tenantId"):
            return tenant["tenantId"]
    return None


@dataclass
class ExchangeResult:
    access_token: str
    refresh_token: str | None
    id_token: str | None
    expires_in: int
    token_type: str | None
    user_info: dict | None
    tenants: list[dict] = field(default_factory=list)
    user_id: str | None = None
    timestamp: str = ""

    def to_response(self) -> dict:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "idToken": self.id_token,
            "expiresIn": self.expires_in,
            "tokenType": self.token_type,
            "userInfo": self.user_info,
            "tenants": self.tenants,
            "userId": self.user_id,
            "timestamp": self.timestamp,
        }


class ExchangeCoordinator:
    def __init__(self, settings: Settings, token_store: TokenStore, used_codes: UsedCodeTracker) -> None:
        self.settings = settings
        self.token_store = token_store
        self.used_codes = used_codes

    def exchange(self, code: str | None, state: str | None = None, request_id: str = "unknown") -> ExchangeResult:
        started = time.monotonic()
        if not code:
            logger.error("[%s] No authorization code provided", request_id)
            raise MissingCode()

        if not self.used_codes.claim(code):
            logger.error("[%s] Authorization code already used: %s", request_id, code_prefix(code))
            raise CodeAlreadyUsed()

        # Garbage input stays marked; it is not worth a retry
        if len(code) < MIN_CODE_LENGTH:
            logger.error("[%s] Authorization code appears invalid (length %d)", request_id, len(code))
            raise MalformedCode(f"Authorization code must be at least {MIN_CODE_LENGTH} characters")

        missing = self.settings.missing_exchange_settings()
        if missing:
            logger.error("[%s] Missing required configuration: %s", request_id, ", ".join(missing))
            raise ServerMisconfigured(f"Missing: {', '.join(missing)}")

        logger.info(
            "[%s] Processing authorization code %s (state=%s)",
            request_id,
            code_prefix(code),
            state,
        )
        try:
            data = xero_client.exchange_code(
                code,
                client_id=self.settings.client_id,
                client_secret=self.settings.client_secret,
                redirect_uri=self.settings.callback_url,
            )
        except UpstreamRejected as e:
            if not e.code_is_dead:
                self.used_codes.unmark(code)
                logger.info("[%s] Released code after non-grant error %s", request_id, e.error_code)
            raise
        except XeroBrokerError:
            self.used_codes.unmark(code)
            logger.info("[%s] Released code after failed exchange", request_id)
            raise
        except Exception as e:
            self.used_codes.unmark(code)
            logger.exception("[%s] Unexpected error during token exchange", request_id)
            raise ExchangeFailed() from e

        logger.info(
            "[%s] Token exchange successful in %.0f ms (expires_in=%s, id_token=%s)",
            request_id,
            (time.monotonic() - started) * 1000,
            data.get("expires_in"),
            bool(data.get("id_token")),
        )

        access_token = data["access_token"]
        expires_in = _expires_in(data.get("expires_in"), request_id)
        user_info = decode_id_token(data.get("id_token"))
        tenants = self._fetch_tenants(access_token, request_id)
        user_id = self._persist(data, expires_in, user_info, tenants, request_id)

        return ExchangeResult(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_in=expires_in,
            token_type=data.get("token_type"),
            user_info=user_info,
            tenants=tenants,
            user_id=user_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def _fetch_tenants(self, access_token: str, request_id: str) -> list[dict]:
        try:
            tenants = xero_client.get_connections(access_token)
        except XeroApiError as e:
            # Invoice creation falls back to the configured default tenant
            logger.error("[%s] Failed to fetch tenants: %s", request_id, e)
            return []
        logger.info("[%s] Found %d tenants", request_id, len(tenants))
        return tenants

    def _persist(
        self,
        data: dict,
        expires_in: int,
        user_info: dict | None,
        tenants: list[dict],
        request_id: str,
    ) -> str | None:
        """Store one record under email (else sub), with sub as an alias. Returns the primary user id."""
        if not user_info:
            logger.warning("[%s] No identity in ID token; tokens not stored", request_id)
            return None
        email = user_info.get("email")
        sub = user_info.get("sub")
        user_id = email or sub
        if not user_id:
            logger.warning("[%s] ID token has neither email nor sub; tokens not stored", request_id)
            return None

        tenant_id = _first_tenant_id(tenants)
        record = TokenRecord.issue(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=expires_in,
            tenant_id=tenant_id or self.settings.default_tenant_id,
        )
        aliases = [sub] if sub and sub != user_id else []
        self.token_store.store(user_id, record, aliases=aliases)
        logger.info("[%s] Stored tokens for user %s (aliases: %s)", request_id, user_id, aliases or "none")
        return user_id
