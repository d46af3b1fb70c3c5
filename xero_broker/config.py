"""
Broker configuration. Read from the environment; no secrets in this file.
Missing Xero credentials are not an import error: the callback reports them as
ServerMisconfigured when a code is actually exchanged.
"""
import os
from dataclasses import dataclass

# Xero identity + accounting endpoints
XERO_AUTHORIZE_URL = "https://login.xero.com/identity/connect/authorize"
XERO_TOKEN_URL = "https://identity.xero.com/connect/token"
XERO_CONNECTIONS_URL = "https://api.xero.com/connections"
XERO_API_BASE_URL = "https://api.xero.com/api.xro/2.0"

# Scopes needed for invoice management when XERO_SCOPES is unset
DEFAULT_SCOPES = (
    "openid profile email offline_access accounting.transactions accounting.contacts "
    "accounting.attachments accounting.settings.read accounting.reports.read"
)

# Authorization codes shorter than this are rejected without calling Xero
MIN_CODE_LENGTH = 10

# Token exchange is bounded; other Xero calls use the shorter timeout
TOKEN_EXCHANGE_TIMEOUT = 15.0
XERO_API_TIMEOUT = 10.0

# Access-token lifetime assumed when expires_in is omitted or unreadable (30 minutes, as Xero issues)
DEFAULT_EXPIRES_IN = 1800

# Used-code set is cleared wholesale on this interval (10 minutes)
DEFAULT_SWEEP_SECONDS = 600


def _optional(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    client_id: str | None = None
    client_secret: str | None = None
    callback_url: str | None = None
    scopes: str = DEFAULT_SCOPES
    default_tenant_id: str | None = None
    frontend_url: str = "http://localhost:3000"
    used_code_sweep_seconds: float = DEFAULT_SWEEP_SECONDS
    environment: str = "development"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            client_id=_optional("XERO_CLIENT_ID"),
            client_secret=_optional("XERO_CLIENT_SECRET"),
            callback_url=_optional("XERO_CALLBACK_URL"),
            scopes=_optional("XERO_SCOPES") or DEFAULT_SCOPES,
            default_tenant_id=_optional("XERO_TENANT_ID"),
            frontend_url=(_optional("FRONTEND_URL") or "http://localhost:3000").rstrip("/"),
            used_code_sweep_seconds=float(os.environ.get("USED_CODE_SWEEP_SECONDS", str(DEFAULT_SWEEP_SECONDS))),
            environment=os.environ.get("APP_ENV", "development"),
            log_level=os.environ.get("APP_LOG_LEVEL", "INFO"),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def missing_exchange_settings(self) -> list[str]:
        """Names of the settings the code exchange cannot run without."""
        missing = []
        if not self.client_id:
            missing.append("XERO_CLIENT_ID")
        if not self.client_secret:
            missing.append("XERO_CLIENT_SECRET")
        if not self.callback_url:
            missing.append("XERO_CALLBACK_URL")
        return missing
