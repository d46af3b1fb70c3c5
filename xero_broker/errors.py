"""
Error taxonomy for the broker. Every error carries a stable kind, the HTTP status
it maps to, a short user-facing message and a remediation hint. Rendered as
{error, kind, details, requestId} by the handler registered in main.py.
"""
from fastapi import status

# Upstream OAuth error codes -> (message, details). Everything except invalid_grant
# leaves the authorization code retryable.
UPSTREAM_ERROR_HINTS = {
    "invalid_grant": (
        "Authorization Code Error",
        "The authorization code is invalid, expired, or already used. Please restart the OAuth flow.",
    ),
    "invalid_client": (
        "Invalid Client Credentials",
        "Your Xero Client ID or Secret is incorrect. Please verify your credentials.",
    ),
    "unauthorized_client": (
        "Xero App Configuration Error",
        "Your Xero app credentials or redirect URI configuration is incorrect. "
        "Check the client id and secret, the redirect URI registered with Xero, and the app's enabled scopes.",
    ),
    "invalid_request": (
        "Invalid OAuth Request",
        "The OAuth request format is incorrect. This is likely a server configuration issue.",
    ),
}


class XeroBrokerError(Exception):
    kind = "BrokerError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Unexpected error"

    def __init__(self, details: str | None = None, *, message: str | None = None) -> None:
        self.details = details
        if message is not None:
            self.message = message
        super().__init__(self.message if not details else f"{self.message}: {details}")

    def to_dict(self, request_id: str | None = None) -> dict:
        body = {"error": self.message, "kind": self.kind, "details": self.details}
        if request_id is not None:
            body["requestId"] = request_id
        return body


# --- Callback input / replay ---


class MissingCode(XeroBrokerError):
    kind = "MissingCode"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "No authorization code provided"


class CodeAlreadyUsed(XeroBrokerError):
    kind = "CodeAlreadyUsed"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Authorization code has already been used"

    def __init__(self, details: str | None = None, **kwargs) -> None:
        super().__init__(details or "Please restart the OAuth flow to get a new authorization code", **kwargs)


class MalformedCode(XeroBrokerError):
    kind = "MalformedCode"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid authorization code format"


class ServerMisconfigured(XeroBrokerError):
    kind = "ServerMisconfigured"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server configuration error - missing OAuth credentials"


# --- Upstream (Xero identity / API) ---


class UpstreamRejected(XeroBrokerError):
    """Xero answered the token request with an error response."""

    kind = "UpstreamRejected"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Token exchange rejected by Xero"

    def __init__(self, error_code: str | None, details: str | None = None, *, http_status: int | None = None) -> None:
        self.error_code = error_code
        message = None
        if error_code in UPSTREAM_ERROR_HINTS:
            message, hint = UPSTREAM_ERROR_HINTS[error_code]
            details = hint
        if error_code == "invalid_client" or (error_code is None and http_status == 401):
            self.status_code = status.HTTP_401_UNAUTHORIZED
        super().__init__(details, message=message)

    @property
    def code_is_dead(self) -> bool:
        """True when Xero says the grant itself is spent; the code must stay burned."""
        return self.error_code == "invalid_grant"

    def to_dict(self, request_id: str | None = None) -> dict:
        body = super().to_dict(request_id)
        if self.error_code:
            body["xeroErrorCode"] = self.error_code
        return body


class UpstreamUnavailable(XeroBrokerError):
    kind = "UpstreamUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Service unavailable - Could not reach Xero token endpoint"


class ExchangeFailed(XeroBrokerError):
    kind = "ExchangeFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Token exchange failed"


class XeroApiError(XeroBrokerError):
    kind = "XeroApiError"
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Xero API request failed"


# --- Bearer gate / downstream ---


class MissingToken(XeroBrokerError):
    kind = "MissingToken"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Access token required"


class InvalidTokenFormat(XeroBrokerError):
    kind = "InvalidTokenFormat"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Invalid token format"


class TokenExpired(XeroBrokerError):
    kind = "TokenExpired"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Token has expired"


class MissingUserIdentifier(XeroBrokerError):
    kind = "MissingUserIdentifier"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Invalid token - missing user identifier"


class XeroAuthRequired(XeroBrokerError):
    kind = "XeroAuthRequired"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Xero authentication required"

    def __init__(self, details: str | None = None, **kwargs) -> None:
        super().__init__(details or "Please authenticate with Xero first to create invoices.", **kwargs)
