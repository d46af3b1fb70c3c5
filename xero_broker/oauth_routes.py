"""
/xero router: start the authorization flow, receive the callback (browser redirect
and code exchange), manual token injection and token diagnostics.
"""
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from xero_broker.authorize import build_authorize_url, generate_state
from xero_broker.config import DEFAULT_EXPIRES_IN
from xero_broker.dependencies import CoordinatorDep, SettingsDep, TokenStoreDep
from xero_broker.errors import ServerMisconfigured
from xero_broker.logs import get_request_id
from xero_broker.schemas import CallbackBody, StoreTokensBody
from xero_broker.token_store import TokenRecord

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/xero")


def _authorize_request(settings) -> tuple[str, str]:
    if not settings.client_id or not settings.callback_url:
        logger.error("Missing Xero OAuth configuration (client id or callback URL)")
        raise ServerMisconfigured()
    state = generate_state()
    url = build_authorize_url(
        client_id=settings.client_id,
        redirect_uri=settings.callback_url,
        scope=settings.scopes,
        state=state,
    )
    return url, state


@router.get("/auth")
def start_auth(settings: SettingsDep):
    """Authorization URL plus the state the client should expect back."""
    url, state = _authorize_request(settings)
    logger.info(
        "Initiating Xero OAuth flow: client_id=%s... redirect_uri=%s scopes=%s",
        settings.client_id[:8],
        settings.callback_url,
        settings.scopes,
    )
    return {"authUrl": url, "state": state}


@router.get("/auth/url")
def auth_url(request: Request, settings: SettingsDep):
    """Same as /auth, tagged with the request id."""
    url, state = _authorize_request(settings)
    return {"authUrl": url, "state": state, "requestId": get_request_id(request)}


@router.get("/callback")
def callback_redirect(
    request: Request,
    settings: SettingsDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """Browser leg: forward Xero's query parameters to the frontend, which POSTs the code back."""
    params = {
        k: v
        for k, v in (
            ("code", code),
            ("state", state),
            ("error", error),
            ("error_description", error_description),
        )
        if v
    }
    url = f"{settings.frontend_url}/xero/callback"
    if params:
        url = f"{url}?{urlencode(params)}"
    logger.info(
        "[%s] Redirecting to frontend callback (code=%s, error=%s)",
        get_request_id(request),
        bool(code),
        error,
    )
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.post("/callback")
def callback_exchange(body: CallbackBody, request: Request, coordinator: CoordinatorDep):
    """Exchange the authorization code; tokens are stored and returned to the caller."""
    result = coordinator.exchange(body.code, body.state, request_id=get_request_id(request))
    return result.to_response()


@router.post("/store-tokens")
def store_tokens(body: StoreTokensBody, request: Request, settings: SettingsDep, token_store: TokenStoreDep):
    """Store tokens for a user directly (testing aid)."""
    request_id = get_request_id(request)
    if not body.user_id or not body.access_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "userId and accessToken are required", "requestId": request_id},
        )
    token_store.store(
        body.user_id,
        TokenRecord.issue(
            access_token=body.access_token,
            refresh_token=body.refresh_token,
            expires_in=body.expires_in or DEFAULT_EXPIRES_IN,
            tenant_id=body.tenant_id or settings.default_tenant_id,
        ),
    )
    logger.info("[%s] Tokens stored for user %s", request_id, body.user_id)
    return {"success": True, "message": "Tokens stored successfully", "requestId": request_id}


@router.get("/tokens/status")
def tokens_status(request: Request, token_store: TokenStoreDep, userId: str | None = None):
    request_id = get_request_id(request)
    if not userId:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "userId is required", "requestId": request_id},
        )
    return {"hasValidTokens": token_store.has_valid(userId), "userId": userId, "requestId": request_id}


@router.get("/tokens/debug")
def tokens_debug(settings: SettingsDep, token_store: TokenStoreDep):
    """Redacted view of every stored record. Development only."""
    if settings.is_production:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Debug endpoint not available in production"},
        )
    tokens = token_store.list_all()
    return {"tokens": tokens, "count": len(tokens)}


@router.get("/debug/config")
def debug_config(settings: SettingsDep):
    """Which settings are present. Never returns secrets."""
    if settings.is_production:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Debug endpoint not available in production"},
        )
    return {
        "hasClientId": bool(settings.client_id),
        "hasClientSecret": bool(settings.client_secret),
        "hasCallbackUrl": bool(settings.callback_url),
        "hasDefaultTenantId": bool(settings.default_tenant_id),
        "clientIdPrefix": f"{settings.client_id[:8]}..." if settings.client_id else None,
        "callbackUrl": settings.callback_url,
        "scopes": settings.scopes,
        "frontendUrl": settings.frontend_url,
        "usedCodeSweepSeconds": settings.used_code_sweep_seconds,
        "environment": settings.environment,
    }
