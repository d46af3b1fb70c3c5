"""
/api router. Every route requires a Bearer token accepted by the gate in auth.py;
the caller's identifier selects which stored Xero tokens are used.
"""
import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from xero_broker.auth import CurrentIdentity
from xero_broker.claims import display_name
from xero_broker.config import DEFAULT_EXPIRES_IN
from xero_broker.dependencies import SettingsDep, TokenStoreDep
from xero_broker.errors import XeroAuthRequired
from xero_broker.invoices import can_create_invoice, create_invoice_for_user, suggestions
from xero_broker.schemas import InvoiceRequest
from xero_broker.token_store import TokenRecord

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api")


class XeroTokenBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str | None = Field(None, alias="accessToken")
    refresh_token: str | None = Field(None, alias="refreshToken")
    expires_in: int | None = Field(None, alias="expiresIn")
    tenant_id: str | None = Field(None, alias="tenantId")


@router.get("/auth/me")
def me(identity: CurrentIdentity):
    claims = identity.raw_claims
    logger.info("User info retrieved for %s", identity.user_identifier)
    return {
        "id": identity.id,
        "email": identity.email,
        "name": display_name(claims, fallback=identity.user_identifier),
        "given_name": claims.get("given_name"),
        "family_name": claims.get("family_name"),
        "xero_userid": claims.get("xero_userid"),
    }


@router.get("/auth/status")
def auth_status(identity: CurrentIdentity, token_store: TokenStoreDep):
    return {
        "authenticated": True,
        "hasXeroTokens": token_store.has_valid(identity.user_identifier),
        "user": {
            "id": identity.id,
            "email": identity.email,
            "name": identity.raw_claims.get("name") or identity.user_identifier,
        },
    }


@router.post("/xero/token")
def set_xero_token(
    body: XeroTokenBody,
    identity: CurrentIdentity,
    settings: SettingsDep,
    token_store: TokenStoreDep,
):
    """Store Xero tokens for the authenticated caller (testing aid)."""
    if not body.access_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "accessToken is required"},
        )
    user_id = identity.user_identifier
    token_store.store(
        user_id,
        TokenRecord.issue(
            access_token=body.access_token,
            refresh_token=body.refresh_token,
            expires_in=body.expires_in or DEFAULT_EXPIRES_IN,
            tenant_id=body.tenant_id or settings.default_tenant_id,
        ),
    )
    return {
        "success": True,
        "message": f"Xero token stored for user {user_id}",
        "hasValidTokens": token_store.has_valid(user_id),
    }


@router.post("/invoices/xero")
def create_xero_invoice(
    body: InvoiceRequest,
    identity: CurrentIdentity,
    settings: SettingsDep,
    token_store: TokenStoreDep,
):
    """Create an invoice in Xero for the caller, using the Xero tokens stored for them."""
    if not token_store.has_valid(identity.user_identifier):
        raise XeroAuthRequired()
    if not can_create_invoice(body):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Insufficient data to create invoice",
                "message": "Please ensure client name and total amount are provided.",
                "suggestions": suggestions(body),
            },
        )
    invoice = create_invoice_for_user(identity.user_identifier, body, token_store, settings)
    return {
        "success": True,
        "message": "Invoice created successfully in Xero",
        "invoice": invoice,
        "xeroInvoiceId": invoice.get("InvoiceID"),
        "invoiceNumber": invoice.get("InvoiceNumber"),
        "total": body.total_amount,
    }
