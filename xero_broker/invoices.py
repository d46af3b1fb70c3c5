"""
Invoice creation on behalf of an authenticated user, using the Xero tokens stored
for that user. Only a minimal guard is applied before calling Xero (contact name
and a positive total); Xero itself is the authority on the rest of the payload.
"""
import logging
import random
from datetime import date

from xero_broker import xero_client
from xero_broker.config import Settings
from xero_broker.errors import ServerMisconfigured, XeroAuthRequired
from xero_broker.schemas import InvoiceRequest
from xero_broker.token_store import TokenStore

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_CODE = "200"
DEFAULT_TAX_TYPE = "OUTPUT"


def can_create_invoice(data: InvoiceRequest) -> bool:
    return bool(data.client_name) and (data.total_amount or 0) > 0


def suggestions(data: InvoiceRequest) -> list[str]:
    """What is missing or worth checking before the invoice can be sent."""
    out = []
    if not data.client_name:
        out.append("Client name is required to create an invoice in Xero")
    if not data.total_amount or data.total_amount <= 0:
        out.append("Total amount is required and must be greater than zero")
    if not data.invoice_date:
        out.append("Invoice date will default to today")
    if not data.invoice_number:
        out.append("Invoice number will be auto-generated if not provided")
    if data.tax_amount and data.subtotal is None:
        out.append("Tax amount given without a subtotal - please verify amounts")
    if not data.line_items:
        out.append("No line items given - a single line for the total will be created")
    return out


def _amount(value: float | None) -> str:
    return str(value or 0)


def to_xero_invoice(data: InvoiceRequest, currency: str | None = None) -> dict:
    """Map the request onto Xero's Invoice shape (ACCREC, tax-inclusive line amounts)."""
    today = date.today().isoformat()
    total = data.total_amount or 0
    tax = data.tax_amount or 0

    if data.line_items:
        line_items = [
            {
                "Description": item.description or "Service/Product",
                "Quantity": str(item.quantity or 1),
                "UnitAmount": _amount(item.unit_amount),
                "TaxType": item.tax_type or DEFAULT_TAX_TYPE,
                "TaxAmount": _amount(item.tax_amount),
                "LineAmount": _amount(item.line_amount if item.line_amount is not None else item.unit_amount),
                "AccountCode": item.account_code or DEFAULT_ACCOUNT_CODE,
            }
            for item in data.line_items
        ]
    else:
        line_items = [
            {
                "Description": data.description or "Invoice item",
                "Quantity": "1",
                "UnitAmount": _amount(total),
                "TaxType": DEFAULT_TAX_TYPE,
                "TaxAmount": _amount(tax),
                "LineAmount": _amount(total),
                "AccountCode": DEFAULT_ACCOUNT_CODE,
            }
        ]

    contact = {"Name": data.client_name}
    if data.client_id:
        contact["ContactID"] = data.client_id

    invoice = {
        "Type": "ACCREC",
        "Contact": contact,
        "DateString": data.invoice_date or today,
        "DueDateString": data.due_date or today,
        "InvoiceNumber": data.invoice_number or f"INV-{random.randint(100000, 999999)}",
        "Reference": data.reference or "",
        "Status": "DRAFT",
        "LineAmountTypes": "Inclusive",
        "SubTotal": _amount(data.subtotal if data.subtotal is not None else total - tax),
        "TotalTax": _amount(tax),
        "Total": _amount(total),
        "LineItems": line_items,
    }
    # Organisation base currency wins over whatever the caller sent
    if currency or data.currency:
        invoice["CurrencyCode"] = currency or data.currency
    return invoice


def create_invoice_for_user(
    user_id: str,
    data: InvoiceRequest,
    token_store: TokenStore,
    settings: Settings,
) -> dict:
    """
    Create the invoice in Xero with the user's stored access token.
    Tenant: the one recorded with the tokens, else the configured default.
    Raises XeroAuthRequired when the user has no valid tokens.
    """
    record = token_store.get(user_id)
    if record is None or not record.access_token:
        raise XeroAuthRequired()
    tenant_id = record.tenant_id or settings.default_tenant_id
    if not tenant_id:
        raise ServerMisconfigured("No Xero tenant known for this user and XERO_TENANT_ID is not set")

    organisation = xero_client.get_organisation(record.access_token, tenant_id)
    currency = organisation.get("BaseCurrency") if organisation else None
    if currency:
        logger.info("Using organisation base currency %s for tenant %s", currency, tenant_id)
    else:
        logger.warning("Could not determine base currency for tenant %s; leaving it to Xero", tenant_id)

    invoice = to_xero_invoice(data, currency)
    logger.info(
        "Creating invoice for user %s: number=%s contact=%s lines=%d",
        user_id,
        invoice["InvoiceNumber"],
        data.client_name,
        len(invoice["LineItems"]),
    )
    return xero_client.create_invoice(invoice, record.access_token, tenant_id)
