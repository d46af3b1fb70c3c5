"""
Request bodies. Fields are camelCase on the wire; snake_case names are accepted too.
"""
from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CallbackBody(_Body):
    code: str | None = None
    state: str | None = None


class StoreTokensBody(_Body):
    user_id: str | None = Field(None, alias="userId")
    access_token: str | None = Field(None, alias="accessToken")
    refresh_token: str | None = Field(None, alias="refreshToken")
    expires_in: int | None = Field(None, alias="expiresIn")
    tenant_id: str | None = Field(None, alias="tenantId")


class LineItem(_Body):
    description: str | None = None
    quantity: float | None = None
    unit_amount: float | None = Field(None, alias="unitAmount")
    tax_amount: float | None = Field(None, alias="taxAmount")
    line_amount: float | None = Field(None, alias="lineAmount")
    account_code: str | None = Field(None, alias="accountCode")
    tax_type: str | None = Field(None, alias="taxType")


class InvoiceRequest(_Body):
    client_name: str | None = Field(None, alias="clientName")
    client_id: str | None = Field(None, alias="clientId")
    invoice_date: str | None = Field(None, alias="invoiceDate")
    due_date: str | None = Field(None, alias="dueDate")
    invoice_number: str | None = Field(None, alias="invoiceNumber")
    reference: str | None = None
    description: str | None = None
    subtotal: float | None = None
    tax_amount: float | None = Field(None, alias="taxAmount")
    total_amount: float | None = Field(None, alias="totalAmount")
    currency: str | None = None
    line_items: list[LineItem] = Field(default_factory=list, alias="lineItems")
