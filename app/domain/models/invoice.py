"""Invoice extraction models."""

from decimal import Decimal

from pydantic import BaseModel, Field


class InvoiceBreakdown(BaseModel):
    principal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    fee: Decimal = Decimal("0")


class ParsedInvoice(BaseModel):
    """Everything the field extractor could find; any field may be missing."""

    invoice_number: str | None = None
    amount: Decimal | None = None
    service_code: str | None = None
    account_code: str | None = None
    loan_code: str | None = None
    payment_pin: str | None = None
    breakdown: InvoiceBreakdown = Field(default_factory=InvoiceBreakdown)


class InvoiceExtraction(BaseModel):
    """A parsed invoice that carries a payable amount.

    Holds no payee: the customer must still pick a saved payee explicitly.
    """

    amount: Decimal
    invoice_number: str | None = None
    payment_pin: str | None = None
    service_code: str | None = None
    account_code: str | None = None
    loan_code: str | None = None
    breakdown: InvoiceBreakdown = Field(default_factory=InvoiceBreakdown)
