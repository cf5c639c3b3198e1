"""Bill payment schemas."""

from decimal import Decimal

from pydantic import BaseModel, Field

from app.domain.models.banking import PaymentDecision, PaymentTransactionStatus
from app.domain.models.invoice import InvoiceBreakdown


class InvoiceUploadResponse(BaseModel):
    """Fields extracted from an uploaded invoice.

    No payee is included; the customer selects one of their saved payees.
    """

    amount: Decimal
    invoice_number: str | None = None
    payment_pin: str | None = None
    service_code: str | None = None
    account_code: str | None = None
    loan_code: str | None = None
    breakdown: InvoiceBreakdown = Field(default_factory=InvoiceBreakdown)


class PaymentEvaluationRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Payment amount")
    account_id: str = Field(..., min_length=1, description="Account to pay from")
    payee_id: str | None = Field(None, description="Selected saved payee")


class PaymentEvaluationResponse(BaseModel):
    decision: PaymentDecision
    requires_verification: bool
    amount: Decimal
    threshold: Decimal
    message: str


class BillPaymentRequest(BaseModel):
    """Direct bill payment. ``payee_id`` is required to pay."""

    amount: Decimal = Field(..., gt=0, description="Payment amount")
    account_id: str = Field(..., min_length=1, description="Account to debit")
    payee_id: str | None = Field(None, description="Saved payee to pay")
    invoice_number: str | None = Field(None, max_length=100)


class BillPaymentResponse(BaseModel):
    transaction_id: str
    reference: str
    amount: Decimal
    currency: str
    status: PaymentTransactionStatus
    message: str = "Payment successful"


class VerifiedPaymentResponse(BaseModel):
    reference_id: str = Field(..., description="Reference of the pending payment")
    status: PaymentTransactionStatus
    message: str = "Payment submitted for verification"
