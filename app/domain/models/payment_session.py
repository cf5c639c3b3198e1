"""Transient state of one customer's bill payment attempt.

AWAITING_INPUT -> READY_TO_PAY -> PAID_DIRECT
                               -> AWAITING_VERIFICATION_DOCUMENT -> SUBMITTED_FOR_VERIFICATION

Failures return the session to AWAITING_INPUT. The session is held by the
caller between requests and is never persisted.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from app.core.errors import ConflictError
from app.domain.models.invoice import InvoiceExtraction


class PaymentSessionState(str, Enum):
    AWAITING_INPUT = "AWAITING_INPUT"
    READY_TO_PAY = "READY_TO_PAY"
    AWAITING_VERIFICATION_DOCUMENT = "AWAITING_VERIFICATION_DOCUMENT"
    PAID_DIRECT = "PAID_DIRECT"
    SUBMITTED_FOR_VERIFICATION = "SUBMITTED_FOR_VERIFICATION"


TERMINAL_STATES = frozenset(
    {PaymentSessionState.PAID_DIRECT, PaymentSessionState.SUBMITTED_FOR_VERIFICATION}
)


@dataclass(frozen=True)
class SupportingDocument:
    filename: str
    content_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class PaymentSession:
    user_id: str
    state: PaymentSessionState = PaymentSessionState.AWAITING_INPUT
    amount: Decimal | None = None
    reference: str | None = None
    invoice: InvoiceExtraction | None = None
    payee_id: str | None = None
    account_id: str | None = None
    threshold: Decimal | None = None
    verification_document: SupportingDocument | None = None
    result_reference: str | None = None

    def _clear(self) -> None:
        self.amount = None
        self.reference = None
        self.invoice = None
        self.threshold = None
        self.verification_document = None
        self.result_reference = None

    def _require_state(self, *allowed: PaymentSessionState) -> None:
        if self.state not in allowed:
            raise ConflictError(
                f"Payment session is {self.state.value}",
                details={"state": self.state.value, "allowed": [s.value for s in allowed]},
            )

    def attach_invoice(self, invoice: InvoiceExtraction) -> None:
        """Start over from an uploaded invoice, discarding any verification in progress."""
        self._clear()
        self.invoice = invoice
        self.amount = invoice.amount
        self.reference = invoice.invoice_number
        self.state = PaymentSessionState.READY_TO_PAY

    def enter_manually(self, amount: Decimal, reference: str | None = None) -> None:
        self._clear()
        self.amount = amount
        self.reference = reference
        self.state = PaymentSessionState.READY_TO_PAY

    def select_payee(self, payee_id: str) -> None:
        if self.state in TERMINAL_STATES:
            raise ConflictError("Payment already completed", details={"state": self.state.value})
        self.payee_id = payee_id

    def select_account(self, account_id: str) -> None:
        if self.state in TERMINAL_STATES:
            raise ConflictError("Payment already completed", details={"state": self.state.value})
        self.account_id = account_id

    def require_verification(self, threshold: Decimal) -> None:
        self._require_state(PaymentSessionState.READY_TO_PAY)
        self.threshold = threshold
        self.state = PaymentSessionState.AWAITING_VERIFICATION_DOCUMENT

    def attach_verification_document(self, document: SupportingDocument) -> None:
        self._require_state(PaymentSessionState.AWAITING_VERIFICATION_DOCUMENT)
        self.verification_document = document

    def mark_paid(self, reference: str) -> None:
        self._require_state(PaymentSessionState.READY_TO_PAY)
        self.result_reference = reference
        self.state = PaymentSessionState.PAID_DIRECT

    def mark_submitted(self, reference_id: str) -> None:
        self._require_state(PaymentSessionState.AWAITING_VERIFICATION_DOCUMENT)
        self.result_reference = reference_id
        self.state = PaymentSessionState.SUBMITTED_FOR_VERIFICATION

    def fail(self) -> None:
        """Drop back to AWAITING_INPUT after a failed attempt."""
        self._clear()
        self.state = PaymentSessionState.AWAITING_INPUT
