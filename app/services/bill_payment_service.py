"""Bill payment workflow.

Payments at or below the verification threshold are debited immediately.
Payments above it are recorded as pending and wait for a supporting
document to be reviewed; no money moves until that review happens.
"""

import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import PaymentsConfig, get_settings
from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientFundsError,
    InvoiceParsingError,
    MissingPayeeError,
    NotFoundError,
    PaymentWorkflowError,
    PolicyThresholdExceededError,
    ValidationError,
)
from app.core.logging import get_logger
from app.domain.models.banking import PaymentDecision, PaymentTransactionStatus
from app.domain.models.invoice import InvoiceExtraction, ParsedInvoice
from app.domain.models.payment_session import (
    PaymentSession,
    PaymentSessionState,
    SupportingDocument,
)
from app.persistence.payment_repository import PaymentRepository
from app.persistence.system_config_repository import SystemConfigRepository
from app.schemas.bulk import Actor

logger = get_logger(__name__)

MEGABYTE = 1024 * 1024


class ThresholdProvider(Protocol):
    async def get_threshold(self) -> Decimal: ...


class InvoiceTextParser(Protocol):
    async def parse(self, content: bytes, filename: str = ...) -> ParsedInvoice: ...


class SystemConfigThresholdProvider:
    """Reads the verification threshold from ``system_config``.

    Missing, unparsable or negative values fall back to the configured default,
    as does a failed read.
    """

    def __init__(self, session: AsyncSession, config: PaymentsConfig | None = None):
        self.session = session
        self.repo = SystemConfigRepository(session)
        self.config = config or get_settings().payments

    async def get_threshold(self) -> Decimal:
        default = self.config.default_verification_threshold
        key = self.config.verification_threshold_key
        try:
            async with self.session.begin_nested():
                raw = await self.repo.get_value(key)
        except SQLAlchemyError as e:
            logger.warning("Threshold lookup failed, using default", key=key, error=str(e))
            return default

        if raw is None:
            return default

        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation:
            logger.warning("Unparsable threshold value, using default", key=key, value=raw)
            return default

        if not value.is_finite() or value < 0:
            logger.warning("Invalid threshold value, using default", key=key, value=raw)
            return default
        return value


@dataclass(frozen=True)
class PaymentEvaluation:
    decision: PaymentDecision
    amount: Decimal
    threshold: Decimal
    account_id: str

    @property
    def requires_verification(self) -> bool:
        return self.decision == PaymentDecision.REQUIRE_VERIFICATION

    @property
    def message(self) -> str:
        if self.requires_verification:
            return f"Payments over {self.threshold:,} require a verification document"
        return "Payment can be made directly"


@dataclass(frozen=True)
class PaymentResult:
    transaction_id: str
    reference: str
    amount: Decimal
    currency: str
    status: PaymentTransactionStatus = PaymentTransactionStatus.COMPLETED


@dataclass(frozen=True)
class VerificationSubmission:
    reference_id: str
    transaction_id: str
    verification_id: str
    status: PaymentTransactionStatus = PaymentTransactionStatus.PENDING_VERIFICATION


def _reference(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}"


def _validate_amount(amount: Any) -> Decimal:
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError("Invalid amount", details={"amount": str(amount)}) from None
    if not value.is_finite() or value <= 0:
        raise ValidationError("Invalid amount", details={"amount": str(amount)})
    return value


def _require_payee(payee_id: str | None) -> str:
    if not payee_id:
        raise MissingPayeeError("A saved payee must be selected before paying")
    return payee_id


class BillPaymentService:
    """Threshold-gated bill payments for one customer."""

    def __init__(
        self,
        session: AsyncSession,
        actor: Actor,
        payment_repo: PaymentRepository | None = None,
        threshold_provider: ThresholdProvider | None = None,
        invoice_parser: InvoiceTextParser | None = None,
        config: PaymentsConfig | None = None,
    ):
        self.session = session
        self.actor = actor
        self.config = config or get_settings().payments
        self.payment_repo = payment_repo or PaymentRepository(session)
        self.threshold_provider = threshold_provider or SystemConfigThresholdProvider(
            session, self.config
        )
        if invoice_parser is None:
            from app.services.invoice_parser import InvoiceParser

            invoice_parser = InvoiceParser()
        self.invoice_parser = invoice_parser

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    async def upload_invoice(
        self, content: bytes, filename: str, content_type: str | None
    ) -> InvoiceExtraction:
        """Parse an uploaded invoice PDF into a payable amount and reference.

        The invoice never selects a payee; the customer picks one afterwards.

        Raises:
            ValidationError: not a PDF, empty, or too large
            InvoiceParsingError: parsing failed or no payable amount was found
        """
        if content_type not in self.config.allowed_invoice_content_types:
            raise ValidationError(
                "Only PDF invoices are accepted", details={"content_type": content_type}
            )
        if not content:
            raise ValidationError("Invoice file is empty")
        if len(content) > self.config.max_invoice_size_bytes:
            raise ValidationError(
                "Invoice file exceeds maximum size of "
                f"{self.config.max_invoice_size_bytes // MEGABYTE} MB",
                details={"size": len(content)},
            )

        parsed = await self.invoice_parser.parse(content, filename)
        if parsed.amount is None or parsed.amount <= 0:
            raise InvoiceParsingError(
                "Could not find a payable amount in the invoice",
                details={"invoice_number": parsed.invoice_number},
            )

        logger.info(
            "Invoice uploaded",
            user_id=self.actor.user_id,
            invoice_number=parsed.invoice_number,
            amount=str(parsed.amount),
        )
        return InvoiceExtraction(**parsed.model_dump())

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    async def get_verification_threshold(self) -> Decimal:
        return await self.threshold_provider.get_threshold()

    async def _get_account(self, account_id: str) -> dict[str, Any]:
        account = await self.payment_repo.get_account(account_id, self.actor.user_id)
        if not account:
            raise NotFoundError("Account not found", details={"account_id": account_id})
        return account

    async def _get_payee(self, payee_id: str) -> dict[str, Any]:
        payee = await self.payment_repo.get_payee(payee_id, self.actor.user_id)
        if not payee:
            raise NotFoundError("Payee not found", details={"payee_id": payee_id})
        return payee

    @staticmethod
    def _check_funds(account: dict[str, Any], amount: Decimal) -> None:
        if account["balance"] < amount:
            raise InsufficientFundsError(
                "Insufficient funds",
                details={"account_id": str(account["id"]), "amount": str(amount)},
            )

    async def evaluate_payment(
        self, amount: Any, payee_id: str | None, account_id: str
    ) -> PaymentEvaluation:
        """Decide whether a payment can go straight through.

        Funds are checked before the threshold. The threshold is read once per call.
        """
        value = _validate_amount(amount)
        account = await self._get_account(account_id)
        self._check_funds(account, value)

        threshold = await self.get_verification_threshold()
        decision = (
            PaymentDecision.REQUIRE_VERIFICATION
            if value > threshold
            else PaymentDecision.PAY_DIRECT
        )
        logger.info(
            "Payment evaluated",
            user_id=self.actor.user_id,
            payee_id=payee_id,
            amount=str(value),
            threshold=str(threshold),
            decision=decision.value,
        )
        return PaymentEvaluation(
            decision=decision, amount=value, threshold=threshold, account_id=account_id
        )

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    async def pay_direct(
        self,
        payee_id: str | None,
        amount: Any,
        account_id: str,
        invoice_number: str | None = None,
    ) -> PaymentResult:
        """Debit the account and record a completed bill payment.

        Raises:
            MissingPayeeError: no payee selected
            InsufficientFundsError: balance does not cover the amount
            PolicyThresholdExceededError: amount is above the verification threshold
        """
        payee_id = _require_payee(payee_id)
        value = _validate_amount(amount)
        account = await self._get_account(account_id)
        self._check_funds(account, value)

        threshold = await self.get_verification_threshold()
        if value > threshold:
            raise PolicyThresholdExceededError(
                f"Payments over {threshold:,} require a verification document",
                details={"amount": str(value), "threshold": str(threshold)},
            )

        payee = await self._get_payee(payee_id)

        payment = await self.payment_repo.create_payment(
            account_id=account_id,
            amount=value,
            currency=account["currency"],
            category=payee.get("category"),
            description=f"Bill Payment to {payee['name']}",
            reference=_reference("BP"),
            metadata={"payee_id": payee_id, "invoice_number": invoice_number},
        )
        logger.info(
            "Bill payment completed",
            user_id=self.actor.user_id,
            payee_id=payee_id,
            reference=payment["reference"],
            amount=str(value),
            ip_address=self.actor.ip_address,
        )
        return PaymentResult(
            transaction_id=payment["transaction_id"],
            reference=payment["reference"],
            amount=value,
            currency=payment["currency"],
        )

    def _validate_document(self, document: SupportingDocument | None) -> SupportingDocument:
        if document is None or not document.content:
            raise ValidationError("Verification document is required")
        if document.content_type not in self.config.allowed_verification_content_types:
            raise ValidationError(
                "Verification document must be an image or PDF",
                details={"content_type": document.content_type},
            )
        if document.size > self.config.max_verification_document_size_bytes:
            raise ValidationError(
                "Verification document exceeds maximum size of "
                f"{self.config.max_verification_document_size_bytes // MEGABYTE} MB",
                details={"size": document.size},
            )
        return document

    async def submit_verified_payment(
        self,
        payee_id: str | None,
        amount: Any,
        account_id: str,
        supporting_document: SupportingDocument | None,
        invoice_number: str | None = None,
    ) -> VerificationSubmission:
        """Record a payment for document review. The account is not debited.

        Raises:
            MissingPayeeError: no payee selected
            ValidationError: bad amount or missing/invalid document
        """
        payee_id = _require_payee(payee_id)
        value = _validate_amount(amount)
        document = self._validate_document(supporting_document)

        account = await self._get_account(account_id)
        self._check_funds(account, value)
        payee = await self._get_payee(payee_id)

        pending = await self.payment_repo.create_pending_verification(
            account_id=account_id,
            amount=value,
            currency=account["currency"],
            category=payee.get("category"),
            description=f"Bill Payment to {payee['name']} (Pending Verification)",
            reference=_reference("BPV"),
            document=document,
            metadata={"payee_id": payee_id, "invoice_number": invoice_number},
        )
        logger.info(
            "Bill payment submitted for verification",
            user_id=self.actor.user_id,
            payee_id=payee_id,
            reference=pending["reference"],
            amount=str(value),
            document_type=document.content_type,
        )
        return VerificationSubmission(
            reference_id=pending["reference"],
            transaction_id=pending["transaction_id"],
            verification_id=pending["verification_id"],
        )

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def checkout(
        self, session: PaymentSession
    ) -> PaymentEvaluation | PaymentResult | VerificationSubmission:
        """Advance a payment session by one step.

        READY_TO_PAY either pays directly or moves to
        AWAITING_VERIFICATION_DOCUMENT (returning the evaluation); a session
        holding a verification document is submitted for review. Workflow
        failures reset the session to AWAITING_INPUT.
        """
        if session.user_id != self.actor.user_id:
            raise ForbiddenError("Payment session belongs to another user")
        if not session.account_id:
            raise ValidationError("An account must be selected before paying")

        invoice_number = session.invoice.invoice_number if session.invoice else None

        try:
            if session.state == PaymentSessionState.READY_TO_PAY:
                _require_payee(session.payee_id)
                evaluation = await self.evaluate_payment(
                    session.amount, session.payee_id, session.account_id
                )
                if evaluation.requires_verification:
                    session.require_verification(evaluation.threshold)
                    return evaluation

                result = await self.pay_direct(
                    session.payee_id, session.amount, session.account_id, invoice_number
                )
                session.mark_paid(result.reference)
                return result

            if session.state == PaymentSessionState.AWAITING_VERIFICATION_DOCUMENT:
                document = self._validate_document(session.verification_document)
                submission = await self.submit_verified_payment(
                    session.payee_id,
                    session.amount,
                    session.account_id,
                    document,
                    invoice_number,
                )
                session.mark_submitted(submission.reference_id)
                return submission
        except (PaymentWorkflowError, NotFoundError) as e:
            logger.info(
                "Payment session reset",
                user_id=session.user_id,
                state=session.state.value,
                reason=str(e),
            )
            session.fail()
            raise

        raise ConflictError(
            f"Payment session is {session.state.value}",
            details={"state": session.state.value},
        )
