"""API routes for customer bill payments."""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.dependencies import CustomerActor
from app.domain.models.payment_session import SupportingDocument
from app.schemas.bills import (
    BillPaymentRequest,
    BillPaymentResponse,
    InvoiceUploadResponse,
    PaymentEvaluationRequest,
    PaymentEvaluationResponse,
    VerifiedPaymentResponse,
)
from app.services.bill_payment_service import BillPaymentService

router = APIRouter(prefix="/bills", tags=["bills"])


def get_bill_payment_service(
    actor: CustomerActor,
    session: AsyncSession = Depends(get_session),
) -> BillPaymentService:
    """Get bill payment service instance for the calling customer."""
    return BillPaymentService(session, actor)


BillPayments = Annotated[BillPaymentService, Depends(get_bill_payment_service)]


@router.post("/invoices", response_model=InvoiceUploadResponse)
async def upload_invoice(
    service: BillPayments,
    file: UploadFile = File(..., description="Invoice PDF, max 5 MB"),
) -> InvoiceUploadResponse:
    """Extract the payable amount and reference from an invoice PDF.

    The invoice is not matched to a payee; select one before paying.
    """
    # One byte past the limit is enough to reject an oversized upload
    content = await file.read(service.config.max_invoice_size_bytes + 1)
    extraction = await service.upload_invoice(
        content, file.filename or "invoice.pdf", file.content_type
    )
    return InvoiceUploadResponse(**extraction.model_dump())


@router.post("/evaluate", response_model=PaymentEvaluationResponse)
async def evaluate_payment(
    request: PaymentEvaluationRequest,
    service: BillPayments,
) -> PaymentEvaluationResponse:
    """Check funds and tell whether the payment needs a verification document."""
    evaluation = await service.evaluate_payment(
        request.amount, request.payee_id, request.account_id
    )
    return PaymentEvaluationResponse(
        decision=evaluation.decision,
        requires_verification=evaluation.requires_verification,
        amount=evaluation.amount,
        threshold=evaluation.threshold,
        message=evaluation.message,
    )


@router.post("/pay", response_model=BillPaymentResponse)
async def pay_bill(
    request: BillPaymentRequest,
    service: BillPayments,
) -> BillPaymentResponse:
    """Pay a saved payee immediately. Rejected above the verification threshold."""
    result = await service.pay_direct(
        request.payee_id, request.amount, request.account_id, request.invoice_number
    )
    return BillPaymentResponse(
        transaction_id=result.transaction_id,
        reference=result.reference,
        amount=result.amount,
        currency=result.currency,
        status=result.status,
    )


@router.post("/pay-verified", response_model=VerifiedPaymentResponse, status_code=202)
async def pay_bill_verified(
    service: BillPayments,
    amount: Annotated[Decimal, Form(gt=0)],
    account_id: Annotated[str, Form(min_length=1)],
    document: Annotated[UploadFile, File(description="ID document, image or PDF")],
    payee_id: Annotated[str | None, Form()] = None,
    invoice_number: Annotated[str | None, Form(max_length=100)] = None,
) -> VerifiedPaymentResponse:
    """Submit a payment above the threshold for document review.

    The account is not debited until the review is approved.
    """
    content = await document.read(service.config.max_verification_document_size_bytes + 1)
    submission = await service.submit_verified_payment(
        payee_id,
        amount,
        account_id,
        SupportingDocument(
            filename=document.filename or "document",
            content_type=document.content_type or "application/octet-stream",
            content=content,
        ),
        invoice_number,
    )
    return VerifiedPaymentResponse(reference_id=submission.reference_id, status=submission.status)
