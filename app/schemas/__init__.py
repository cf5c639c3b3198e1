"""Schemas package for request/response models."""

from app.schemas.bills import (
    BillPaymentRequest,
    BillPaymentResponse,
    InvoiceUploadResponse,
    PaymentEvaluationRequest,
    PaymentEvaluationResponse,
    VerifiedPaymentResponse,
)
from app.schemas.bulk import (
    Actor,
    BatchErrorEntry,
    BatchItemResult,
    BulkActionRequest,
    BulkOperationResponse,
    resolve_payload,
)

__all__ = [
    # Bulk
    "Actor",
    "BulkActionRequest",
    "BulkOperationResponse",
    "BatchItemResult",
    "BatchErrorEntry",
    "resolve_payload",
    # Bills
    "InvoiceUploadResponse",
    "PaymentEvaluationRequest",
    "PaymentEvaluationResponse",
    "BillPaymentRequest",
    "BillPaymentResponse",
    "VerifiedPaymentResponse",
]
