"""
Domain-specific exceptions for the Aurum Vault Operations API.

These exceptions represent business logic violations and are mapped
to appropriate HTTP status codes in the API layer.
"""

from typing import Any


class BankingOperationsError(Exception):
    """Base exception for all banking operations domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BankingOperationsError):
    """
    Raised when input data fails validation.

    Examples:
    - Batch size over the configured maximum
    - Empty or oversized upload
    - Non-positive payment amount

    HTTP Status: 400 Bad Request
    """

    pass


class NotFoundError(BankingOperationsError):
    """
    Raised when a requested resource does not exist.

    Examples:
    - User, account or card id not found
    - Wire transfer not found
    - Payee not owned by the paying user

    HTTP Status: 404 Not Found
    """

    pass


class UnauthorizedError(BankingOperationsError):
    """
    Raised when user lacks valid authentication.

    HTTP Status: 401 Unauthorized
    """

    pass


class ForbiddenError(BankingOperationsError):
    """
    Raised when user is authenticated but not allowed to perform action.

    HTTP Status: 403 Forbidden
    """

    pass


class ConflictError(BankingOperationsError):
    """
    Raised when operation conflicts with current state.

    Examples:
    - Payment session step taken out of order
    - Verification document attached before verification was required

    HTTP Status: 409 Conflict
    """

    pass


class UnsupportedOperationError(BankingOperationsError):
    """
    Raised when an action is not valid for an entity type.

    Inside a batch this becomes a per-id error; it never aborts the batch.

    HTTP Status: 400 Bad Request
    """

    pass


class PaymentWorkflowError(BankingOperationsError):
    """
    Base for conditions that halt a single payment attempt.

    These are surfaced to the customer for correction and never downgraded.

    HTTP Status: 422 Unprocessable Entity
    """

    pass


class InsufficientFundsError(PaymentWorkflowError):
    """Raised when the paying account balance does not cover the amount."""

    pass


class MissingPayeeError(PaymentWorkflowError):
    """Raised when a payment is attempted without an explicitly selected payee."""

    pass


class PolicyThresholdExceededError(PaymentWorkflowError):
    """Raised when a direct payment exceeds the verification threshold."""

    pass


class InvoiceParsingError(BankingOperationsError):
    """
    Raised when an uploaded invoice cannot be turned into a payable amount.

    HTTP Status: 422 Unprocessable Entity
    """

    pass


ERROR_STATUS_MAP = {
    ValidationError: 400,
    UnsupportedOperationError: 400,
    UnauthorizedError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    PaymentWorkflowError: 422,
    InvoiceParsingError: 422,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Subclasses inherit the status of the nearest mapped ancestor.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS_MAP:
            return ERROR_STATUS_MAP[cls]
    return 500
