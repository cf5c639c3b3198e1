"""Banking entity enums shared by bulk operations and bill payments."""

from enum import Enum


class EntityType(str, Enum):
    USER = "USER"
    ACCOUNT = "ACCOUNT"
    TRANSACTION = "TRANSACTION"
    WIRE_TRANSFER = "WIRE_TRANSFER"
    CARD = "CARD"


class BulkAction(str, Enum):
    UPDATE_STATUS = "UPDATE_STATUS"
    UPDATE_KYC_STATUS = "UPDATE_KYC_STATUS"
    DELETE = "DELETE"
    SUSPEND = "SUSPEND"
    ACTIVATE = "ACTIVATE"
    EXPORT = "EXPORT"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"
    PENDING = "PENDING"


class KycStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    FROZEN = "FROZEN"
    CLOSED = "CLOSED"


class CardStatus(str, Enum):
    ACTIVE = "ACTIVE"
    FROZEN = "FROZEN"
    BLOCKED = "BLOCKED"
    CANCELLED = "CANCELLED"


class ComplianceStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReviewDecision(str, Enum):
    """Outcome an operator may record on a pending wire transfer."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PaymentTransactionStatus(str, Enum):
    COMPLETED = "COMPLETED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"


class PaymentDecision(str, Enum):
    PAY_DIRECT = "PAY_DIRECT"
    REQUIRE_VERIFICATION = "REQUIRE_VERIFICATION"
