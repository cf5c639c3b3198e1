"""Bulk operation schemas for batch entity actions."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from app.domain.models.banking import (
    AccountStatus,
    BulkAction,
    CardStatus,
    EntityType,
    KycStatus,
    ReviewDecision,
    UserStatus,
)

# =============================================================================
# Action payloads, one variant per (entity type, action) pair that takes data
# =============================================================================


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class EmptyPayload(_Payload):
    """Actions that take no data, and unsupported actions."""


class UserStatusPayload(_Payload):
    status: UserStatus
    reason: str | None = Field(None, max_length=1000)


class KycStatusPayload(_Payload):
    kyc_status: KycStatus
    notes: str | None = Field(None, max_length=2000)


class SuspensionPayload(_Payload):
    reason: str | None = Field(None, max_length=1000)


class AccountStatusPayload(_Payload):
    status: AccountStatus


class CardStatusPayload(_Payload):
    status: CardStatus


class TransferReviewPayload(_Payload):
    status: ReviewDecision
    reason: str | None = Field(None, max_length=1000)


BulkPayload = (
    EmptyPayload
    | UserStatusPayload
    | KycStatusPayload
    | SuspensionPayload
    | AccountStatusPayload
    | CardStatusPayload
    | TransferReviewPayload
)

PAYLOAD_MODELS: dict[tuple[EntityType, BulkAction], type[_Payload]] = {
    (EntityType.USER, BulkAction.UPDATE_STATUS): UserStatusPayload,
    (EntityType.USER, BulkAction.UPDATE_KYC_STATUS): KycStatusPayload,
    (EntityType.USER, BulkAction.SUSPEND): SuspensionPayload,
    (EntityType.ACCOUNT, BulkAction.UPDATE_STATUS): AccountStatusPayload,
    (EntityType.CARD, BulkAction.UPDATE_STATUS): CardStatusPayload,
    (EntityType.WIRE_TRANSFER, BulkAction.UPDATE_STATUS): TransferReviewPayload,
}


def resolve_payload(
    entity_type: EntityType | str, action: BulkAction | str, data: dict[str, Any] | None
) -> BulkPayload:
    """Validate the raw ``data`` map against the payload model for this action.

    Pairs with no payload model get an EmptyPayload, extra keys ignored.
    Raises pydantic.ValidationError when required fields are missing.
    """
    try:
        key = (EntityType(entity_type), BulkAction(action))
    except ValueError:
        return EmptyPayload()
    model = PAYLOAD_MODELS.get(key, EmptyPayload)
    return model.model_validate(data or {})


# =============================================================================
# Request / response
# =============================================================================


class Actor(BaseModel):
    """Who is performing a bulk action, as recorded in audit logs."""

    user_id: str
    ip_address: str
    user_agent: str


class BulkActionRequest(BaseModel):
    """Schema for applying one action to many entities of one type.

    The batch size cap is enforced by the executor, which answers an
    oversized batch with a single ``batch`` error rather than a 422.
    """

    entity_type: EntityType = Field(..., description="Type of entity to act on")
    action: BulkAction = Field(..., description="Action to apply to every id")
    ids: list[str] = Field(
        ...,
        min_length=1,
        description="Entity ids, processed in order (max 100 per request)",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Action-specific payload, e.g. {'status': 'ACTIVE', 'reason': '...'}",
    )

    @model_validator(mode="after")
    def validate_payload(self) -> "BulkActionRequest":
        try:
            resolve_payload(self.entity_type, self.action, self.data)
        except PydanticValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ValueError(
                f"Invalid data for {self.entity_type.value} {self.action.value}: {fields}"
            ) from None
        return self

    @property
    def payload(self) -> BulkPayload:
        return resolve_payload(self.entity_type, self.action, self.data)


class BatchItemResult(BaseModel):
    id: str
    success: bool
    message: str | None = None


class BatchErrorEntry(BaseModel):
    id: str
    error: str


class BulkOperationResponse(BaseModel):
    """Outcome of a bulk operation.

    ``errors`` may carry a synthetic id (``batch``, ``unknown`` or ``all``)
    when the whole request was rejected before any id was processed.
    """

    success: bool = Field(..., description="True when no errors were recorded")
    total_items: int = Field(..., description="Number of ids in the request")
    processed_items: int = Field(..., description="Number of ids processed successfully")
    failed_items: int = Field(..., description="Number of failed ids")
    errors: list[BatchErrorEntry] = Field(default_factory=list)
    results: list[BatchItemResult] = Field(default_factory=list)
