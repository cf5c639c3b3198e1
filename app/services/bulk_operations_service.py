"""Bulk operations service for batch entity actions.

One action is applied to up to ``max_batch_size`` ids of one entity type.
Each id is processed inside its own savepoint; a failing id is recorded in
``errors`` and processing moves on to the next id.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import (
    BankingOperationsError,
    NotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from app.core.logging import get_logger
from app.domain.models.banking import (
    AccountStatus,
    BulkAction,
    CardStatus,
    ComplianceStatus,
    EntityType,
    ReviewDecision,
    UserStatus,
)
from app.persistence.audit_repository import AuditRepository
from app.persistence.entity_repository import EntityRepository
from app.schemas.bulk import (
    AccountStatusPayload,
    Actor,
    BatchErrorEntry,
    BatchItemResult,
    BulkActionRequest,
    BulkPayload,
    CardStatusPayload,
    EmptyPayload,
    KycStatusPayload,
    SuspensionPayload,
    TransferReviewPayload,
    UserStatusPayload,
)

logger = get_logger(__name__)

BATCH_ID = "batch"
UNKNOWN_ENTITY_ID = "unknown"
ALL_ITEMS_ID = "all"

TRANSACTIONS_LOCKED_MESSAGE = (
    "Bulk modification of transactions is not permitted for audit compliance"
)

# Receives one entity id, returns the success message, raises on failure
ItemOperation = Callable[[str], Awaitable[str]]


@dataclass
class BatchActionRequest:
    entity_type: EntityType | str
    action: BulkAction | str
    ids: list[str]
    actor: Actor
    payload: BulkPayload = field(default_factory=EmptyPayload)

    @classmethod
    def from_schema(cls, request: BulkActionRequest, actor: Actor) -> "BatchActionRequest":
        return cls(
            entity_type=request.entity_type,
            action=request.action,
            ids=list(request.ids),
            actor=actor,
            payload=request.payload,
        )


@dataclass
class BatchOperationResult:
    """Aggregated outcome of one bulk operation."""

    success: bool
    total_items: int
    processed_items: int
    failed_items: int
    errors: list[BatchErrorEntry] = field(default_factory=list)
    results: list[BatchItemResult] = field(default_factory=list)

    @classmethod
    def from_items(
        cls,
        total_items: int,
        results: list[BatchItemResult],
        errors: list[BatchErrorEntry],
    ) -> "BatchOperationResult":
        return cls(
            success=not errors,
            total_items=total_items,
            processed_items=sum(1 for r in results if r.success),
            failed_items=len(errors),
            errors=errors,
            results=results,
        )

    @classmethod
    def rejected(cls, total_items: int, error_id: str, message: str) -> "BatchOperationResult":
        """Whole-request rejection: nothing processed, every id counted as failed."""
        return cls(
            success=False,
            total_items=total_items,
            processed_items=0,
            failed_items=total_items,
            errors=[BatchErrorEntry(id=error_id, error=message)],
            results=[],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "total_items": self.total_items,
            "processed_items": self.processed_items,
            "failed_items": self.failed_items,
            "errors": [e.model_dump() for e in self.errors],
            "results": [r.model_dump() for r in self.results],
        }


def _expect(payload: BulkPayload, model: type, action: BulkAction) -> Any:
    if not isinstance(payload, model):
        raise ValidationError(
            f"Missing data for {action.value}",
            details={"expected": model.__name__},
        )
    return payload


def _failing(error: BankingOperationsError) -> ItemOperation:
    async def failing_operation(entity_id: str) -> str:
        raise error

    return failing_operation


def _unsupported(message: str) -> ItemOperation:
    return _failing(UnsupportedOperationError(message))


class BulkOperationsService:
    """Service for bulk entity actions."""

    def __init__(
        self,
        session: AsyncSession,
        entity_repo: EntityRepository | None = None,
        audit_repo: AuditRepository | None = None,
        max_batch_size: int | None = None,
    ):
        self.session = session
        self.entity_repo = entity_repo or EntityRepository(session)
        self.audit_repo = audit_repo or AuditRepository(session)
        if max_batch_size is None:
            max_batch_size = get_settings().bulk.max_batch_size
        self.max_batch_size = max_batch_size

    async def execute(self, request: BatchActionRequest) -> BatchOperationResult:
        """Apply ``request.action`` to every id. Never raises."""
        ids = list(request.ids)

        if len(ids) > self.max_batch_size:
            logger.warning(
                "Bulk operation rejected: batch too large",
                total_items=len(ids),
                max_batch_size=self.max_batch_size,
            )
            return BatchOperationResult.rejected(
                len(ids), BATCH_ID, f"Batch size exceeds maximum of {self.max_batch_size}"
            )

        try:
            entity_type = EntityType(request.entity_type)
        except ValueError:
            return BatchOperationResult.rejected(
                len(ids), UNKNOWN_ENTITY_ID, f"Unknown entity type: {request.entity_type}"
            )

        action_name = getattr(request.action, "value", request.action)
        try:
            action: BulkAction | None = BulkAction(action_name)
        except ValueError:
            action = None

        logger.info(
            "Bulk operation started",
            entity_type=entity_type.value,
            action=action_name,
            total_items=len(ids),
            actor_id=request.actor.user_id,
        )

        if entity_type == EntityType.TRANSACTION:
            result = self._execute_transaction_action(action, ids)
        else:
            operation = self._build_operation(
                entity_type, action, action_name, request.payload, request.actor
            )
            result = await self._execute_bulk_operation(
                ids, f"{entity_type.value}:{action_name}", operation
            )

        logger.info(
            "Bulk operation completed",
            entity_type=entity_type.value,
            action=action_name,
            total_items=result.total_items,
            processed_items=result.processed_items,
            failed_items=result.failed_items,
        )
        return result

    async def _execute_bulk_operation(
        self,
        ids: list[str],
        operation_name: str,
        operation: ItemOperation,
    ) -> BatchOperationResult:
        """Run ``operation`` for each id in order, isolating failures per id."""
        results: list[BatchItemResult] = []
        errors: list[BatchErrorEntry] = []

        for entity_id in ids:
            try:
                async with self.session.begin_nested():
                    message = await operation(entity_id)
            except Exception as e:
                logger.warning(
                    "Bulk item failed",
                    operation=operation_name,
                    entity_id=entity_id,
                    error=str(e),
                    exc_info=not isinstance(e, BankingOperationsError),
                )
                errors.append(BatchErrorEntry(id=entity_id, error=str(e) or "Unknown error"))
                continue
            results.append(BatchItemResult(id=entity_id, success=True, message=message))

        return BatchOperationResult.from_items(len(ids), results, errors)

    def _build_operation(
        self,
        entity_type: EntityType,
        action: BulkAction | None,
        action_name: str,
        payload: BulkPayload,
        actor: Actor,
    ) -> ItemOperation:
        try:
            if entity_type == EntityType.USER:
                return self._user_operation(action, action_name, payload, actor)
            if entity_type == EntityType.ACCOUNT:
                return self._account_operation(action, action_name, payload)
            if entity_type == EntityType.WIRE_TRANSFER:
                return self._wire_transfer_operation(action, action_name, payload, actor)
            return self._card_operation(action, action_name, payload)
        except BankingOperationsError as e:
            # Payload mismatch: every id reports the same error
            return _failing(e)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def _get_user(self, user_id: str) -> dict[str, Any]:
        user = await self.entity_repo.get_by_id(EntityType.USER, user_id)
        if not user:
            raise NotFoundError("User not found", details={"id": user_id})
        return user

    def _user_operation(
        self,
        action: BulkAction | None,
        action_name: str,
        payload: BulkPayload,
        actor: Actor,
    ) -> ItemOperation:
        if action == BulkAction.UPDATE_STATUS:
            data = _expect(payload, UserStatusPayload, action)
            status = data.status.value

            async def update_status(user_id: str) -> str:
                user = await self._get_user(user_id)
                await self.entity_repo.update(EntityType.USER, user_id, {"status": status})
                await self.audit_repo.log_status_change(
                    actor.user_id,
                    user_id,
                    user["status"],
                    status,
                    f"Bulk operation: {data.reason or 'No reason provided'}",
                    actor.ip_address,
                    actor.user_agent,
                )
                return f"Status updated to {status}"

            return update_status

        if action == BulkAction.UPDATE_KYC_STATUS:
            data = _expect(payload, KycStatusPayload, action)
            kyc_status = data.kyc_status.value

            async def update_kyc_status(user_id: str) -> str:
                user = await self._get_user(user_id)
                await self.entity_repo.update(
                    EntityType.USER, user_id, {"kyc_status": kyc_status}
                )
                await self.audit_repo.log_kyc_status_change(
                    actor.user_id,
                    user_id,
                    user["kyc_status"],
                    kyc_status,
                    f"Bulk operation: {data.notes or 'No notes'}",
                    actor.ip_address,
                    actor.user_agent,
                )
                return f"KYC status updated to {kyc_status}"

            return update_kyc_status

        if action == BulkAction.SUSPEND:
            reason = payload.reason if isinstance(payload, SuspensionPayload) else None

            async def suspend(user_id: str) -> str:
                await self.entity_repo.update(
                    EntityType.USER,
                    user_id,
                    {
                        "status": UserStatus.SUSPENDED.value,
                        "suspension_reason": reason or "Bulk suspension",
                    },
                )
                await self.audit_repo.log_status_change(
                    actor.user_id,
                    user_id,
                    UserStatus.ACTIVE.value,
                    UserStatus.SUSPENDED.value,
                    f"Bulk suspension: {reason or 'No reason provided'}",
                    actor.ip_address,
                    actor.user_agent,
                )
                return "User suspended"

            return suspend

        if action == BulkAction.ACTIVATE:

            async def activate(user_id: str) -> str:
                await self.entity_repo.update(
                    EntityType.USER,
                    user_id,
                    {"status": UserStatus.ACTIVE.value, "suspension_reason": None},
                )
                await self.audit_repo.log_status_change(
                    actor.user_id,
                    user_id,
                    UserStatus.SUSPENDED.value,
                    UserStatus.ACTIVE.value,
                    "Bulk activation",
                    actor.ip_address,
                    actor.user_agent,
                )
                return "User activated"

            return activate

        if action == BulkAction.DELETE:

            async def soft_delete(user_id: str) -> str:
                await self.entity_repo.update(
                    EntityType.USER, user_id, {"status": UserStatus.INACTIVE.value}
                )
                return "User marked as inactive"

            return soft_delete

        return _unsupported(f"Unsupported action: {action_name}")

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def _account_operation(
        self, action: BulkAction | None, action_name: str, payload: BulkPayload
    ) -> ItemOperation:
        if action == BulkAction.UPDATE_STATUS:
            status = _expect(payload, AccountStatusPayload, action).status.value
            message = f"Account status updated to {status}"
        elif action == BulkAction.SUSPEND:
            status, message = AccountStatus.SUSPENDED.value, "Account suspended"
        elif action == BulkAction.ACTIVATE:
            status, message = AccountStatus.ACTIVE.value, "Account activated"
        else:
            return _unsupported(f"Unsupported action for accounts: {action_name}")

        async def set_account_status(account_id: str) -> str:
            await self.entity_repo.update(EntityType.ACCOUNT, account_id, {"status": status})
            return message

        return set_account_status

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _execute_transaction_action(
        self, action: BulkAction | None, ids: list[str]
    ) -> BatchOperationResult:
        """Transactions are export-only; the export itself is assembled elsewhere."""
        if action == BulkAction.EXPORT:
            results = [
                BatchItemResult(id=transaction_id, success=True, message="Included in export")
                for transaction_id in ids
            ]
            return BatchOperationResult.from_items(len(ids), results, [])

        return BatchOperationResult.rejected(len(ids), ALL_ITEMS_ID, TRANSACTIONS_LOCKED_MESSAGE)

    # -------------------------------------------------------------------------
    # Wire transfers
    # -------------------------------------------------------------------------

    def _wire_transfer_operation(
        self,
        action: BulkAction | None,
        action_name: str,
        payload: BulkPayload,
        actor: Actor,
    ) -> ItemOperation:
        review: TransferReviewPayload | None = None
        if action == BulkAction.UPDATE_STATUS:
            review = _expect(payload, TransferReviewPayload, action)

        async def review_transfer(transfer_id: str) -> str:
            transfer = await self.entity_repo.get_by_id(EntityType.WIRE_TRANSFER, transfer_id)
            if not transfer:
                raise NotFoundError("Wire transfer not found", details={"id": transfer_id})

            if review is None:
                raise UnsupportedOperationError(f"Unsupported action: {action_name}")

            if transfer["compliance_status"] != ComplianceStatus.PENDING.value:
                raise ValidationError(
                    "Can only update pending transfers",
                    details={"compliance_status": transfer["compliance_status"]},
                )

            decision = review.status.value
            await self.entity_repo.update(
                EntityType.WIRE_TRANSFER,
                transfer_id,
                {
                    "compliance_status": decision,
                    "approved_by": actor.user_id,
                    "approved_at": datetime.now(UTC),
                    "rejection_reason": (
                        review.reason if review.status == ReviewDecision.REJECTED else None
                    ),
                },
            )
            await self.audit_repo.log_wire_transfer_review(
                actor.user_id,
                transfer_id,
                transfer["owner_user_id"],
                decision,
                review.reason or None,
                actor.ip_address,
                actor.user_agent,
            )
            return f"Transfer {decision.lower()}"

        return review_transfer

    # -------------------------------------------------------------------------
    # Cards
    # -------------------------------------------------------------------------

    def _card_operation(
        self, action: BulkAction | None, action_name: str, payload: BulkPayload
    ) -> ItemOperation:
        if action == BulkAction.UPDATE_STATUS:
            status = _expect(payload, CardStatusPayload, action).status.value
            message = f"Card status updated to {status}"
        elif action == BulkAction.SUSPEND:
            status, message = CardStatus.FROZEN.value, "Card frozen"
        elif action == BulkAction.ACTIVATE:
            status, message = CardStatus.ACTIVE.value, "Card activated"
        else:
            return _unsupported(f"Unsupported action for cards: {action_name}")

        async def set_card_status(card_id: str) -> str:
            await self.entity_repo.update(EntityType.CARD, card_id, {"status": status})
            return message

        return set_card_status
