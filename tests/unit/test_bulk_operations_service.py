"""Unit tests for BulkOperationsService."""

from unittest.mock import AsyncMock

import pytest

from app.core.errors import NotFoundError
from app.domain.models.banking import BulkAction, EntityType
from app.schemas.bulk import (
    AccountStatusPayload,
    Actor,
    CardStatusPayload,
    EmptyPayload,
    KycStatusPayload,
    SuspensionPayload,
    TransferReviewPayload,
    UserStatusPayload,
)
from app.services.bulk_operations_service import (
    BatchActionRequest,
    BatchOperationResult,
    BulkOperationsService,
)

ACTOR = Actor(user_id="admin-1", ip_address="10.0.0.5", user_agent="pytest")


def make_request(entity_type, action, ids, payload=None) -> BatchActionRequest:
    return BatchActionRequest(
        entity_type=entity_type,
        action=action,
        ids=ids,
        actor=ACTOR,
        payload=payload or EmptyPayload(),
    )


@pytest.fixture
def entity_repo():
    repo = AsyncMock()
    repo.get_by_id = AsyncMock(return_value=None)
    repo.update = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def audit_repo():
    return AsyncMock()


@pytest.fixture
def service(mock_session, entity_repo, audit_repo):
    return BulkOperationsService(
        mock_session, entity_repo=entity_repo, audit_repo=audit_repo, max_batch_size=100
    )


def assert_partition(result: BatchOperationResult) -> None:
    assert result.processed_items + result.failed_items == result.total_items
    assert result.success == (not result.errors)


class TestBatchLimits:
    """Whole-request rejections."""

    @pytest.mark.asyncio
    async def test_batch_over_limit_rejected_without_side_effects(
        self, service, entity_repo, audit_repo
    ):
        ids = [f"u{i}" for i in range(101)]

        result = await service.execute(make_request(EntityType.USER, BulkAction.ACTIVATE, ids))

        assert result.success is False
        assert result.total_items == 101
        assert result.processed_items == 0
        assert [e.model_dump() for e in result.errors] == [
            {"id": "batch", "error": "Batch size exceeds maximum of 100"}
        ]
        assert result.results == []
        entity_repo.update.assert_not_called()
        entity_repo.get_by_id.assert_not_called()
        audit_repo.log_status_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_batch_at_limit_is_processed(self, service, entity_repo):
        ids = [f"u{i}" for i in range(100)]

        result = await service.execute(make_request(EntityType.USER, BulkAction.DELETE, ids))

        assert result.success is True
        assert result.processed_items == 100
        assert entity_repo.update.await_count == 100

    @pytest.mark.asyncio
    async def test_configured_limit_is_used(self, mock_session, entity_repo, audit_repo):
        service = BulkOperationsService(
            mock_session, entity_repo=entity_repo, audit_repo=audit_repo, max_batch_size=2
        )

        result = await service.execute(
            make_request(EntityType.CARD, BulkAction.ACTIVATE, ["c1", "c2", "c3"])
        )

        assert result.errors[0].error == "Batch size exceeds maximum of 2"

    @pytest.mark.asyncio
    async def test_explicit_zero_limit_is_kept(self, mock_session, entity_repo, audit_repo):
        service = BulkOperationsService(
            mock_session, entity_repo=entity_repo, audit_repo=audit_repo, max_batch_size=0
        )

        result = await service.execute(make_request(EntityType.CARD, BulkAction.ACTIVATE, ["c1"]))

        assert service.max_batch_size == 0
        assert result.errors[0].id == "batch"
        entity_repo.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_entity_type(self, service, entity_repo):
        result = await service.execute(make_request("LOAN", BulkAction.ACTIVATE, ["l1"]))

        assert result.success is False
        assert result.processed_items == 0
        assert result.errors[0].id == "unknown"
        assert result.errors[0].error == "Unknown entity type: LOAN"
        entity_repo.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_ids_is_a_successful_noop(self, service):
        result = await service.execute(make_request(EntityType.USER, BulkAction.ACTIVATE, []))

        assert result.success is True
        assert result.total_items == 0
        assert result.results == []


class TestUserActions:
    """USER entity actions."""

    @pytest.mark.asyncio
    async def test_suspend_partial_failure(self, service, entity_repo, audit_repo):
        """u1 exists, u2 does not: one result, one error, batch continues."""

        async def update(entity_type, entity_id, patch):
            if entity_id == "u2":
                raise NotFoundError("User not found")

        entity_repo.update.side_effect = update

        result = await service.execute(
            make_request(
                EntityType.USER,
                BulkAction.SUSPEND,
                ["u1", "u2"],
                SuspensionPayload(reason="fraud"),
            )
        )

        assert [r.model_dump() for r in result.results] == [
            {"id": "u1", "success": True, "message": "User suspended"}
        ]
        assert [e.model_dump() for e in result.errors] == [
            {"id": "u2", "error": "User not found"}
        ]
        assert result.success is False
        assert result.processed_items == 1
        assert result.failed_items == 1
        assert_partition(result)

        entity_repo.update.assert_any_await(
            EntityType.USER, "u1", {"status": "SUSPENDED", "suspension_reason": "fraud"}
        )
        audit_repo.log_status_change.assert_awaited_once_with(
            "admin-1", "u1", "ACTIVE", "SUSPENDED", "Bulk suspension: fraud", "10.0.0.5", "pytest"
        )

    @pytest.mark.asyncio
    async def test_suspend_without_reason_uses_defaults(self, service, entity_repo, audit_repo):
        await service.execute(make_request(EntityType.USER, BulkAction.SUSPEND, ["u1"]))

        entity_repo.update.assert_awaited_once_with(
            EntityType.USER,
            "u1",
            {"status": "SUSPENDED", "suspension_reason": "Bulk suspension"},
        )
        args = audit_repo.log_status_change.await_args.args
        assert args[4] == "Bulk suspension: No reason provided"

    @pytest.mark.asyncio
    async def test_update_status_records_previous_status(self, service, entity_repo, audit_repo):
        entity_repo.get_by_id.return_value = {
            "id": "u1",
            "status": "PENDING",
            "kyc_status": "PENDING",
        }

        result = await service.execute(
            make_request(
                EntityType.USER,
                BulkAction.UPDATE_STATUS,
                ["u1"],
                UserStatusPayload(status="ACTIVE", reason="reviewed"),
            )
        )

        assert result.results[0].message == "Status updated to ACTIVE"
        entity_repo.update.assert_awaited_once_with(EntityType.USER, "u1", {"status": "ACTIVE"})
        audit_repo.log_status_change.assert_awaited_once_with(
            "admin-1", "u1", "PENDING", "ACTIVE", "Bulk operation: reviewed", "10.0.0.5", "pytest"
        )

    @pytest.mark.asyncio
    async def test_update_status_missing_user(self, service, entity_repo, audit_repo):
        result = await service.execute(
            make_request(
                EntityType.USER,
                BulkAction.UPDATE_STATUS,
                ["ghost"],
                UserStatusPayload(status="ACTIVE"),
            )
        )

        assert result.errors[0].error == "User not found"
        entity_repo.update.assert_not_called()
        audit_repo.log_status_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_kyc_status(self, service, entity_repo, audit_repo):
        entity_repo.get_by_id.return_value = {
            "id": "u1",
            "status": "ACTIVE",
            "kyc_status": "PENDING",
        }

        result = await service.execute(
            make_request(
                EntityType.USER,
                BulkAction.UPDATE_KYC_STATUS,
                ["u1"],
                KycStatusPayload(kyc_status="VERIFIED"),
            )
        )

        assert result.results[0].message == "KYC status updated to VERIFIED"
        entity_repo.update.assert_awaited_once_with(
            EntityType.USER, "u1", {"kyc_status": "VERIFIED"}
        )
        audit_repo.log_kyc_status_change.assert_awaited_once_with(
            "admin-1", "u1", "PENDING", "VERIFIED", "Bulk operation: No notes", "10.0.0.5", "pytest"
        )

    @pytest.mark.asyncio
    async def test_activate_clears_suspension_reason(self, service, entity_repo, audit_repo):
        result = await service.execute(make_request(EntityType.USER, BulkAction.ACTIVATE, ["u1"]))

        assert result.results[0].message == "User activated"
        entity_repo.update.assert_awaited_once_with(
            EntityType.USER, "u1", {"status": "ACTIVE", "suspension_reason": None}
        )
        audit_repo.log_status_change.assert_awaited_once_with(
            "admin-1", "u1", "SUSPENDED", "ACTIVE", "Bulk activation", "10.0.0.5", "pytest"
        )

    @pytest.mark.asyncio
    async def test_delete_is_soft_and_not_audited(self, service, entity_repo, audit_repo):
        result = await service.execute(make_request(EntityType.USER, BulkAction.DELETE, ["u1"]))

        assert result.results[0].message == "User marked as inactive"
        entity_repo.update.assert_awaited_once_with(EntityType.USER, "u1", {"status": "INACTIVE"})
        audit_repo.log_status_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_export_is_unsupported_for_users(self, service, entity_repo):
        result = await service.execute(
            make_request(EntityType.USER, BulkAction.EXPORT, ["u1", "u2"])
        )

        assert [e.error for e in result.errors] == [
            "Unsupported action: EXPORT",
            "Unsupported action: EXPORT",
        ]
        assert result.processed_items == 0
        entity_repo.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_audit_failure_is_recorded_per_item(self, service, audit_repo):
        audit_repo.log_status_change.side_effect = [RuntimeError("audit store down"), None]

        result = await service.execute(
            make_request(EntityType.USER, BulkAction.ACTIVATE, ["u1", "u2"])
        )

        assert [e.model_dump() for e in result.errors] == [
            {"id": "u1", "error": "audit store down"}
        ]
        assert [r.id for r in result.results] == ["u2"]

    @pytest.mark.asyncio
    async def test_exception_without_message_reports_unknown_error(self, service, entity_repo):
        entity_repo.update.side_effect = RuntimeError()

        result = await service.execute(make_request(EntityType.USER, BulkAction.DELETE, ["u1"]))

        assert result.errors[0].error == "Unknown error"

    @pytest.mark.asyncio
    async def test_each_item_runs_in_its_own_savepoint(self, service, mock_session):
        await service.execute(make_request(EntityType.USER, BulkAction.DELETE, ["u1", "u2", "u3"]))

        assert mock_session.begin_nested.call_count == 3

    @pytest.mark.asyncio
    async def test_missing_payload_fails_every_item(self, service, entity_repo):
        result = await service.execute(
            make_request(EntityType.USER, BulkAction.UPDATE_STATUS, ["u1", "u2"])
        )

        assert result.failed_items == 2
        assert result.errors[0].error == "Missing data for UPDATE_STATUS"
        entity_repo.update.assert_not_called()


class TestAccountActions:
    """ACCOUNT entity actions."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("action", "payload", "status", "message"),
        [
            (
                BulkAction.UPDATE_STATUS,
                AccountStatusPayload(status="FROZEN"),
                "FROZEN",
                "Account status updated to FROZEN",
            ),
            (BulkAction.SUSPEND, None, "SUSPENDED", "Account suspended"),
            (BulkAction.ACTIVATE, None, "ACTIVE", "Account activated"),
        ],
    )
    async def test_status_actions(self, service, entity_repo, action, payload, status, message):
        result = await service.execute(make_request(EntityType.ACCOUNT, action, ["a1"], payload))

        assert result.results[0].message == message
        entity_repo.update.assert_awaited_once_with(EntityType.ACCOUNT, "a1", {"status": status})

    @pytest.mark.asyncio
    async def test_unsupported_action(self, service, entity_repo):
        result = await service.execute(make_request(EntityType.ACCOUNT, BulkAction.DELETE, ["a1"]))

        assert result.errors[0].error == "Unsupported action for accounts: DELETE"
        entity_repo.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_account(self, service, entity_repo):
        entity_repo.update.side_effect = NotFoundError("Account not found")

        result = await service.execute(make_request(EntityType.ACCOUNT, BulkAction.SUSPEND, ["a9"]))

        assert result.errors[0].model_dump() == {"id": "a9", "error": "Account not found"}


class TestTransactionActions:
    """TRANSACTION entity actions."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action",
        [BulkAction.UPDATE_STATUS, BulkAction.SUSPEND, BulkAction.ACTIVATE, BulkAction.DELETE],
    )
    async def test_modifications_are_locked(self, service, entity_repo, audit_repo, action):
        result = await service.execute(make_request(EntityType.TRANSACTION, action, ["t1", "t2"]))

        assert result.success is False
        assert result.processed_items == 0
        assert [e.model_dump() for e in result.errors] == [
            {
                "id": "all",
                "error": "Bulk modification of transactions is not permitted for audit compliance",
            }
        ]
        entity_repo.update.assert_not_called()
        entity_repo.get_by_id.assert_not_called()
        assert audit_repo.method_calls == []

    @pytest.mark.asyncio
    async def test_export_marks_every_id(self, service, entity_repo):
        result = await service.execute(
            make_request(EntityType.TRANSACTION, BulkAction.EXPORT, ["t1", "t2"])
        )

        assert result.success is True
        assert [(r.id, r.message) for r in result.results] == [
            ("t1", "Included in export"),
            ("t2", "Included in export"),
        ]
        entity_repo.update.assert_not_called()


class TestWireTransferActions:
    """WIRE_TRANSFER entity actions."""

    @pytest.mark.asyncio
    async def test_approve_pending_transfer(self, service, entity_repo, audit_repo):
        entity_repo.get_by_id.return_value = {
            "id": "w1",
            "compliance_status": "PENDING",
            "owner_user_id": "cust-7",
        }

        result = await service.execute(
            make_request(
                EntityType.WIRE_TRANSFER,
                BulkAction.UPDATE_STATUS,
                ["w1"],
                TransferReviewPayload(status="APPROVED"),
            )
        )

        assert result.results[0].message == "Transfer approved"
        _, entity_id, patch = entity_repo.update.await_args.args
        assert entity_id == "w1"
        assert patch["compliance_status"] == "APPROVED"
        assert patch["approved_by"] == "admin-1"
        assert patch["approved_at"] is not None
        assert patch["rejection_reason"] is None
        audit_repo.log_wire_transfer_review.assert_awaited_once_with(
            "admin-1", "w1", "cust-7", "APPROVED", None, "10.0.0.5", "pytest"
        )

    @pytest.mark.asyncio
    async def test_reject_records_reason(self, service, entity_repo, audit_repo):
        entity_repo.get_by_id.return_value = {
            "id": "w1",
            "compliance_status": "PENDING",
            "owner_user_id": "cust-7",
        }

        result = await service.execute(
            make_request(
                EntityType.WIRE_TRANSFER,
                BulkAction.UPDATE_STATUS,
                ["w1"],
                TransferReviewPayload(status="REJECTED", reason="sanctions hit"),
            )
        )

        assert result.results[0].message == "Transfer rejected"
        patch = entity_repo.update.await_args.args[2]
        assert patch["rejection_reason"] == "sanctions hit"
        assert audit_repo.log_wire_transfer_review.await_args.args[4] == "sanctions hit"

    @pytest.mark.asyncio
    async def test_non_pending_transfer_is_untouched(self, service, entity_repo, audit_repo):
        entity_repo.get_by_id.return_value = {
            "id": "w1",
            "compliance_status": "APPROVED",
            "owner_user_id": "cust-7",
        }

        result = await service.execute(
            make_request(
                EntityType.WIRE_TRANSFER,
                BulkAction.UPDATE_STATUS,
                ["w1"],
                TransferReviewPayload(status="REJECTED"),
            )
        )

        assert result.errors[0].model_dump() == {
            "id": "w1",
            "error": "Can only update pending transfers",
        }
        entity_repo.update.assert_not_called()
        audit_repo.log_wire_transfer_review.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_transfer(self, service):
        result = await service.execute(
            make_request(
                EntityType.WIRE_TRANSFER,
                BulkAction.UPDATE_STATUS,
                ["w404"],
                TransferReviewPayload(status="APPROVED"),
            )
        )

        assert result.errors[0].error == "Wire transfer not found"

    @pytest.mark.asyncio
    async def test_unsupported_action_after_lookup(self, service, entity_repo):
        entity_repo.get_by_id.return_value = {
            "id": "w1",
            "compliance_status": "PENDING",
            "owner_user_id": "cust-7",
        }

        result = await service.execute(
            make_request(EntityType.WIRE_TRANSFER, BulkAction.SUSPEND, ["w1"])
        )

        assert result.errors[0].error == "Unsupported action: SUSPEND"
        entity_repo.get_by_id.assert_awaited_once_with(EntityType.WIRE_TRANSFER, "w1")
        entity_repo.update.assert_not_called()


class TestCardActions:
    """CARD entity actions."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("action", "payload", "status", "message"),
        [
            (
                BulkAction.UPDATE_STATUS,
                CardStatusPayload(status="BLOCKED"),
                "BLOCKED",
                "Card status updated to BLOCKED",
            ),
            (BulkAction.SUSPEND, None, "FROZEN", "Card frozen"),
            (BulkAction.ACTIVATE, None, "ACTIVE", "Card activated"),
        ],
    )
    async def test_status_actions(self, service, entity_repo, action, payload, status, message):
        result = await service.execute(make_request(EntityType.CARD, action, ["c1"], payload))

        assert result.results[0].message == message
        entity_repo.update.assert_awaited_once_with(EntityType.CARD, "c1", {"status": status})

    @pytest.mark.asyncio
    async def test_unsupported_action(self, service):
        result = await service.execute(make_request(EntityType.CARD, BulkAction.EXPORT, ["c1"]))

        assert result.errors[0].error == "Unsupported action for cards: EXPORT"


class TestBatchOperationResult:
    """Result aggregation."""

    def test_to_dict(self):
        result = BatchOperationResult.rejected(3, "batch", "too many")

        assert result.to_dict() == {
            "success": False,
            "total_items": 3,
            "processed_items": 0,
            "failed_items": 3,
            "errors": [{"id": "batch", "error": "too many"}],
            "results": [],
        }

    def test_from_schema_carries_typed_payload(self):
        from app.schemas.bulk import BulkActionRequest

        schema = BulkActionRequest(
            entity_type="USER",
            action="UPDATE_STATUS",
            ids=["u1"],
            data={"status": "SUSPENDED", "reason": "chargebacks"},
        )

        request = BatchActionRequest.from_schema(schema, ACTOR)

        assert request.payload == UserStatusPayload(status="SUSPENDED", reason="chargebacks")
        assert request.ids == ["u1"]
        assert request.actor is ACTOR
