"""Unit tests for bulk operation routes."""

from unittest.mock import AsyncMock

import httpx
import pytest

from app.api.routes.bulk import get_bulk_service
from app.core.auth import AuthenticatedUser, get_current_user
from app.core.errors import NotFoundError
from app.main import create_app
from app.services.bulk_operations_service import BulkOperationsService

OPS_ADMIN = AuthenticatedUser(
    user_id="auth0|test-operations-admin",
    roles=["OPERATIONS_ADMIN"],
    permissions=["bulk:execute"],
)
CUSTOMER = AuthenticatedUser(
    user_id="auth0|test-customer", roles=["CUSTOMER"], permissions=["bills:pay"]
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
def app(mock_session, entity_repo, audit_repo):
    app = create_app()
    service = BulkOperationsService(
        mock_session, entity_repo=entity_repo, audit_repo=audit_repo, max_batch_size=100
    )
    app.dependency_overrides[get_bulk_service] = lambda: service
    app.dependency_overrides[get_current_user] = lambda: OPS_ADMIN
    return app


async def post(app, url: str, **kwargs) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post(url, **kwargs)


class TestBulkOperationsRoute:
    """POST /api/v1/bulk/operations"""

    @pytest.mark.asyncio
    async def test_partial_failure_is_200(self, app, entity_repo, audit_repo):
        async def update(entity_type, entity_id, patch):
            if entity_id == "u2":
                raise NotFoundError("User not found")

        entity_repo.update.side_effect = update

        response = await post(
            app,
            "/api/v1/bulk/operations",
            json={
                "entity_type": "USER",
                "action": "SUSPEND",
                "ids": ["u1", "u2"],
                "data": {"reason": "fraud"},
            },
            headers={"user-agent": "admin-console", "x-forwarded-for": "198.51.100.4"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "total_items": 2,
            "processed_items": 1,
            "failed_items": 1,
            "errors": [{"id": "u2", "error": "User not found"}],
            "results": [{"id": "u1", "success": True, "message": "User suspended"}],
        }
        audit_repo.log_status_change.assert_awaited_once_with(
            "auth0|test-operations-admin",
            "u1",
            "ACTIVE",
            "SUSPENDED",
            "Bulk suspension: fraud",
            "198.51.100.4",
            "admin-console",
        )

    @pytest.mark.asyncio
    async def test_oversized_batch_is_200_with_batch_error(self, app, entity_repo):
        response = await post(
            app,
            "/api/v1/bulk/operations",
            json={
                "entity_type": "CARD",
                "action": "ACTIVATE",
                "ids": [f"c{i}" for i in range(101)],
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["errors"] == [{"id": "batch", "error": "Batch size exceeds maximum of 100"}]
        assert body["processed_items"] == 0
        entity_repo.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_transaction_modification_is_locked(self, app):
        response = await post(
            app,
            "/api/v1/bulk/operations",
            json={"entity_type": "TRANSACTION", "action": "DELETE", "ids": ["t1"]},
        )

        assert response.status_code == 200
        assert response.json()["errors"][0]["id"] == "all"

    @pytest.mark.asyncio
    async def test_missing_required_data_is_422(self, app, entity_repo):
        response = await post(
            app,
            "/api/v1/bulk/operations",
            json={"entity_type": "USER", "action": "UPDATE_STATUS", "ids": ["u1"], "data": {}},
        )

        assert response.status_code == 422
        entity_repo.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_status_value_is_422(self, app):
        response = await post(
            app,
            "/api/v1/bulk/operations",
            json={
                "entity_type": "CARD",
                "action": "UPDATE_STATUS",
                "ids": ["c1"],
                "data": {"status": "SHREDDED"},
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_ids_is_422(self, app):
        response = await post(
            app,
            "/api/v1/bulk/operations",
            json={"entity_type": "USER", "action": "ACTIVATE", "ids": []},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_bulk_permission(self, app, entity_repo):
        app.dependency_overrides[get_current_user] = lambda: CUSTOMER

        response = await post(
            app,
            "/api/v1/bulk/operations",
            json={"entity_type": "USER", "action": "ACTIVATE", "ids": ["u1"]},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Insufficient permissions"
        entity_repo.update.assert_not_called()
