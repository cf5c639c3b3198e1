"""API routes for bulk operations."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.dependencies import BulkActor
from app.schemas.bulk import BulkActionRequest, BulkOperationResponse
from app.services.bulk_operations_service import BatchActionRequest, BulkOperationsService

router = APIRouter(prefix="/bulk", tags=["bulk"])


def get_bulk_service(session: AsyncSession = Depends(get_session)) -> BulkOperationsService:
    """Get bulk operations service instance."""
    return BulkOperationsService(session)


@router.post("/operations", response_model=BulkOperationResponse)
async def execute_bulk_operation(
    request: BulkActionRequest,
    actor: BulkActor,
    bulk_service: BulkOperationsService = Depends(get_bulk_service),
) -> dict:
    """Apply one action to many users, accounts, transactions, wire transfers or cards.

    Always answers 200 with per-id results; check ``success`` and ``errors``.
    Maximum 100 ids per request.
    """
    result = await bulk_service.execute(BatchActionRequest.from_schema(request, actor))
    return result.to_dict()
