"""Liveness, health and readiness probes."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.core.database import ping_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    status: str
    version: str


class ReadyResponse(BaseModel):
    status: str
    database: str


NOT_READY = ReadyResponse(status="not_ready", database="unavailable")


@router.get("", response_model=HealthResponse, summary="Service health and version")
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=get_settings().app.version)


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Ready only while the database answers `SELECT 1`.",
    responses={503: {"model": ReadyResponse}},
)
async def readiness_check() -> ReadyResponse | JSONResponse:
    try:
        await ping_database()
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database unreachable, reporting not ready: %s", e)
        return JSONResponse(status_code=503, content=NOT_READY.model_dump())
    return ReadyResponse(status="ready", database="connected")


@router.get("/live", summary="Liveness probe")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
