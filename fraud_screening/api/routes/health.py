"""Health check routes."""

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fraud_screening.core.database import get_session_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class ReadyResponse(BaseModel):
    """Readiness check response."""

    status: str
    database: str


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the service is running.",
)
async def health_check(request: Request) -> HealthResponse:
    """Return service health status."""
    return HealthResponse(
        status="healthy",
        version=request.app.version,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness check",
    description="Check if the service can reach its database.",
)
async def readiness_check(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ReadyResponse:
    """Return service readiness status."""
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Readiness check failed", extra={"error": str(e)})
        return ReadyResponse(status="degraded", database="unavailable")

    return ReadyResponse(status="ready", database="connected")


@router.get(
    "/live",
    summary="Liveness check",
    description="Kubernetes liveness probe endpoint.",
)
async def liveness_check() -> dict:
    """Return liveness status."""
    return {"status": "alive"}
