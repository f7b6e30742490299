"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from estimate_ledger.api.dependencies import DbSession
from estimate_ledger.models import NumberSequence
from estimate_ledger.services.sequence_service import SEQUENCE_PREFIXES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    sequences: list[str] = []


async def _configured_sequences(db: AsyncSession) -> list[str]:
    result = await db.execute(
        select(NumberSequence.sequence_type).order_by(NumberSequence.sequence_type)
    )
    return list(result.scalars().all())


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check API and database health, and which number sequences exist."""
    db_status = "unhealthy"
    sequences: list[str] = []
    try:
        sequences = await _configured_sequences(db)
        db_status = "healthy"
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        sequences=sequences,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(db: DbSession, response: Response) -> dict[str, str]:
    """Ready once every document number sequence is seeded."""
    expected = {sequence_type.value for sequence_type in SEQUENCE_PREFIXES}
    try:
        missing = expected - set(await _configured_sequences(db))
    except SQLAlchemyError:
        logger.warning("Readiness check could not reach the database", exc_info=True)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unavailable"}

    if missing:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "missing": ", ".join(sorted(missing))}
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
