"""
Status routes - health check for load balancers and status pages.

Public endpoint (no auth). The result is cached briefly so repeated
polling does not hammer the database.
"""

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from backoffice.config import settings
from backoffice.db.session import get_write_db
from backoffice.models.api import HealthResponse, ServiceStatus

logger = get_logger(__name__)
router = APIRouter(tags=["status"])

DEGRADED_LATENCY_THRESHOLD = 1000  # ms

_status_cache: dict[str, tuple[datetime, HealthResponse]] = {}
_CACHE_TTL_SECONDS = 10


async def check_database(db: AsyncSession) -> ServiceStatus:
    """Round-trip ``SELECT 1`` and classify by latency."""
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("database_health_check_failed", error=str(e))
        return ServiceStatus(status="outage", message="Connection failed")

    latency_ms = round((time.perf_counter() - start) * 1000, 2)
    if latency_ms > DEGRADED_LATENCY_THRESHOLD:
        return ServiceStatus(status="degraded", latency_ms=latency_ms, message="High latency")
    return ServiceStatus(status="healthy", latency_ms=latency_ms)


def clear_status_cache() -> None:
    _status_cache.clear()


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_write_db)) -> HealthResponse:
    now = datetime.now(UTC)
    cached = _status_cache.get("health")
    if cached is not None and (now - cached[0]).total_seconds() < _CACHE_TTL_SECONDS:
        return cached[1]

    database = await check_database(db)
    response = HealthResponse(
        status=database.status,
        version=settings.api_version,
        timestamp=now,
        database=database,
    )
    _status_cache["health"] = (now, response)
    return response
