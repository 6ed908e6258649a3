"""Liveness and database reachability probe (public, not rate limited)."""
import logging
from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_async_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service status. `degraded` means the API is up but the database is not."""

    status: Literal["healthy", "degraded"]
    database: Literal["healthy", "unhealthy"]
    timestamp: datetime


async def _database_reachable(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("health_check_database_failed")
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_async_session)) -> HealthResponse:
    """Report whether the API can reach its database."""
    reachable = await _database_reachable(db)
    return HealthResponse(
        status="healthy" if reachable else "degraded",
        database="healthy" if reachable else "unhealthy",
        timestamp=datetime.now(UTC),
    )
