"""
Health check endpoints.

Liveness reports the process is up; readiness also checks that the
migrated cards table can be queried.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from swucol.db.database import get_session
from swucol.models.db import CardDB

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Probe result; readiness adds database state and card count."""

    status: str
    database: str | None = None
    card_count: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe. Does not check dependencies."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> HealthResponse:
    """
    Readiness probe.

    Counts stored cards, which fails until the schema exists.
    Returns 503 if the database is unavailable.
    """
    try:
        card_count = await session.scalar(select(func.count()).select_from(CardDB))
    except SQLAlchemyError:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database="disconnected")

    return HealthResponse(status="ready", database="connected", card_count=card_count or 0)
