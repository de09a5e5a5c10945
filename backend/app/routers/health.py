"""Health and probe endpoints."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import Incident, IncidentStatus, User

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    incident_count: int
    open_incident_count: int
    user_count: int
    last_report: datetime | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """
    Health check endpoint with database status.

    Returns record counts and the time of the most recent report.
    """
    incident_count_result = await db.execute(select(func.count(Incident.id)))
    incident_count = incident_count_result.scalar() or 0

    open_count_result = await db.execute(
        select(func.count(Incident.id)).where(Incident.status != IncidentStatus.COMPLETED)
    )
    open_count = open_count_result.scalar() or 0

    user_count_result = await db.execute(select(func.count(User.id)))
    user_count = user_count_result.scalar() or 0

    last_report_result = await db.execute(select(func.max(Incident.timestamp)))
    last_report = last_report_result.scalar()

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        incident_count=incident_count,
        open_incident_count=open_count,
        user_count=user_count,
        last_report=last_report,
    )


@router.get("/ready")
async def readiness_check() -> dict:
    """Simple readiness probe for container orchestration."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict:
    """Simple liveness probe for container orchestration."""
    return {"status": "alive"}
