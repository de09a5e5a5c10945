"""API routes for incident reports."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import CurrentUser
from app.models import IncidentStatus, IncidentType
from app.rate_limit import REPORT_RATE_LIMIT, limiter
from app.schemas import ApiResponse, IncidentCreate, IncidentOut, IncidentUpdate, NoteCreate
from app.services.lifecycle import IncidentLifecycle

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/incidents", tags=["incidents"])


@router.get("", response_model=ApiResponse[list[IncidentOut]])
async def list_incidents(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: CurrentUser,
    status: IncidentStatus | None = Query(None, description="Filter by lifecycle status"),
    verified: bool | None = Query(None, description="Filter by verification"),
    type: IncidentType | None = Query(None, description="Filter by incident type"),
    severity: int | None = Query(None, ge=1, le=5, description="Filter by severity"),
) -> ApiResponse[list[IncidentOut]]:
    """List incidents, newest first."""
    incidents = await IncidentLifecycle(db).list_incidents(
        status=status,
        verified=verified,
        type=type,
        severity=severity,
    )
    return ApiResponse(
        data=[IncidentOut.from_model(incident) for incident in incidents],
        count=len(incidents),
    )


@router.get("/{incident_id}", response_model=ApiResponse[IncidentOut])
async def get_incident(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: CurrentUser,
) -> ApiResponse[IncidentOut]:
    """Get a specific incident by ID."""
    incident = await IncidentLifecycle(db).get_incident(incident_id)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.post("", response_model=ApiResponse[IncidentOut], status_code=201)
@limiter.limit(REPORT_RATE_LIMIT)
async def create_incident(
    request: Request,
    body: IncidentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: CurrentUser,
) -> ApiResponse[IncidentOut]:
    """
    Report a new incident.

    Any authenticated identity may report; the incident starts unverified
    until an admin reviews it.
    """
    incident = await IncidentLifecycle(db).create(user, body)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.put("/{incident_id}", response_model=ApiResponse[IncidentOut])
async def update_incident(
    incident_id: str,
    body: IncidentUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: CurrentUser,
) -> ApiResponse[IncidentOut]:
    """Partially update an incident (admin, reporter or current assignee)."""
    incident = await IncidentLifecycle(db).update(user, incident_id, body)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.delete("/{incident_id}", response_model=ApiResponse[None])
async def delete_incident(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: CurrentUser,
) -> ApiResponse[None]:
    """Permanently delete an incident (admin or reporter)."""
    await IncidentLifecycle(db).delete(user, incident_id)
    return ApiResponse(message="Incident deleted successfully")


@router.post("/{incident_id}/notes", response_model=ApiResponse[IncidentOut], status_code=201)
async def add_note(
    incident_id: str,
    body: NoteCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: CurrentUser,
) -> ApiResponse[IncidentOut]:
    """Append a note to the incident log."""
    incident = await IncidentLifecycle(db).add_note(user, incident_id, body.text)
    return ApiResponse(data=IncidentOut.from_model(incident))
