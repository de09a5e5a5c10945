"""Volunteer routes: task pool, claim/start/complete/release and location."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import CurrentUser, VolunteerUser, get_route_advisor
from app.errors import ValidationError
from app.models import Incident, IncidentStatus, Role, User
from app.schemas import ApiResponse, IncidentOut, Location, LocationUpdate, RouteOut, UserOut
from app.services.dispatch import DispatchService
from app.services.lifecycle import IncidentLifecycle
from app.services.routing import RouteAdvisor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/volunteers", tags=["volunteers"])


@router.get("", response_model=ApiResponse[list[UserOut]])
async def list_volunteers(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: CurrentUser,
) -> ApiResponse[list[UserOut]]:
    """List all volunteers."""
    result = await db.execute(
        select(User).where(User.role == Role.VOLUNTEER).order_by(User.last_name, User.first_name)
    )
    volunteers = result.scalars().all()
    return ApiResponse(
        data=[UserOut.from_model(volunteer) for volunteer in volunteers],
        count=len(volunteers),
    )


@router.get("/available-tasks", response_model=ApiResponse[list[IncidentOut]])
async def available_tasks(
    db: Annotated[AsyncSession, Depends(get_db)],
    volunteer: VolunteerUser,
) -> ApiResponse[list[IncidentOut]]:
    """Verified incidents waiting for a volunteer, most severe first."""
    result = await db.execute(
        select(Incident)
        .where(Incident.status == IncidentStatus.AVAILABLE, Incident.verified.is_(True))
        .order_by(Incident.severity.desc(), Incident.timestamp.desc())
    )
    tasks = result.scalars().all()
    return ApiResponse(
        data=[IncidentOut.from_model(task) for task in tasks],
        count=len(tasks),
    )


@router.get("/my-tasks", response_model=ApiResponse[list[IncidentOut]])
async def my_tasks(
    db: Annotated[AsyncSession, Depends(get_db)],
    volunteer: VolunteerUser,
    include_completed: bool = Query(False, description="Include resolved tasks"),
) -> ApiResponse[list[IncidentOut]]:
    """Incidents currently assigned to the calling volunteer."""
    tasks = await IncidentLifecycle(db).list_incidents(assigned_to=volunteer.id)
    if not include_completed:
        tasks = [task for task in tasks if task.status != IncidentStatus.COMPLETED]
    return ApiResponse(
        data=[IncidentOut.from_model(task) for task in tasks],
        count=len(tasks),
    )


@router.post("/assign-task/{incident_id}", response_model=ApiResponse[IncidentOut])
async def assign_task(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    volunteer: VolunteerUser,
) -> ApiResponse[IncidentOut]:
    """Claim an available incident."""
    incident = await DispatchService(db).claim(volunteer, incident_id)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.post("/start-task/{incident_id}", response_model=ApiResponse[IncidentOut])
async def start_task(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    volunteer: VolunteerUser,
) -> ApiResponse[IncidentOut]:
    """Mark a claimed task as in progress."""
    incident = await IncidentLifecycle(db).start(volunteer, incident_id)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.post("/complete-task/{incident_id}", response_model=ApiResponse[IncidentOut])
async def complete_task(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    volunteer: VolunteerUser,
) -> ApiResponse[IncidentOut]:
    """Mark a task as completed."""
    incident = await IncidentLifecycle(db).complete(volunteer, incident_id)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.post("/unassign-task/{incident_id}", response_model=ApiResponse[IncidentOut])
async def unassign_task(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    volunteer: VolunteerUser,
) -> ApiResponse[IncidentOut]:
    """Release a task back to the available pool."""
    incident = await DispatchService(db).release(volunteer, incident_id)
    return ApiResponse(
        data=IncidentOut.from_model(incident),
        message="Task unassigned successfully",
    )


@router.put("/update-location", response_model=ApiResponse[UserOut])
async def update_location(
    body: LocationUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    volunteer: VolunteerUser,
) -> ApiResponse[UserOut]:
    """Update the calling volunteer's current location."""
    volunteer.current_lat = body.lat
    volunteer.current_lng = body.lng
    await db.commit()
    return ApiResponse(data=UserOut.from_model(volunteer))


@router.get("/route/{incident_id}", response_model=ApiResponse[RouteOut])
async def route_to_incident(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    volunteer: VolunteerUser,
    advisor: Annotated[RouteAdvisor, Depends(get_route_advisor)],
) -> ApiResponse[RouteOut]:
    """Travel route from the volunteer's current location to an incident."""
    incident = await IncidentLifecycle(db).get_incident(incident_id)
    if volunteer.current_lat is None or volunteer.current_lng is None:
        raise ValidationError("Set your current location before requesting a route")

    route = await advisor.get_route(
        Location(lat=volunteer.current_lat, lng=volunteer.current_lng),
        Location(lat=incident.lat, lng=incident.lng),
    )
    return ApiResponse(data=route)
