"""Admin routes: verification, dispatch, user administration and stats."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import AdminUser
from app.errors import NotFoundError, ValidationError
from app.models import Incident, IncidentStatus, Role, User, UserStatus
from app.schemas import (
    ApiResponse,
    AssignRequest,
    IncidentOut,
    LocationCorrection,
    LocationUpdate,
    RoleUpdate,
    StatsOut,
    StatusUpdate,
    UserOut,
)
from app.services.dispatch import DispatchService
from app.services.lifecycle import IncidentLifecycle

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def _count_by(db: AsyncSession, column) -> dict:
    result = await db.execute(select(column, func.count()).group_by(column))
    return {key: count for key, count in result.all()}


@router.get("/stats", response_model=ApiResponse[StatsOut])
async def get_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: AdminUser,
) -> ApiResponse[StatsOut]:
    """Dashboard counters for incidents and users."""
    total = (await db.execute(select(func.count(Incident.id)))).scalar() or 0
    verified = (
        await db.execute(select(func.count(Incident.id)).where(Incident.verified.is_(True)))
    ).scalar() or 0
    completed = (
        await db.execute(
            select(func.count(Incident.id)).where(Incident.status == IncidentStatus.COMPLETED)
        )
    ).scalar() or 0
    active_volunteers = (
        await db.execute(
            select(func.count(User.id)).where(
                User.role == Role.VOLUNTEER, User.status == UserStatus.ACTIVE
            )
        )
    ).scalar() or 0
    total_users = (await db.execute(select(func.count(User.id)))).scalar() or 0

    stats = StatsOut(
        total_incidents=total,
        verified_incidents=verified,
        unverified_incidents=total - verified,
        completed_incidents=completed,
        active_volunteers=active_volunteers,
        total_users=total_users,
        incidents_by_status=await _count_by(db, Incident.status),
        incidents_by_type=await _count_by(db, Incident.type),
        incidents_by_severity=await _count_by(db, Incident.severity),
    )
    return ApiResponse(data=stats)


@router.post("/verify-incident/{incident_id}", response_model=ApiResponse[IncidentOut])
async def verify_incident(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: AdminUser,
) -> ApiResponse[IncidentOut]:
    """Verify an incident, making it available to volunteers."""
    incident = await IncidentLifecycle(db).verify(admin, incident_id)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.post("/reject-incident/{incident_id}", response_model=ApiResponse[None])
async def reject_incident(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: AdminUser,
) -> ApiResponse[None]:
    """Reject an incident. The record is permanently removed."""
    await IncidentLifecycle(db).reject(admin, incident_id)
    return ApiResponse(message="Incident rejected and deleted")


@router.post("/assign-incident/{incident_id}", response_model=ApiResponse[IncidentOut])
async def assign_incident(
    incident_id: str,
    body: AssignRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: AdminUser,
) -> ApiResponse[IncidentOut]:
    """Dispatch a chosen volunteer to an available incident."""
    incident = await DispatchService(db).assign(admin, incident_id, body.volunteer_id)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.post("/correct-location/{incident_id}", response_model=ApiResponse[IncidentOut])
async def correct_location(
    incident_id: str,
    body: LocationCorrection,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: AdminUser,
) -> ApiResponse[IncidentOut]:
    """Correct a reported location; the change is logged as a note."""
    incident = await IncidentLifecycle(db).correct_location(admin, incident_id, body)
    return ApiResponse(data=IncidentOut.from_model(incident))


@router.put("/users/{user_id}/role", response_model=ApiResponse[UserOut])
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: AdminUser,
) -> ApiResponse[UserOut]:
    """Change a user's role."""
    user = await _get_user(db, user_id)
    user.role = body.role
    await db.commit()

    logger.info(f"User {user.id} role set to {body.role} by {admin.id}")
    return ApiResponse(data=UserOut.from_model(user))


@router.put("/users/{user_id}/status", response_model=ApiResponse[UserOut])
async def update_user_status(
    user_id: str,
    body: StatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: AdminUser,
) -> ApiResponse[UserOut]:
    """Activate, deactivate or suspend a user."""
    user = await _get_user(db, user_id)
    user.status = body.status
    await db.commit()

    logger.info(f"User {user.id} status set to {body.status} by {admin.id}")
    return ApiResponse(data=UserOut.from_model(user))


@router.put("/volunteers/{user_id}/location", response_model=ApiResponse[UserOut])
async def update_volunteer_location(
    user_id: str,
    body: LocationUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: AdminUser,
) -> ApiResponse[UserOut]:
    """Set a volunteer's current location on their behalf."""
    volunteer = await db.get(User, user_id)
    if volunteer is None:
        raise NotFoundError("Volunteer not found")
    if volunteer.role != Role.VOLUNTEER:
        raise ValidationError("User is not a volunteer")

    volunteer.current_lat = body.lat
    volunteer.current_lng = body.lng
    await db.commit()

    return ApiResponse(data=UserOut.from_model(volunteer))
