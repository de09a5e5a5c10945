"""
Dispatch service: binding volunteers to incidents and releasing them.

Claims use a conditional UPDATE on ``status`` so that two volunteers racing
for the same available incident cannot both win; the UPDATE also bumps the
incident version so stale ORM writes elsewhere are rejected. The volunteer
row is re-read under a lock before its task list is rewritten, and both are
committed together.
"""

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models import Incident, IncidentStatus, Role, User, UserStatus
from app.services.lifecycle import (
    IncidentLifecycle,
    require_admin,
    utcnow,
    with_member,
    without_member,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (IncidentStatus.PENDING, IncidentStatus.IN_PROGRESS)


class DispatchService:
    """Claim, admin-directed assignment and release of incidents."""

    def __init__(self, db: AsyncSession, lifecycle: IncidentLifecycle | None = None):
        self.db = db
        self.lifecycle = lifecycle or IncidentLifecycle(db)

    async def claim(self, volunteer: User, incident_id: str) -> Incident:
        """Volunteer binds itself to an available, verified incident."""
        if volunteer.role != Role.VOLUNTEER:
            raise AuthorizationError("Only volunteers can claim incidents")
        return await self._bind(incident_id, volunteer)

    async def assign(self, admin: User, incident_id: str, volunteer_id: str | None) -> Incident:
        """Admin binds a chosen volunteer; the admin is never the assignee."""
        require_admin(admin)
        await self.lifecycle.get_incident(incident_id)

        if not volunteer_id:
            raise ValidationError("Volunteer ID is required")

        volunteer = await self.db.get(User, volunteer_id)
        if volunteer is None or volunteer.role != Role.VOLUNTEER:
            raise NotFoundError("Volunteer not found")
        if volunteer.status != UserStatus.ACTIVE:
            raise ValidationError("Volunteer account is not active")

        incident = await self._bind(incident_id, volunteer)
        logger.info(f"Admin {admin.id} dispatched {volunteer.id} to {incident_id}")
        return incident

    async def _bind(self, incident_id: str, volunteer: User) -> Incident:
        now = utcnow()
        result = await self.db.execute(
            update(Incident)
            .where(
                Incident.id == incident_id,
                Incident.status == IncidentStatus.AVAILABLE,
                Incident.verified.is_(True),
            )
            .values(
                status=IncidentStatus.PENDING,
                assigned_to=volunteer.id,
                assigned_at=now,
                updated_at=now,
                version=Incident.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            await self.lifecycle.get_incident(incident_id)
            logger.warning(f"Claim of {incident_id} by {volunteer.id} lost: not available")
            raise ConflictError("This incident is not available for assignment")

        locked = await self.lifecycle.lock_user(volunteer.id)
        locked.assigned_tasks = with_member(locked.assigned_tasks, incident_id)

        incident = await self.db.get(Incident, incident_id, populate_existing=True)
        incident.assigned_volunteers = with_member(incident.assigned_volunteers, volunteer.id)

        await self.lifecycle.commit()
        logger.info(f"Incident {incident_id} assigned to {volunteer.id}")
        return incident

    async def release(self, volunteer: User, incident_id: str) -> Incident:
        """
        Assignee gives the incident back to the available pool.

        The volunteer keeps its place in the assignment history.
        """
        incident = await self.lifecycle.get_incident(incident_id)
        if incident.assigned_to != volunteer.id:
            raise AuthorizationError("This task is not assigned to you")

        result = await self.db.execute(
            update(Incident)
            .where(
                Incident.id == incident_id,
                Incident.assigned_to == volunteer.id,
                Incident.status.in_(ACTIVE_STATUSES),
            )
            .values(
                status=IncidentStatus.AVAILABLE,
                assigned_to=None,
                assigned_at=None,
                updated_at=utcnow(),
                version=Incident.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError("Only pending or in-progress tasks can be released")

        locked = await self.lifecycle.lock_user(volunteer.id)
        locked.assigned_tasks = without_member(locked.assigned_tasks, incident_id)

        incident = await self.db.get(Incident, incident_id, populate_existing=True)

        await self.lifecycle.commit()
        logger.info(f"Incident {incident_id} released by {volunteer.id}")
        return incident
