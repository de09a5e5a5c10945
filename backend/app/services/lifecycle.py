"""
Incident lifecycle engine.

Encodes the legal incident states, the transitions between them and which
actors may trigger each one. Every mutation validates the actor and the
current state before touching the record, and commits the incident and any
user back-references in a single transaction.

Incidents carry a version counter, so a write based on a stale read fails
with a conflict instead of overwriting a concurrent change. User task lists
are re-read under a row lock before they are rewritten.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from types import SimpleNamespace

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config import get_settings
from app.errors import (
    AuthorizationError,
    ConflictError,
    IdentifierExhaustedError,
    NotFoundError,
    UnexpectedError,
    ValidationError,
)
from app.models import Incident, IncidentStatus, Role, User, UserStatus
from app.schemas.incident import IncidentCreate, IncidentUpdate, LocationCorrection
from app.services.identifiers import allocate_incident_id

logger = logging.getLogger(__name__)
settings = get_settings()

# Incident fields a partial update may change
UPDATABLE_FIELDS = (
    "status",
    "description",
    "severity",
    "resources",
    "verified",
    "verified_by",
    "verified_at",
    "assigned_to",
    "assigned_at",
    "assigned_volunteers",
    "resolved_at",
)


def utcnow() -> datetime:
    return datetime.now(UTC)


def with_member(items: Iterable[str] | None, item: str) -> list[str]:
    """Copy of ``items`` with ``item`` appended unless already present."""
    items = list(items or [])
    if item not in items:
        items.append(item)
    return items


def without_member(items: Iterable[str] | None, item: str) -> list[str]:
    """Copy of ``items`` with every occurrence of ``item`` removed."""
    return [existing for existing in items or [] if existing != item]


def is_admin(actor: User) -> bool:
    return Role(actor.role) is Role.ADMIN


def can_modify(actor: User, incident: Incident) -> bool:
    """Admins, the reporter and the current assignee may mutate an incident."""
    match Role(actor.role):
        case Role.ADMIN:
            return True
        case Role.VOLUNTEER | Role.USER:
            return actor.id in (incident.reporter_id, incident.assigned_to)


def can_delete(actor: User, incident: Incident) -> bool:
    """Admins and the reporter may delete an incident."""
    match Role(actor.role):
        case Role.ADMIN:
            return True
        case Role.VOLUNTEER | Role.USER:
            return actor.id == incident.reporter_id


def require_admin(actor: User) -> None:
    if not is_admin(actor):
        logger.warning(f"Admin action denied for {actor.id} ({actor.role})")
        raise AuthorizationError("Admin access required")


def invariant_violations(incident: Incident | SimpleNamespace) -> list[str]:
    """Return human-readable descriptions of broken incident invariants."""
    status = IncidentStatus(incident.status)
    problems = []

    if not incident.verified and status is not IncidentStatus.UNVERIFIED:
        problems.append(f"Unverified incidents cannot be {status}")
    if incident.verified and status is IncidentStatus.UNVERIFIED:
        problems.append("Verified incidents cannot be unverified")
    if status.is_active_assignment and not incident.assigned_to:
        problems.append(f"A {status} incident must be assigned to a volunteer")
    if incident.assigned_to and status in (IncidentStatus.UNVERIFIED, IncidentStatus.AVAILABLE):
        problems.append(f"A {status} incident cannot have an assignee")
    if incident.assigned_to and incident.assigned_to not in (incident.assigned_volunteers or []):
        problems.append("Assignee is missing from the assignment history")
    if status is IncidentStatus.COMPLETED and incident.resolved_at is None:
        problems.append("Completed incidents must have a resolution time")

    return problems


class IncidentLifecycle:
    """
    Service implementing the incident state machine.

    States: unverified -> available -> pending -> in-progress -> completed.
    Claim and release live in DispatchService, which builds on this class.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        """Commit the session, rolling back and wrapping storage failures."""
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            logger.warning(f"Concurrent modification rejected: {e}")
            raise ConflictError("Incident was changed by another request, please retry") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database commit failed: {e}", exc_info=True)
            raise UnexpectedError("Database error") from e

    async def get_incident(self, incident_id: str) -> Incident:
        incident = await self.db.get(Incident, incident_id)
        if incident is None:
            raise NotFoundError("Incident not found")
        return incident

    async def lock_user(self, user_id: str) -> User | None:
        """Re-read a user row with a row lock, refreshing any loaded copy."""
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_incidents(
        self,
        status: IncidentStatus | None = None,
        verified: bool | None = None,
        type: str | None = None,
        severity: int | None = None,
        assigned_to: str | None = None,
    ) -> list[Incident]:
        """List incidents newest first, optionally filtered."""
        query = select(Incident).order_by(Incident.timestamp.desc())

        if status is not None:
            query = query.where(Incident.status == status)
        if verified is not None:
            query = query.where(Incident.verified.is_(verified))
        if type is not None:
            query = query.where(Incident.type == type)
        if severity is not None:
            query = query.where(Incident.severity == severity)
        if assigned_to is not None:
            query = query.where(Incident.assigned_to == assigned_to)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, actor: User, data: IncidentCreate) -> Incident:
        """
        Record a new unverified incident reported by ``actor``.

        An id taken by a concurrent report between allocation and insert is
        detected by the primary key and allocated again.
        """
        reporter_id = actor.id
        reporter_name = actor.full_name

        for attempt in range(1, settings.incident_id_max_attempts + 1):
            incident_id = await allocate_incident_id(self.db)
            now = utcnow()

            incident = Incident(
                id=incident_id,
                type=data.type,
                severity=data.severity,
                status=IncidentStatus.UNVERIFIED,
                description=data.description,
                lat=data.location.lat,
                lng=data.location.lng,
                reporter=reporter_name,
                reporter_id=reporter_id,
                verified=False,
                assigned_volunteers=[],
                resources=[],
                notes=[],
                timestamp=now,
                updated_at=now,
            )
            self.db.add(incident)
            try:
                await self.db.flush()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(f"Incident id {incident_id} taken concurrently (attempt {attempt})")
                continue

            await self.commit()
            logger.info(f"Incident {incident.id} reported by {reporter_id} ({data.type}, severity {data.severity})")
            return incident

        raise IdentifierExhaustedError()

    async def verify(self, actor: User, incident_id: str) -> Incident:
        """
        Admin confirmation; moves an unverified incident into the assignable pool.

        The first verifier and time are kept when an incident is verified again.
        """
        require_admin(actor)
        incident = await self.get_incident(incident_id)

        now = utcnow()
        self._apply_verified(actor, incident, True, now)
        incident.updated_at = now

        await self.commit()
        logger.info(f"Incident {incident.id} verified by {actor.id}")
        return incident

    async def reject(self, actor: User, incident_id: str) -> None:
        """Admin rejection permanently removes the report."""
        require_admin(actor)
        incident = await self.get_incident(incident_id)
        await self._remove(incident)
        logger.info(f"Incident {incident_id} rejected by {actor.id}")

    async def delete(self, actor: User, incident_id: str) -> None:
        incident = await self.get_incident(incident_id)
        if not can_delete(actor, incident):
            raise AuthorizationError("Not authorized to delete this incident")
        await self._remove(incident)
        logger.info(f"Incident {incident_id} deleted by {actor.id}")

    async def _remove(self, incident: Incident) -> None:
        # Drop dangling task references before deleting the record
        if incident.assigned_volunteers:
            result = await self.db.execute(
                select(User)
                .where(User.id.in_(incident.assigned_volunteers))
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            for user in result.scalars():
                user.assigned_tasks = without_member(user.assigned_tasks, incident.id)

        await self.db.delete(incident)
        await self.commit()

    async def update(self, actor: User, incident_id: str, changes: IncidentUpdate) -> Incident:
        """
        Apply a role-gated partial update.

        ``verified`` is only honoured for admins. Assigning through this path
        puts an available incident into pending, like a dispatch would. The
        changes are applied to a draft first; the loaded record is only
        touched once the draft satisfies every incident invariant.
        """
        incident = await self.get_incident(incident_id)
        if not can_modify(actor, incident):
            raise AuthorizationError("Not authorized to update this incident")

        now = utcnow()
        draft = SimpleNamespace(**{field: getattr(incident, field) for field in UPDATABLE_FIELDS})

        if changes.description is not None:
            draft.description = changes.description
        if changes.severity is not None:
            draft.severity = changes.severity
        if changes.resources is not None:
            draft.resources = list(changes.resources)

        if changes.verified is not None and is_admin(actor):
            self._apply_verified(actor, draft, changes.verified, now)

        volunteer = None
        if changes.assigned_to is not None:
            volunteer = await self._find_volunteer(changes.assigned_to)
            draft.assigned_to = volunteer.id
            draft.assigned_at = now
            draft.assigned_volunteers = with_member(draft.assigned_volunteers, volunteer.id)
            if draft.status == IncidentStatus.AVAILABLE:
                draft.status = IncidentStatus.PENDING

        if changes.status is not None:
            draft.status = changes.status
            if changes.status == IncidentStatus.COMPLETED:
                draft.resolved_at = now

        problems = invariant_violations(draft)
        if problems:
            raise ConflictError(", ".join(problems))

        # User rows are locked and rewritten before the incident is touched
        previous = incident.assigned_to
        if volunteer is not None:
            if previous and previous != volunteer.id:
                await self._drop_active_task(previous, incident.id)
            locked = await self.lock_user(volunteer.id)
            locked.assigned_tasks = with_member(locked.assigned_tasks, incident.id)
        if changes.status == IncidentStatus.COMPLETED:
            await self._drop_active_task(draft.assigned_to, incident.id)

        for field in UPDATABLE_FIELDS:
            value = getattr(draft, field)
            if getattr(incident, field) != value:
                setattr(incident, field, value)
        incident.updated_at = now

        await self.commit()
        logger.info(f"Incident {incident.id} updated by {actor.id}")
        return incident

    def _apply_verified(
        self,
        actor: User,
        target: Incident | SimpleNamespace,
        verified: bool,
        now: datetime,
    ) -> None:
        if verified:
            if not target.verified:
                target.verified_by = actor.id
                target.verified_at = now
            target.verified = True
            if target.status == IncidentStatus.UNVERIFIED:
                target.status = IncidentStatus.AVAILABLE
            return

        if target.verified and target.status != IncidentStatus.AVAILABLE:
            raise ConflictError("Only available incidents can be returned to unverified")
        target.verified = False
        target.verified_by = None
        target.verified_at = None
        target.status = IncidentStatus.UNVERIFIED

    async def _find_volunteer(self, volunteer_id: str) -> User:
        volunteer = await self.db.get(User, volunteer_id)
        if volunteer is None or volunteer.role != Role.VOLUNTEER:
            raise NotFoundError("Volunteer not found")
        if volunteer.status != UserStatus.ACTIVE:
            raise ValidationError("Volunteer account is not active")
        return volunteer

    async def _drop_active_task(self, user_id: str | None, incident_id: str) -> None:
        if not user_id:
            return
        user = await self.lock_user(user_id)
        if user is not None:
            user.assigned_tasks = without_member(user.assigned_tasks, incident_id)

    async def start(self, actor: User, incident_id: str) -> Incident:
        """Assignee begins work: pending -> in-progress."""
        incident = await self.get_incident(incident_id)
        if incident.assigned_to != actor.id:
            raise AuthorizationError("This task is not assigned to you")
        if incident.status != IncidentStatus.PENDING:
            raise ConflictError(f"Cannot start a task that is {incident.status}")

        incident.status = IncidentStatus.IN_PROGRESS
        incident.updated_at = utcnow()
        await self.commit()

        logger.info(f"Incident {incident.id} in progress by {actor.id}")
        return incident

    async def complete(self, actor: User, incident_id: str) -> Incident:
        """
        Assignee resolves the incident.

        The incident leaves the volunteer's active task list but the volunteer
        stays in the assignment history.
        """
        incident = await self.get_incident(incident_id)
        if incident.assigned_to != actor.id:
            logger.warning(f"Completion of {incident_id} denied for {actor.id}")
            raise AuthorizationError("This task is not assigned to you")
        if not IncidentStatus(incident.status).is_active_assignment:
            raise ConflictError(f"Cannot complete a task that is {incident.status}")

        await self._drop_active_task(actor.id, incident.id)

        now = utcnow()
        incident.status = IncidentStatus.COMPLETED
        incident.resolved_at = now
        incident.updated_at = now

        await self.commit()
        logger.info(f"Incident {incident.id} completed by {actor.id}")
        return incident

    async def add_note(self, actor: User, incident_id: str, text: str) -> Incident:
        incident = await self.get_incident(incident_id)
        if not can_modify(actor, incident):
            raise AuthorizationError("Not authorized to add notes to this incident")

        now = utcnow()
        incident.notes = [
            *(incident.notes or []),
            {"text": text, "author": actor.id, "timestamp": now.isoformat()},
        ]
        incident.updated_at = now
        await self.commit()
        return incident

    async def correct_location(
        self,
        actor: User,
        incident_id: str,
        correction: LocationCorrection,
    ) -> Incident:
        """
        Admin-only correction of where an incident happened.

        The reported location is otherwise immutable; the change is recorded
        as a note with the old and new coordinates.
        """
        require_admin(actor)
        incident = await self.get_incident(incident_id)

        now = utcnow()
        audit = (
            f"Location corrected from ({incident.lat}, {incident.lng}) "
            f"to ({correction.lat}, {correction.lng}): {correction.reason}"
        )
        incident.lat = correction.lat
        incident.lng = correction.lng
        incident.notes = [
            *(incident.notes or []),
            {"text": audit, "author": actor.id, "timestamp": now.isoformat()},
        ]
        incident.updated_at = now

        await self.commit()
        logger.info(f"Incident {incident.id}: {audit} (by {actor.id})")
        return incident
