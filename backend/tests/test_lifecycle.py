"""Tests for the incident lifecycle engine."""

from unittest.mock import AsyncMock, patch

import pytest

from app.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models import Incident, IncidentStatus, Role, User, UserStatus
from app.schemas import IncidentUpdate, LocationCorrection
from app.services.dispatch import DispatchService
from app.services.lifecycle import IncidentLifecycle, can_modify, invariant_violations


def _naive(value):
    return value.replace(tzinfo=None) if value is not None else None


class TestCreateAndVerify:
    """Tests for reporting, verification and rejection."""

    @pytest.mark.asyncio
    async def test_create_starts_unverified(self, unverified_incident, reporter):
        assert unverified_incident.status == IncidentStatus.UNVERIFIED
        assert unverified_incident.verified is False
        assert unverified_incident.reporter_id == reporter.id
        assert unverified_incident.reporter == reporter.full_name
        assert unverified_incident.assigned_volunteers == []
        assert invariant_violations(unverified_incident) == []

    @pytest.mark.asyncio
    async def test_verify_makes_available(self, db_session, admin, unverified_incident):
        incident = await IncidentLifecycle(db_session).verify(admin, unverified_incident.id)

        assert incident.status == IncidentStatus.AVAILABLE
        assert incident.verified is True
        assert incident.verified_by == admin.id
        assert incident.verified_at is not None

    @pytest.mark.asyncio
    async def test_verify_requires_admin(self, db_session, volunteer, unverified_incident):
        with pytest.raises(AuthorizationError):
            await IncidentLifecycle(db_session).verify(volunteer, unverified_incident.id)

        assert unverified_incident.verified is False

    @pytest.mark.asyncio
    async def test_verify_unknown_incident(self, db_session, admin):
        with pytest.raises(NotFoundError):
            await IncidentLifecycle(db_session).verify(admin, "INC-2000-0000")

    @pytest.mark.asyncio
    async def test_verify_again_keeps_first_verifier(
        self, db_session, make_user, admin, available_incident
    ):
        first_verified_at = available_incident.verified_at
        second_admin = await make_user(Role.ADMIN)

        incident = await IncidentLifecycle(db_session).verify(second_admin, available_incident.id)

        assert incident.verified_by == admin.id
        assert incident.verified_at == first_verified_at
        assert incident.status == IncidentStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_create_retries_id_taken_concurrently(
        self, db_session, second_session, reporter, fire_report
    ):
        """Test an id inserted by another request after allocation is allocated again."""
        reporter_id = reporter.id
        other_reporter = await second_session.get(User, reporter_id)
        taken = (await IncidentLifecycle(second_session).create(other_reporter, fire_report)).id
        fresh = "INC-2000-0001"

        with patch(
            "app.services.lifecycle.allocate_incident_id",
            AsyncMock(side_effect=[taken, fresh]),
        ):
            incident = await IncidentLifecycle(db_session).create(reporter, fire_report)

        assert incident.id == fresh
        assert incident.reporter_id == reporter_id
        assert incident.status == IncidentStatus.UNVERIFIED

    @pytest.mark.asyncio
    async def test_reject_deletes(self, db_session, admin, unverified_incident):
        lifecycle = IncidentLifecycle(db_session)
        incident_id = unverified_incident.id

        await lifecycle.reject(admin, incident_id)

        assert await db_session.get(Incident, incident_id) is None

    @pytest.mark.asyncio
    async def test_reject_requires_admin(self, db_session, reporter, unverified_incident):
        with pytest.raises(AuthorizationError):
            await IncidentLifecycle(db_session).reject(reporter, unverified_incident.id)


class TestCompleteAndStart:
    """Tests for work transitions by the assignee."""

    @pytest.mark.asyncio
    async def test_start_then_complete(self, db_session, volunteer, available_incident):
        lifecycle = IncidentLifecycle(db_session)
        await DispatchService(db_session).claim(volunteer, available_incident.id)

        incident = await lifecycle.start(volunteer, available_incident.id)
        assert incident.status == IncidentStatus.IN_PROGRESS

        incident = await lifecycle.complete(volunteer, available_incident.id)
        assert incident.status == IncidentStatus.COMPLETED
        assert incident.resolved_at is not None
        assert _naive(incident.resolved_at) >= _naive(incident.timestamp)
        assert volunteer.id in incident.assigned_volunteers
        assert incident.id not in volunteer.assigned_tasks

    @pytest.mark.asyncio
    async def test_complete_by_other_volunteer_forbidden(
        self, db_session, volunteer, other_volunteer, available_incident
    ):
        """Test completing someone else's task fails and changes nothing."""
        await DispatchService(db_session).claim(volunteer, available_incident.id)

        with pytest.raises(AuthorizationError):
            await IncidentLifecycle(db_session).complete(other_volunteer, available_incident.id)

        incident = await db_session.get(Incident, available_incident.id)
        assert incident.status == IncidentStatus.PENDING
        assert incident.assigned_to == volunteer.id
        assert incident.resolved_at is None

    @pytest.mark.asyncio
    async def test_complete_twice_conflicts(self, db_session, volunteer, available_incident):
        lifecycle = IncidentLifecycle(db_session)
        await DispatchService(db_session).claim(volunteer, available_incident.id)
        await lifecycle.complete(volunteer, available_incident.id)

        with pytest.raises(ConflictError):
            await lifecycle.complete(volunteer, available_incident.id)

    @pytest.mark.asyncio
    async def test_start_requires_pending(self, db_session, volunteer, available_incident):
        lifecycle = IncidentLifecycle(db_session)
        await DispatchService(db_session).claim(volunteer, available_incident.id)
        await lifecycle.start(volunteer, available_incident.id)

        with pytest.raises(ConflictError):
            await lifecycle.start(volunteer, available_incident.id)


class TestUpdate:
    """Tests for the role-gated partial update."""

    @pytest.mark.asyncio
    async def test_reporter_can_edit_description(self, db_session, reporter, unverified_incident):
        incident = await IncidentLifecycle(db_session).update(
            reporter,
            unverified_incident.id,
            IncidentUpdate(description="Smoke on the third floor", severity=4),
        )

        assert incident.description == "Smoke on the third floor"
        assert incident.severity == 4

    @pytest.mark.asyncio
    async def test_stranger_cannot_update(self, db_session, make_user, unverified_incident):
        stranger = await make_user(Role.USER)

        with pytest.raises(AuthorizationError):
            await IncidentLifecycle(db_session).update(
                stranger, unverified_incident.id, IncidentUpdate(severity=1)
            )

    @pytest.mark.asyncio
    async def test_verified_ignored_for_non_admin(self, db_session, reporter, unverified_incident):
        incident = await IncidentLifecycle(db_session).update(
            reporter,
            unverified_incident.id,
            IncidentUpdate(verified=True, severity=2),
        )

        assert incident.verified is False
        assert incident.status == IncidentStatus.UNVERIFIED
        assert incident.severity == 2

    @pytest.mark.asyncio
    async def test_admin_verifies_through_update(self, db_session, admin, unverified_incident):
        incident = await IncidentLifecycle(db_session).update(
            admin, unverified_incident.id, IncidentUpdate(verified=True)
        )

        assert incident.verified is True
        assert incident.status == IncidentStatus.AVAILABLE
        assert incident.verified_by == admin.id

    @pytest.mark.asyncio
    async def test_status_change_cannot_break_verification_invariant(
        self, db_session, reporter, unverified_incident
    ):
        """Test a rejected update leaves loaded objects untouched and usable."""
        lifecycle = IncidentLifecycle(db_session)
        incident_id = unverified_incident.id

        with pytest.raises(ConflictError):
            await lifecycle.update(
                reporter,
                incident_id,
                IncidentUpdate(status=IncidentStatus.AVAILABLE, severity=1),
            )

        assert unverified_incident.status == IncidentStatus.UNVERIFIED
        assert unverified_incident.severity == 5
        assert reporter.full_name == "Uma User"

        stored = await db_session.get(Incident, incident_id, populate_existing=True)
        assert stored.status == IncidentStatus.UNVERIFIED
        assert stored.severity == 5

    @pytest.mark.asyncio
    async def test_admin_unverify_only_from_available(
        self, db_session, admin, volunteer, available_incident
    ):
        lifecycle = IncidentLifecycle(db_session)
        await DispatchService(db_session).claim(volunteer, available_incident.id)

        with pytest.raises(ConflictError):
            await lifecycle.update(admin, available_incident.id, IncidentUpdate(verified=False))

    @pytest.mark.asyncio
    async def test_admin_unverify_available(self, db_session, admin, available_incident):
        incident = await IncidentLifecycle(db_session).update(
            admin, available_incident.id, IncidentUpdate(verified=False)
        )

        assert incident.verified is False
        assert incident.status == IncidentStatus.UNVERIFIED
        assert invariant_violations(incident) == []

    @pytest.mark.asyncio
    async def test_assign_through_update(self, db_session, admin, volunteer, available_incident):
        """Test assignee set by update keeps history and task list in sync."""
        incident = await IncidentLifecycle(db_session).update(
            admin, available_incident.id, IncidentUpdate(assigned_to=volunteer.id)
        )

        assert incident.assigned_to == volunteer.id
        assert incident.assigned_at is not None
        assert incident.status == IncidentStatus.PENDING
        assert incident.assigned_volunteers == [volunteer.id]
        assert incident.id in volunteer.assigned_tasks

    @pytest.mark.asyncio
    async def test_assign_through_update_requires_volunteer(
        self, db_session, admin, reporter, available_incident
    ):
        with pytest.raises(NotFoundError):
            await IncidentLifecycle(db_session).update(
                admin, available_incident.id, IncidentUpdate(assigned_to=reporter.id)
            )

    @pytest.mark.asyncio
    async def test_assign_inactive_volunteer_rejected(
        self, db_session, make_user, admin, available_incident
    ):
        suspended = await make_user(Role.VOLUNTEER, status=UserStatus.SUSPENDED)

        with pytest.raises(ValidationError):
            await IncidentLifecycle(db_session).update(
                admin, available_incident.id, IncidentUpdate(assigned_to=suspended.id)
            )

    @pytest.mark.asyncio
    async def test_assignee_completes_through_update(
        self, db_session, volunteer, available_incident
    ):
        await DispatchService(db_session).claim(volunteer, available_incident.id)

        incident = await IncidentLifecycle(db_session).update(
            volunteer,
            available_incident.id,
            IncidentUpdate(status=IncidentStatus.COMPLETED),
        )

        assert incident.status == IncidentStatus.COMPLETED
        assert incident.resolved_at is not None
        assert incident.id not in volunteer.assigned_tasks

    @pytest.mark.asyncio
    async def test_assign_through_update_cannot_overwrite_claim(
        self, db_session, second_session, admin, volunteer, other_volunteer, available_incident
    ):
        """Test an update holding a stale copy does not replace a committed claim."""
        incident_id = available_incident.id
        volunteer_id = volunteer.id
        other_id = other_volunteer.id

        racer = await second_session.get(User, volunteer_id)
        await DispatchService(second_session).claim(racer, incident_id)

        with pytest.raises(ConflictError):
            await IncidentLifecycle(db_session).update(
                admin, incident_id, IncidentUpdate(assigned_to=other_id)
            )

        stored = await second_session.get(Incident, incident_id, populate_existing=True)
        assert stored.status == IncidentStatus.PENDING
        assert stored.assigned_to == volunteer_id
        assert stored.assigned_volunteers == [volunteer_id]
        other = await second_session.get(User, other_id, populate_existing=True)
        assert incident_id not in (other.assigned_tasks or [])


class TestDelete:
    """Tests for deletion."""

    @pytest.mark.asyncio
    async def test_reporter_can_delete(self, db_session, reporter, unverified_incident):
        incident_id = unverified_incident.id
        await IncidentLifecycle(db_session).delete(reporter, incident_id)

        assert await db_session.get(Incident, incident_id) is None

    @pytest.mark.asyncio
    async def test_assignee_cannot_delete(self, db_session, volunteer, available_incident):
        await DispatchService(db_session).claim(volunteer, available_incident.id)

        with pytest.raises(AuthorizationError):
            await IncidentLifecycle(db_session).delete(volunteer, available_incident.id)

    @pytest.mark.asyncio
    async def test_delete_prunes_task_references(
        self, db_session, admin, volunteer, available_incident
    ):
        incident_id = available_incident.id
        await DispatchService(db_session).claim(volunteer, incident_id)
        assert incident_id in volunteer.assigned_tasks

        await IncidentLifecycle(db_session).delete(admin, incident_id)

        assert incident_id not in volunteer.assigned_tasks


class TestNotesAndLocation:
    """Tests for notes and the audited location correction."""

    @pytest.mark.asyncio
    async def test_add_note(self, db_session, reporter, unverified_incident):
        lifecycle = IncidentLifecycle(db_session)

        await lifecycle.add_note(reporter, unverified_incident.id, "Fire spreading east")
        incident = await lifecycle.add_note(reporter, unverified_incident.id, "Road closed")

        assert [note["text"] for note in incident.notes] == ["Fire spreading east", "Road closed"]
        assert incident.notes[0]["author"] == reporter.id

    @pytest.mark.asyncio
    async def test_correct_location_is_admin_only(self, db_session, reporter, unverified_incident):
        correction = LocationCorrection(lat=40.71, lng=-74.01, reason="Pin dropped on wrong block")

        with pytest.raises(AuthorizationError):
            await IncidentLifecycle(db_session).correct_location(
                reporter, unverified_incident.id, correction
            )

    @pytest.mark.asyncio
    async def test_correct_location_records_audit_note(self, db_session, admin, unverified_incident):
        correction = LocationCorrection(lat=40.71, lng=-74.01, reason="Pin dropped on wrong block")

        incident = await IncidentLifecycle(db_session).correct_location(
            admin, unverified_incident.id, correction
        )

        assert (incident.lat, incident.lng) == (40.71, -74.01)
        audit = incident.notes[-1]
        assert audit["author"] == admin.id
        assert "(40.7, -74.0)" in audit["text"]
        assert "Pin dropped on wrong block" in audit["text"]


class TestPermissions:
    """Tests for the closed-role authorization helper."""

    @pytest.mark.asyncio
    async def test_can_modify(self, admin, reporter, volunteer, other_volunteer, unverified_incident):
        unverified_incident.assigned_to = volunteer.id

        assert can_modify(admin, unverified_incident)
        assert can_modify(reporter, unverified_incident)
        assert can_modify(volunteer, unverified_incident)
        assert not can_modify(other_volunteer, unverified_incident)
