"""Pydantic schemas for incidents."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import Incident, IncidentStatus, IncidentType
from app.schemas.common import Location


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class IncidentCreate(BaseModel):
    """Body of a new incident report."""

    type: IncidentType
    severity: int = Field(..., ge=1, le=5)
    description: str
    location: Location

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        return _strip_required(value)


class IncidentUpdate(BaseModel):
    """Partial update. Fields left out are not touched."""

    status: IncidentStatus | None = None
    description: str | None = None
    severity: int | None = Field(None, ge=1, le=5)
    assigned_to: str | None = None
    verified: bool | None = None
    resources: list[str] | None = None

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str | None) -> str | None:
        return None if value is None else _strip_required(value)


class NoteCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        return _strip_required(value)


class LocationCorrection(BaseModel):
    """Admin correction of a reported location."""

    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        return _strip_required(value)


class AssignRequest(BaseModel):
    volunteer_id: str | None = None


class NoteOut(BaseModel):
    text: str
    author: str
    timestamp: datetime


class IncidentOut(BaseModel):
    """Incident response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: IncidentType
    severity: int
    status: IncidentStatus
    location: Location
    description: str
    timestamp: datetime

    reporter: str
    reporter_id: str

    verified: bool
    verified_by: str | None = None
    verified_at: datetime | None = None

    assigned_to: str | None = None
    assigned_at: datetime | None = None
    assigned_volunteers: list[str] = []
    resolved_at: datetime | None = None

    resources: list[str] = []
    notes: list[NoteOut] = []

    @classmethod
    def from_model(cls, incident: Incident) -> "IncidentOut":
        return cls(
            id=incident.id,
            type=incident.type,
            severity=incident.severity,
            status=incident.status,
            location=Location(lat=incident.lat, lng=incident.lng),
            description=incident.description,
            timestamp=incident.timestamp,
            reporter=incident.reporter,
            reporter_id=incident.reporter_id,
            verified=incident.verified,
            verified_by=incident.verified_by,
            verified_at=incident.verified_at,
            assigned_to=incident.assigned_to,
            assigned_at=incident.assigned_at,
            assigned_volunteers=list(incident.assigned_volunteers or []),
            resolved_at=incident.resolved_at,
            resources=list(incident.resources or []),
            notes=[NoteOut.model_validate(note) for note in incident.notes or []],
        )


class StatsOut(BaseModel):
    """Admin dashboard counters."""

    total_incidents: int
    verified_incidents: int
    unverified_incidents: int
    completed_incidents: int
    active_volunteers: int
    total_users: int
    incidents_by_status: dict[str, int]
    incidents_by_type: dict[str, int]
    incidents_by_severity: dict[int, int]
