"""Closed enumerations shared by models, schemas and the lifecycle engine."""

from enum import StrEnum


class IncidentType(StrEnum):
    FIRE = "fire"
    MEDICAL = "medical"
    FLOOD = "flood"
    EARTHQUAKE = "earthquake"
    STORM = "storm"
    OTHER = "other"


class IncidentStatus(StrEnum):
    """
    Incident lifecycle states.

    unverified -> available -> pending -> in-progress -> completed, with
    pending/in-progress -> available on release.
    """

    UNVERIFIED = "unverified"
    AVAILABLE = "available"
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @property
    def is_active_assignment(self) -> bool:
        return self in (IncidentStatus.PENDING, IncidentStatus.IN_PROGRESS)


class Role(StrEnum):
    USER = "user"
    VOLUNTEER = "volunteer"
    ADMIN = "admin"


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
