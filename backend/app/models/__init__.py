"""Database models."""

from app.models.enums import IncidentStatus, IncidentType, Role, UserStatus
from app.models.incident import Incident
from app.models.user import User

__all__ = [
    "Incident",
    "IncidentStatus",
    "IncidentType",
    "Role",
    "User",
    "UserStatus",
]
