"""Pydantic schemas for users and volunteers."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.models import Role, User, UserStatus
from app.schemas.common import Location


class UserOut(BaseModel):
    """User response schema. Never exposes the session token."""

    id: str
    first_name: str
    last_name: str
    email: str
    role: Role
    status: UserStatus
    current_location: Location | None = None
    skills: list[str] = []
    availability: bool = True
    assigned_tasks: list[str] = []
    created_at: datetime

    @classmethod
    def from_model(cls, user: User) -> "UserOut":
        location = None
        if user.current_lat is not None and user.current_lng is not None:
            location = Location(lat=user.current_lat, lng=user.current_lng)

        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            role=user.role,
            status=user.status,
            current_location=location,
            skills=list(user.skills or []),
            availability=user.availability,
            assigned_tasks=list(user.assigned_tasks or []),
            created_at=user.created_at,
        )


class RoleUpdate(BaseModel):
    role: Role


class StatusUpdate(BaseModel):
    status: UserStatus


class LocationUpdate(BaseModel):
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
