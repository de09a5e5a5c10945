"""Pydantic schemas for API request/response validation."""

from app.schemas.common import ApiResponse, ErrorResponse, Location
from app.schemas.incident import (
    AssignRequest,
    IncidentCreate,
    IncidentOut,
    IncidentUpdate,
    LocationCorrection,
    NoteCreate,
    StatsOut,
)
from app.schemas.route import RouteOut
from app.schemas.user import LocationUpdate, RoleUpdate, StatusUpdate, UserOut

__all__ = [
    "ApiResponse",
    "AssignRequest",
    "ErrorResponse",
    "IncidentCreate",
    "IncidentOut",
    "IncidentUpdate",
    "Location",
    "LocationCorrection",
    "LocationUpdate",
    "NoteCreate",
    "RoleUpdate",
    "RouteOut",
    "StatsOut",
    "StatusUpdate",
    "UserOut",
]
