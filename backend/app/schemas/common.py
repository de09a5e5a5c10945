"""Shared Pydantic schemas: coordinates and the response envelope."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Location(BaseModel):
    """Geographic point."""

    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class ApiResponse(BaseModel, Generic[T]):
    """Envelope used by every endpoint: ``{success, data?, message?}``."""

    success: bool = True
    data: T | None = None
    message: str | None = None
    count: int | None = None


class ErrorResponse(BaseModel):
    """Envelope for failed requests."""

    success: bool = False
    message: str
    errors: list[str] | None = None
