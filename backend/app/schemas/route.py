"""Pydantic schemas for the route advisor."""

from typing import Literal

from pydantic import BaseModel

from app.schemas.common import Location


class RouteOut(BaseModel):
    """Travel path between two points for map display."""

    path: list[Location]
    distance_km: float
    duration_seconds: float | None = None
    source: Literal["osrm", "fallback"]
