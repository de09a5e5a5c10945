"""API route for point-to-point travel routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.dependencies import CurrentUser, get_route_advisor
from app.schemas import ApiResponse, Location, RouteOut
from app.services.routing import RouteAdvisor

router = APIRouter(prefix="/routes", tags=["routes"])


@router.get("", response_model=ApiResponse[RouteOut])
async def get_route(
    user: CurrentUser,
    advisor: Annotated[RouteAdvisor, Depends(get_route_advisor)],
    start_lat: float = Query(..., ge=-90, le=90, allow_inf_nan=False),
    start_lng: float = Query(..., ge=-180, le=180, allow_inf_nan=False),
    end_lat: float = Query(..., ge=-90, le=90, allow_inf_nan=False),
    end_lng: float = Query(..., ge=-180, le=180, allow_inf_nan=False),
) -> ApiResponse[RouteOut]:
    """
    Road route between two points.

    Falls back to a straight-line waypoint path when the road-routing
    service is unavailable; ``source`` tells which was used.
    """
    route = await advisor.get_route(
        Location(lat=start_lat, lng=start_lng),
        Location(lat=end_lat, lng=end_lng),
    )
    return ApiResponse(data=route)
