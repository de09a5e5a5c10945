"""Route advisor: OSRM road routing with a waypoint Dijkstra fallback."""

import logging
import math
from typing import Any

import httpx

from app.config import get_settings
from app.errors import ValidationError
from app.schemas.common import Location
from app.schemas.route import RouteOut
from app.services.geo import (
    build_waypoint_graph,
    dijkstra,
    interpolate_waypoints,
    path_length_km,
)

logger = logging.getLogger(__name__)
settings = get_settings()


class RoutingServiceError(Exception):
    """Base exception for road-routing service errors."""

    pass


class OSRMClient:
    """
    Client for the OSRM (Open Source Routing Machine) route service.

    Coordinates are sent as ``lng,lat`` pairs; the geometry comes back as
    GeoJSON ``[lng, lat]`` pairs.
    """

    def __init__(
        self,
        base_url: str = settings.osrm_base_url,
        timeout: float = settings.routing_timeout_seconds,
        profile: str = "driving",
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.profile = profile
        self.headers: dict[str, str] = {"Accept": "application/json"}

    def build_url(self, start: Location, end: Location) -> str:
        coords = f"{start.lng},{start.lat};{end.lng},{end.lat}"
        return f"{self.base_url}/route/v1/{self.profile}/{coords}"

    async def _request(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self.headers, params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise RoutingServiceError(f"OSRM API error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise RoutingServiceError(f"OSRM request failed: {e}") from e
        except ValueError as e:
            raise RoutingServiceError(f"OSRM returned invalid JSON: {e}") from e

    async def fetch_route(self, start: Location, end: Location) -> RouteOut:
        """
        Fetch a driving route between two points.

        Raises:
            RoutingServiceError: transport failure, non-success status or no route
        """
        params = {"overview": "full", "geometries": "geojson", "alternatives": "false"}
        url = self.build_url(start, end)

        logger.info(f"Fetching route from OSRM: {url}")
        data = await self._request(url, params)

        if data.get("code") != "Ok" or not data.get("routes"):
            raise RoutingServiceError(f"No route found from OSRM (code={data.get('code')})")

        route = data["routes"][0]
        try:
            path = [
                Location(lat=coord[1], lng=coord[0])
                for coord in route["geometry"]["coordinates"]
            ]
            distance_km = float(route["distance"]) / 1000
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise RoutingServiceError(f"Malformed OSRM route: {e}") from e

        if not path:
            raise RoutingServiceError("OSRM route has empty geometry")

        logger.info(f"OSRM route found: {len(path)} points, {distance_km:.2f} km")
        return RouteOut(
            path=path,
            distance_km=distance_km,
            duration_seconds=route.get("duration"),
            source="osrm",
        )


class RouteAdvisor:
    """
    Produces a travel path and distance between two points for display.

    Road routing is tried first; any failure falls back to a shortest-path
    search over straight-line waypoints, so callers always get a route for
    well-formed input.
    """

    def __init__(
        self,
        client: OSRMClient | None = None,
        waypoints: int = settings.fallback_waypoints,
        connect_km: float = settings.fallback_connect_km,
    ):
        self.client = client or OSRMClient()
        self.waypoints = waypoints
        self.connect_km = connect_km

    @staticmethod
    def _check_point(name: str, point: Location | None) -> None:
        if point is None:
            raise ValidationError(f"{name} location is required")
        if not (math.isfinite(point.lat) and math.isfinite(point.lng)):
            raise ValidationError(f"{name} location must have finite coordinates")

    async def get_route(self, start: Location, end: Location) -> RouteOut:
        """Route from ``start`` to ``end``."""
        self._check_point("Start", start)
        self._check_point("End", end)

        try:
            return await self.client.fetch_route(start, end)
        except RoutingServiceError as e:
            logger.warning(f"OSRM routing failed, using Dijkstra fallback: {e}")

        return self.fallback_route(start, end)

    def fallback_route(self, start: Location, end: Location) -> RouteOut:
        """Shortest path over start, interpolated waypoints and end."""
        a = (start.lat, start.lng)
        b = (end.lat, end.lng)
        nodes = [a, *interpolate_waypoints(a, b, self.waypoints), b]

        graph = build_waypoint_graph(nodes, self.connect_km)
        indexes = dijkstra(graph, 0, len(nodes) - 1)

        if indexes is None:
            logger.warning("No fallback path found, using direct line")
            points = [a, b]
        else:
            points = [nodes[i] for i in indexes]

        return RouteOut(
            path=[Location(lat=lat, lng=lng) for lat, lng in points],
            distance_km=path_length_km(points),
            source="fallback",
        )
