"""Services for the incident lifecycle, dispatch and routing."""

from app.services.dispatch import DispatchService
from app.services.lifecycle import IncidentLifecycle
from app.services.routing import OSRMClient, RouteAdvisor, RoutingServiceError

__all__ = [
    "DispatchService",
    "IncidentLifecycle",
    "OSRMClient",
    "RouteAdvisor",
    "RoutingServiceError",
]
