"""API routers."""

from app.routers.admin import router as admin_router
from app.routers.auth import router as auth_router
from app.routers.health import router as health_router
from app.routers.incidents import router as incidents_router
from app.routers.routes import router as routes_router
from app.routers.volunteers import router as volunteers_router

__all__ = [
    "admin_router",
    "auth_router",
    "health_router",
    "incidents_router",
    "routes_router",
    "volunteers_router",
]
