"""Request dependencies: acting identity and role gates."""

import logging
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.errors import AuthenticationError, AuthorizationError
from app.models import Role, User, UserStatus
from app.services.routing import RouteAdvisor

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> User:
    """
    Resolve the session token to a user.

    Tokens are issued by the external auth service and stored on the user.
    Inactive and suspended accounts cannot act.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    result = await db.execute(select(User).where(User.api_token == credentials.credentials))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("Invalid session token")

    if user.status != UserStatus.ACTIVE:
        logger.warning(f"Rejected request from {user.status} account {user.id}")
        raise AuthorizationError(f"Account is {user.status}")

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(*roles: Role):
    """Dependency factory restricting an endpoint to the given roles."""

    async def checker(user: CurrentUser) -> User:
        if Role(user.role) not in roles:
            raise AuthorizationError(
                f"Role {user.role} is not authorized to access this route"
            )
        return user

    return checker


AdminUser = Annotated[User, Depends(require_role(Role.ADMIN))]
VolunteerUser = Annotated[User, Depends(require_role(Role.VOLUNTEER))]


def get_route_advisor() -> RouteAdvisor:
    return RouteAdvisor()
