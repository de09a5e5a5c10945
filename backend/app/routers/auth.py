"""Session identity route."""

from fastapi import APIRouter

from app.dependencies import CurrentUser
from app.schemas import ApiResponse, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=ApiResponse[UserOut])
async def me(user: CurrentUser) -> ApiResponse[UserOut]:
    """Return the identity behind the session token."""
    return ApiResponse(data=UserOut.from_model(user))
