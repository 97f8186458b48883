"""
Authenticated user endpoints. Everything here requires a session token.
"""
from fastapi import APIRouter, Depends

from ..schemas.auth_schemas import CurrentUserResponse, ErrorResponse
from .deps import AuthenticatedUser, get_current_user

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={401: {"model": ErrorResponse}},
)


@router.get("/me", response_model=CurrentUserResponse)
async def read_current_user(current_user: AuthenticatedUser = Depends(get_current_user)):
    return CurrentUserResponse(
        username=current_user.username,
        token_expires_at=current_user.token_expires_at,
    )
