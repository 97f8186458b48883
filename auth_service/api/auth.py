"""
Authentication endpoints: signup, account verification, login and
verification resend. These are the only routes reachable without a
session token.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.database import get_db
from ..core.exceptions import DeliveryError
from ..schemas.auth_schemas import (
    AuthenticationResponse,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResendVerificationRequest,
    SignupResponse,
)
from ..services.auth_service import AuthService
from .deps import get_auth_service

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/signup",
    response_model=SignupResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def signup(
    registration: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new account.

    The account stays disabled until the emailed link is visited. If the
    email cannot be handed off the account is still created.
    """
    try:
        await auth_service.signup(
            db,
            username=registration.username,
            email=registration.email,
            password=registration.password,
        )
    except DeliveryError as e:
        logger.warning("Account created but verification email not dispatched", error=e.message)
        return SignupResponse(message="User Registration Successful", verification_email_sent=False)

    return SignupResponse(message="User Registration Successful")


@router.get(
    "/accountVerification/{token}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def verify_account(
    token: str,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Enable the account owning ``token``."""
    await auth_service.verify_account(db, token)
    return MessageResponse(message="Account Activated Successfully")


@router.post(
    "/login",
    response_model=AuthenticationResponse,
    responses={401: {"model": ErrorResponse}},
)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Exchange username and password for a session token."""
    result = await auth_service.login(db, credentials.username, credentials.password)
    return AuthenticationResponse(
        authentication_token=result.authentication_token,
        username=result.username,
        expires_at=result.expires_at,
    )


@router.post("/resendVerification", response_model=MessageResponse)
async def resend_verification(
    payload: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Send a new verification link to a pending account.

    Always answers the same way, whether or not the address is registered.
    """
    try:
        await auth_service.resend_verification(db, payload.email)
    except DeliveryError as e:
        logger.warning("Verification resend not dispatched", error=e.message)

    return MessageResponse(message="If the account is pending verification, a new link has been sent")
