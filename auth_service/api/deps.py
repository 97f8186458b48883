"""
Dependency injection for FastAPI endpoints.

The authenticated identity is resolved from the bearer token on every
request and handed to the handler as an explicit ``AuthenticatedUser``
value; nothing is stashed in thread- or request-global state.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from ..container.container import Container
from ..core.exceptions import MalformedError, TokenValidationError
from ..services.auth_service import AuthService

logger = structlog.get_logger()
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    username: str
    token_expires_at: datetime


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_auth_service(container: Container = Depends(get_container)) -> AuthService:
    return container.auth_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: Container = Depends(get_container),
) -> AuthenticatedUser:
    """
    Validate the session token presented by the caller.

    Returns:
        The identity encoded in the token

    Raises:
        TokenValidationError: Missing, malformed, forged or expired token
    """
    if credentials is None or not credentials.credentials:
        raise MalformedError("missing bearer token")

    try:
        claims = container.token_signer.validate(credentials.credentials)
    except TokenValidationError as e:
        logger.info("Session token rejected", reason=type(e).__name__)
        raise

    return AuthenticatedUser(username=claims.subject, token_expires_at=claims.expires_at)
