"""
Typed error taxonomy for the authentication core.

Each core operation fails with exactly one of these. The HTTP layer maps
each class to a single status code and a generic public message; the
internal ``message`` only ever reaches the logs.
"""
from http import HTTPStatus
from typing import Any, Dict, Optional


class AuthServiceError(Exception):
    """Base class for all auth service errors."""

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code: str = "AUTH_ERROR"
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message or self.public_message
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.public_message, "error_code": self.error_code}


class ValidationError(AuthServiceError):
    status_code = HTTPStatus.BAD_REQUEST
    error_code = "VALIDATION_ERROR"
    public_message = "Invalid request"


class ConflictError(AuthServiceError):
    status_code = HTTPStatus.CONFLICT
    error_code = "CONFLICT"
    public_message = "Conflict"


class AccountExistsError(ConflictError):
    """Username or email taken. The response never says which."""

    public_message = "Username or email is already registered"


class TokenAlreadyUsedError(ConflictError):
    public_message = "Verification token has already been used"


class NotFoundError(AuthServiceError):
    status_code = HTTPStatus.NOT_FOUND
    error_code = "NOT_FOUND"
    public_message = "Invalid or expired token"


class AuthenticationError(AuthServiceError):
    """Bad username, bad password or disabled account; never says which."""

    status_code = HTTPStatus.UNAUTHORIZED
    error_code = "INVALID_CREDENTIALS"
    public_message = "Invalid credentials"


class TokenValidationError(AuthServiceError):
    """Session token rejected. Subclasses carry the reason for logging only."""

    status_code = HTTPStatus.UNAUTHORIZED
    error_code = "INVALID_TOKEN"
    public_message = "Invalid or expired token"


class ExpiredError(TokenValidationError):
    pass


class InvalidSignatureError(TokenValidationError):
    pass


class MalformedError(TokenValidationError):
    pass


class DeliveryError(AuthServiceError):
    """Notification transport failure."""

    status_code = HTTPStatus.BAD_GATEWAY
    error_code = "DELIVERY_FAILED"
    public_message = "Notification could not be delivered"
