"""
Decomposed authentication services.
Each service handles one aspect of the authentication core.
"""
from .authentication_service import AuthenticationService
from .email_verification_service import EmailVerificationService

__all__ = [
    "AuthenticationService",
    "EmailVerificationService",
]
