from .auth_service import AuthenticationResult, AuthService

__all__ = ["AuthenticationResult", "AuthService"]
