"""
Authentication-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..core.security import MAX_PASSWORD_BYTES, password_too_long


class RegisterRequest(BaseModel):
    """Signup request schema."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "alice",
                "email": "alice@example.com",
                "password": "pw123",
            }
        },
    )

    username: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr = Field(..., description="Address the verification link is sent to")
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        """Reject passwords longer than bcrypt's input limit."""
        if password_too_long(v):
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class SignupResponse(BaseModel):
    message: str
    verification_email_sent: bool = True


class LoginRequest(BaseModel):
    """Login request schema."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "alice",
                "password": "pw123",
            }
        }
    )

    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=128)


class AuthenticationResponse(BaseModel):
    """Login response schema."""

    authentication_token: str = Field(..., description="Signed session token")
    username: str
    token_type: str = "bearer"
    expires_at: datetime = Field(..., description="Session token expiry (UTC)")


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    message: str


class CurrentUserResponse(BaseModel):
    username: str
    token_expires_at: datetime


class ErrorResponse(BaseModel):
    """Error response schema."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "detail": "Invalid credentials",
                "error_code": "INVALID_CREDENTIALS",
            }
        }
    )

    detail: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    request_id: Optional[str] = None
