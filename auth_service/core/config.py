"""
Auth service configuration.

All sensitive values are provided via environment variables (or a ``.env``
file). The service fails fast if required security settings are missing.
"""
from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

logger = structlog.get_logger()

WEAK_SECRET_MARKERS = ("your-secret-key", "change-me", "changeme", "secret", "password", "12345")


class Settings(BaseSettings):
    """
    Auth Service Configuration

    ``SECRET_KEY`` and ``DATABASE_URL`` are required and have no defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        validate_assignment=True,
    )

    # Application settings
    APP_NAME: str = "Reddit Auth Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: Literal["development", "staging", "production"] = "production"
    API_PREFIX: str = "/api"

    # Session token signing - REQUIRED
    SECRET_KEY: str = Field(..., min_length=1)
    ALGORITHM: Literal["HS256", "HS384", "HS512"] = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=15, ge=1, le=1440)

    # Verification tokens
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = Field(default=24, ge=1, le=720)
    VERIFICATION_TOKEN_PURGE_INTERVAL_SECONDS: float = Field(default=3600.0, ge=0)  # 0 disables the janitor

    # Password hashing
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Database - REQUIRED
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = Field(default=10, ge=1, le=200)
    DATABASE_MAX_OVERFLOW: int = Field(default=20, ge=0, le=200)
    DATABASE_POOL_TIMEOUT: int = Field(default=30, ge=1, le=120)
    DATABASE_ECHO: bool = False
    DATABASE_CREATE_TABLES: bool = False  # create_all on startup; migrations own the schema otherwise

    # Links embedded in verification emails
    BASE_URL: str = "http://localhost:8080"

    # Mail delivery
    MAIL_BACKEND: Literal["smtp", "console"] = "smtp"
    MAIL_DELIVERY_MODE: Literal["background", "inline"] = "background"
    MAIL_WORKER_COUNT: int = Field(default=2, ge=1, le=32)
    MAIL_QUEUE_SIZE: int = Field(default=1000, ge=1)
    MAIL_SHUTDOWN_TIMEOUT_SECONDS: float = Field(default=10.0, ge=0)
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    EMAILS_FROM_EMAIL: str = "no-reply@localhost"
    EMAILS_FROM_NAME: str = "Reddit Clone"

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_JSON: bool = True

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Reject blank signing secrets."""
        if not v.strip():
            raise ValueError("SECRET_KEY must not be blank")
        return v

    @field_validator("BASE_URL")
    @classmethod
    def strip_base_url(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def verification_url_prefix(self) -> str:
        return f"{self.BASE_URL}{self.API_PREFIX}/auth/accountVerification/"


def validate_required_settings(settings: Settings) -> None:
    """
    Validate that security-critical settings are properly configured.
    Fail fast if the configuration is unsafe for the current environment.
    """
    errors = []

    if settings.is_production:
        if settings.DEBUG:
            errors.append("DEBUG must be False in production")

        if len(settings.SECRET_KEY) < 32:
            errors.append("SECRET_KEY must be at least 32 characters in production")

        lowered = settings.SECRET_KEY.lower()
        if any(marker in lowered for marker in WEAK_SECRET_MARKERS):
            errors.append("SECRET_KEY contains weak or default values")

        if not settings.BASE_URL.startswith("https://"):
            errors.append("BASE_URL must use https in production")

        if settings.MAIL_BACKEND != "smtp":
            errors.append("MAIL_BACKEND must be smtp in production")

    if settings.MAIL_BACKEND == "smtp" and not settings.SMTP_HOST:
        errors.append("SMTP_HOST is required when MAIL_BACKEND is smtp")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error("Configuration validation failed", errors=errors)
        raise ValueError(error_msg)

    logger.info(
        "Configuration validated successfully",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
        mail_backend=settings.MAIL_BACKEND,
        mail_delivery_mode=settings.MAIL_DELIVERY_MODE,
        access_token_expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Raises if required environment variables are missing or invalid.
    """
    try:
        settings = Settings()
    except ValidationError as e:
        logger.error(
            "Failed to load settings",
            fields=[".".join(str(part) for part in error.get("loc", ())) for error in e.errors()],
        )
        raise
    validate_required_settings(settings)
    return settings
