"""
FastAPI application factory for the authentication service.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog
import uvicorn

from .api.auth import router as auth_router
from .api.users import router as users_router
from .container.container import Container, build_container
from .core.config import Settings, get_settings
from .core.database import check_connection, create_tables
from .core.exceptions import AuthServiceError, TokenValidationError
from .core.logging_config import configure_logging
from .core.middleware import (
    ErrorHandlingMiddleware,
    RequestTrackingMiddleware,
    SecurityHeadersMiddleware,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.
    Starts the mail workers and releases the connection pool on exit.
    """
    container: Container = app.state.container
    settings = container.settings
    logger.info("Starting auth service", version=settings.VERSION, environment=settings.ENVIRONMENT)

    if settings.DATABASE_CREATE_TABLES:
        await create_tables(container.engine)

    await container.startup()
    try:
        yield
    finally:
        logger.info("Shutting down auth service")
        await container.shutdown()
        logger.info("Auth service shutdown complete")


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


async def auth_service_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    """Map a core error to its status code and public message."""
    logger.info(
        "Request rejected",
        error_code=exc.error_code,
        status_code=int(exc.status_code),
        reason=exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, TokenValidationError) else None
    return JSONResponse(
        status_code=int(exc.status_code),
        content={**exc.to_dict(), "request_id": _request_id(request)},
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body validation errors as plain 400s."""
    errors = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.warning("Validation error", errors=errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request",
            "error_code": "VALIDATION_ERROR",
            "errors": errors,
            "request_id": _request_id(request),
        },
    )


def create_app(settings: Optional[Settings] = None, container: Optional[Container] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; loaded from the environment when omitted
        container: Pre-built service graph; assembled from ``settings`` when omitted

    Returns:
        Configured FastAPI app with the container on ``app.state``
    """
    if settings is None:
        settings = container.settings if container is not None else get_settings()
    configure_logging(settings)
    container = container or build_container(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Account signup, email verification and login",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.container = container

    # Last added runs first: tracking binds the request id before errors are handled.
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestTrackingMiddleware)

    app.add_exception_handler(AuthServiceError, auth_service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health", tags=["health"])
    async def health_check():
        """Liveness check."""
        return {"status": "healthy", "service": settings.APP_NAME, "version": settings.VERSION}

    @app.get("/ready", tags=["health"])
    async def readiness_check():
        """Readiness check against the database."""
        database_ok = await check_connection(container.engine)
        content = {
            "status": "ready" if database_ok else "not_ready",
            "checks": {"database": database_ok},
        }
        if not database_ok:
            return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=content)
        return content

    app.include_router(auth_router, prefix=settings.API_PREFIX)
    app.include_router(users_router, prefix=settings.API_PREFIX)

    return app


def run() -> None:
    """Run the server with settings from the environment."""
    settings = get_settings()
    uvicorn.run(
        "auth_service.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8080,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
        access_log=False,
    )


if __name__ == "__main__":
    run()
