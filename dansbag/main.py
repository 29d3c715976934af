"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from dansbag.api.v1.router import api_router
from dansbag.core.config import settings
from dansbag.core.logging import setup_logging
from dansbag.rules.loader import ProfileLoader, build_rule_set
from dansbag.rules.validator import ConfigurationError
from dansbag.services.validation import ValidationService

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

SERVICE_NAME = "DANS Bag Validation API"
VERSION = "1.0.0"


def create_validation_service(loader: ProfileLoader, filename: str) -> ValidationService:
    """Load a profile and build the service that validates against it.

    Raises:
        ConfigurationError: If the profile's rules are not consistent
    """
    profile, profile_hash = loader.load(filename)
    rule_set = build_rule_set(profile)
    logger.info(
        f"Loaded profile {rule_set.name} v{rule_set.version} "
        f"({len(rule_set)} rules, hash {profile_hash[:12]})"
    )
    return ValidationService(rule_set)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting {SERVICE_NAME} (env={settings.env})")

    loader = ProfileLoader(settings.profiles_dir)
    try:
        app.state.validation_service = create_validation_service(loader, settings.profile_filename)
    except ConfigurationError:
        logger.critical(f"Profile {settings.profile_filename} is not valid; refusing to start")
        raise
    app.state.profile_info = loader.get_profile_info(settings.profile_filename)

    yield

    # Shutdown
    app.state.validation_service = None
    logger.info(f"Shutting down {SERVICE_NAME}")


# Create FastAPI application
app = FastAPI(
    title=SERVICE_NAME,
    description="Validates bags against the DANS BagIt profile",
    version=VERSION,
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    openapi_url="/openapi.json" if settings.is_dev else None,
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    if settings.is_prod:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


# Include API router
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Service info."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "docs": "/docs" if settings.is_dev else "Disabled in production",
    }
