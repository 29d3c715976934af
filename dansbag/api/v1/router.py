"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from dansbag.api.v1 import health, profile, validate

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Validation
api_router.include_router(
    validate.router,
    prefix="/validate",
    tags=["validate"],
)

api_router.include_router(
    profile.router,
    prefix="/profile",
    tags=["profile"],
)
