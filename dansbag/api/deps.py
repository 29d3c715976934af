"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from dansbag.services.validation import ValidationService


def get_validation_service(request: Request) -> ValidationService:
    """Get the validation service created at application startup.

    Raises:
        HTTPException: 503 if the service is not initialised
    """
    service = getattr(request.app.state, "validation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Validation service is not ready",
        )
    return service


def get_profile_info(request: Request) -> dict:
    """Get metadata of the profile loaded at startup."""
    info = getattr(request.app.state, "profile_info", None)
    if info is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No profile loaded",
        )
    return info


ValidationServiceDep = Annotated[ValidationService, Depends(get_validation_service)]
ProfileInfoDep = Annotated[dict, Depends(get_profile_info)]
