"""Bag validation endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from dansbag.api.deps import ValidationServiceDep
from dansbag.core.config import settings
from dansbag.rules.models import DepositType
from dansbag.schemas.validation import ValidateCommand, ValidationResult
from dansbag.services.validation import BagNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ValidationResult,
    status_code=status.HTTP_200_OK,
    summary="Validate a bag on disk",
    description="Validates the bag at `bag_location` against the loaded profile",
)
async def validate_bag(
    command: ValidateCommand,
    service: ValidationServiceDep,
) -> ValidationResult:
    """Validate a bag that is reachable on the server's filesystem.

    Raises:
        HTTPException: 400 if the bag cannot be found or read
    """
    try:
        return await run_in_threadpool(
            service.validate_bag, command.bag_location, command.package_type
        )
    except BagNotFoundError as e:
        logger.warning(f"Bag not found: {e}", extra={"bag": command.bag_location})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "/zip",
    response_model=ValidationResult,
    status_code=status.HTTP_200_OK,
    summary="Validate a zipped bag",
    description="Request body is the zip archive itself (Content-Type: application/zip)",
)
async def validate_zip(
    request: Request,
    service: ValidationServiceDep,
    package_type: DepositType = Query(default=DepositType.DEPOSIT),
) -> ValidationResult:
    """Validate a bag uploaded as a zip archive.

    The declared Content-Length is checked before anything is read; the
    body is then read in chunks and rejected as soon as it exceeds the
    upload limit.

    Raises:
        HTTPException: 400 for an empty or unusable archive, 413 if too large
    """
    too_large = HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"Upload exceeds {settings.max_upload_bytes} bytes",
    )

    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            declared = int(content_length)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Content-Length header"
            )
        if declared > settings.max_upload_bytes:
            raise too_large

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > settings.max_upload_bytes:
            raise too_large
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body is empty")

    try:
        return await run_in_threadpool(service.validate_zip, bytes(body), package_type)
    except BagNotFoundError as e:
        logger.warning(f"Unusable zip upload: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
