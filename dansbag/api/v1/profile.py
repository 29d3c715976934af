"""Loaded profile endpoint."""

from fastapi import APIRouter, status

from dansbag.api.deps import ProfileInfoDep
from dansbag.schemas.validation import ProfileInfo

router = APIRouter()


@router.get(
    "",
    response_model=ProfileInfo,
    status_code=status.HTTP_200_OK,
    summary="Loaded profile",
    description="Identity, version and hash of the profile bags are validated against",
)
async def get_profile(profile_info: ProfileInfoDep) -> ProfileInfo:
    return ProfileInfo(**profile_info)
