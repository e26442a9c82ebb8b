from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campus_messaging.database import get_db
from campus_messaging.errors import NotFoundError
from campus_messaging.identity import get_current_user_id
from campus_messaging.schemas.profile import ProfileDto
from campus_messaging.services.profiles import ProfileDirectory

router = APIRouter()


@router.get("/{profile_id}", response_model=ProfileDto)
async def get_profile(
    profile_id: str,
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    profile = await ProfileDirectory(db).get_profile_by_id(profile_id)
    if profile is None:
        raise NotFoundError("User not found")
    return ProfileDto.model_validate(profile)
