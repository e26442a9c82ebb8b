from typing import Dict, Iterable, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_messaging.models.profile import Profile


class ProfileDirectory:
    """Lookups against the profile service's table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile_by_id(self, profile_id: str) -> Optional[Profile]:
        return await self.db.get(Profile, profile_id)

    async def get_profiles(self, profile_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = set(profile_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Profile).where(Profile.id.in_(sorted(ids))))
        return {p.id: p for p in result.scalars().all()}
