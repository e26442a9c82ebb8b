import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional

from campus_messaging.schemas.profile import ProfileDto

logger = logging.getLogger(__name__)


class ProfileCache:
    """Per-session cache in front of the profile lookup.

    Only resolved profiles are cached; a miss is looked up again next time.
    """

    def __init__(self, lookup: Callable[[str], Awaitable[Optional[ProfileDto]]]):
        self._lookup = lookup
        self._profiles: Dict[str, ProfileDto] = {}
        self._pending: Dict[str, asyncio.Future] = {}
        self.version = 0

    def peek(self, profile_id: str) -> Optional[ProfileDto]:
        return self._profiles.get(profile_id)

    def snapshot(self) -> Dict[str, ProfileDto]:
        return dict(self._profiles)

    async def get(self, profile_id: str) -> Optional[ProfileDto]:
        if profile_id in self._profiles:
            return self._profiles[profile_id]

        # share one lookup between concurrent callers
        pending = self._pending.get(profile_id)
        if pending is None:
            pending = asyncio.ensure_future(self._lookup(profile_id))
            self._pending[profile_id] = pending
        try:
            profile = await asyncio.shield(pending)
        finally:
            if pending.done():
                self._pending.pop(profile_id, None)

        if profile is not None and profile_id not in self._profiles:
            self._profiles[profile_id] = profile
            self.version += 1
        return profile

    async def resolve_many(self, profile_ids: Iterable[str]) -> Dict[str, ProfileDto]:
        missing = [pid for pid in set(profile_ids) if pid not in self._profiles]
        if missing:
            results = await asyncio.gather(*(self.get(pid) for pid in missing), return_exceptions=True)
            for pid, result in zip(missing, results):
                if isinstance(result, Exception):
                    logger.warning(f"Profile lookup for {pid} failed: {result}")
        return self.snapshot()
