from typing import Callable
from datetime import datetime
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campus_messaging.database import get_db
from campus_messaging.identity import get_current_user_id
from campus_messaging.models.message import utcnow
from campus_messaging.services.message_store import MessageStore
from campus_messaging.ws import LiveUpdateChannel, get_channel


def get_clock() -> Callable[[], datetime]:
    return utcnow


async def get_store(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    channel: LiveUpdateChannel = Depends(get_channel),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> MessageStore:
    """Message store bound to the authenticated caller."""
    return MessageStore(db, user_id, channel=channel, clock=clock)
