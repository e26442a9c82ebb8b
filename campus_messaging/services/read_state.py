import logging
from typing import Any, Awaitable, Callable, Iterable, Set

from campus_messaging.services.aggregator import is_unread_for, thread_for

logger = logging.getLogger(__name__)


def unread_ids_for_viewer(messages: Iterable, viewer_id: str, other_user_id: str) -> Set[str]:
    """Ids in the viewer's thread with `other_user_id` that are addressed to the viewer and unread."""
    return {
        m.id
        for m in thread_for(messages, viewer_id, other_user_id)
        if is_unread_for(m, viewer_id)
    }


class ReadStateController:
    """Flips messages to read when a thread is opened.

    `mark_read` is the store call (server) or API call (client); it receives
    the id set computed from the currently loaded thread.
    """

    def __init__(self, mark_read: Callable[[Set[str]], Awaitable[Any]]):
        self._mark_read = mark_read

    async def thread_opened(self, viewer_id: str, other_user_id: str, loaded_messages: Iterable) -> Set[str]:
        ids = unread_ids_for_viewer(loaded_messages, viewer_id, other_user_id)
        if not ids:
            return ids
        logger.debug(f"Marking {len(ids)} message(s) read for {viewer_id} in thread with {other_user_id}")
        await self._mark_read(ids)
        return ids
