import asyncio
import logging
from typing import List, Optional, Set

from campus_messaging.client.api import MessagingApiClient
from campus_messaging.client.state import MessageState
from campus_messaging.errors import MessagingError
from campus_messaging.schemas.message import MessageRecord
from campus_messaging.schemas.profile import ProfileDto
from campus_messaging.services.aggregator import is_unread_for, thread_for
from campus_messaging.services.read_state import ReadStateController
from campus_messaging.validation import validate_content

logger = logging.getLogger(__name__)


class ConversationView:
    """An open thread with one other user, plus its composer.

    After `close()` the view stops reacting to state changes, and results of
    sends or read flips still in flight are dropped instead of applied.
    """

    def __init__(
        self,
        api: MessagingApiClient,
        state: MessageState,
        viewer_id: str,
        other_user_id: str,
        profile: ProfileDto,
    ):
        self.api = api
        self.state = state
        self.viewer_id = viewer_id
        self.other_user_id = other_user_id
        self.profile = profile
        self.sending = False
        self._read_state = ReadStateController(self._mark_read)
        self._remove_listener = None
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def messages(self) -> List[MessageRecord]:
        """Oldest first."""
        return thread_for(self.state.all(), self.viewer_id, self.other_user_id)

    async def open(self) -> "ConversationView":
        self._remove_listener = self.state.add_listener(self._on_state_change)
        await self.mark_visible_read()
        return self

    async def mark_visible_read(self) -> Set[str]:
        if self._closed:
            return set()
        return await self._read_state.thread_opened(self.viewer_id, self.other_user_id, self.messages)

    async def _mark_read(self, ids: Set[str]) -> None:
        updated = await self.api.mark_read(ids)
        if self._closed:
            return
        for message_id in updated:
            record = self.state.get(message_id)
            if record is not None and not record.read:
                self.state.upsert(record.model_copy(update={"read": True}))

    def _on_state_change(self, changed: List[MessageRecord]) -> None:
        if self._closed:
            return
        if any(m.sender_id == self.other_user_id and is_unread_for(m, self.viewer_id) for m in changed):
            task = asyncio.get_running_loop().create_task(self.mark_visible_read())
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if isinstance(exc, MessagingError):
            logger.warning(f"Could not mark messages read: {exc.detail}")
        elif exc is not None:
            logger.error(f"Marking messages read failed: {exc!r}")

    async def submit(self, text: str) -> Optional[MessageRecord]:
        """Send `text` to the other user.

        Blank text raises ValidationError without touching the network. The
        confirmed record is merged into local state, so it shows up even if
        the live push is slow. Returns None if the view closed meanwhile.
        """
        validate_content(text)
        self.sending = True
        try:
            record = await self.api.send_message(self.other_user_id, text)
        finally:
            self.sending = False
        if self._closed:
            return None
        self.state.upsert(record)
        return record

    async def settle(self) -> None:
        """Wait for background read flips started by incoming messages."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        self._closed = True
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    async def __aenter__(self) -> "ConversationView":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
