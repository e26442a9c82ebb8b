import logging
from typing import Callable, List, Optional

from campus_messaging.client.api import MessagingApiClient
from campus_messaging.client.live import Connector, LiveFeed
from campus_messaging.client.profiles import ProfileCache
from campus_messaging.client.state import MessageState
from campus_messaging.client.view import ConversationView
from campus_messaging.errors import MessagingError, NotFoundError, ValidationError
from campus_messaging.schemas.message import INSERT, LiveEvent, MessageRecord
from campus_messaging.services.aggregator import (
    ConversationSummary,
    MemoizedAggregator,
    counterpart_ids,
    is_unread_for,
)
from campus_messaging.validation import validate_id

logger = logging.getLogger(__name__)


class Inbox:
    """The messaging surface for one signed-in user.

    Holds the local message set, keeps it live through `LiveFeed` when a
    connector is given, and hands out conversation views.
    """

    def __init__(
        self,
        api: MessagingApiClient,
        viewer_id: str,
        connect: Optional[Connector] = None,
        on_new_message: Optional[Callable[[MessageRecord], None]] = None,
    ):
        self.api = api
        self.viewer_id = viewer_id
        self.state = MessageState()
        self.profiles = ProfileCache(api.get_profile)
        self.loading = False
        self.current_view: Optional[ConversationView] = None
        self._on_new_message = on_new_message
        self._aggregator = MemoizedAggregator()
        self.feed = LiveFeed(connect, self.state, self._fetch, on_event=self._on_live_event) if connect else None

    async def _fetch(self) -> List[MessageRecord]:
        return await self.api.list_messages(self.viewer_id)

    async def load(self) -> None:
        self.loading = True
        try:
            self.state.replace_all(await self._fetch())
        finally:
            self.loading = False

    def start_live(self):
        if self.feed is None:
            raise RuntimeError("Inbox was created without a live connector")
        return self.feed.start()

    def _on_live_event(self, event: LiveEvent, changed: bool) -> None:
        record = event.record
        if event.event == INSERT and changed and record.recipient_id == self.viewer_id:
            logger.info(f"New message received from {record.sender_id}")
            if self._on_new_message is not None:
                self._on_new_message(record)

    async def conversations(self) -> List[ConversationSummary]:
        """Conversation list, most recently active first."""
        while True:
            version = self.state.version
            messages = self.state.all()
            await self.profiles.resolve_many(counterpart_ids(messages, self.viewer_id))
            # live events may land during the lookup; the memo key must match the snapshot
            if self.state.version == version:
                break
        return self._aggregator.summaries(
            messages,
            self.viewer_id,
            self.profiles.snapshot(),
            messages_version=version,
            profiles_version=self.profiles.version,
        )

    @property
    def unread_total(self) -> int:
        return sum(1 for m in self.state.all() if is_unread_for(m, self.viewer_id))

    async def open_conversation(self, other_user_id: str) -> ConversationView:
        """Open the thread with `other_user_id`, even if no message exists yet.

        Raises NotFoundError("User not found") when the profile does not
        resolve; the currently open view, if any, is left closed.
        """
        validate_id(other_user_id, "user id")
        if other_user_id == self.viewer_id:
            raise ValidationError("Cannot message yourself")

        self.close_conversation()
        profile = await self.profiles.get(other_user_id)
        if profile is None:
            raise NotFoundError("User not found")

        view = ConversationView(self.api, self.state, self.viewer_id, other_user_id, profile)
        try:
            await view.open()
        except MessagingError:
            view.close()
            raise
        self.current_view = view
        return view

    def close_conversation(self) -> None:
        if self.current_view is not None:
            self.current_view.close()
            self.current_view = None

    def close(self) -> None:
        self.close_conversation()
        if self.feed is not None:
            self.feed.close()
