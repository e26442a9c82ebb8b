import logging
from typing import Callable, Dict, Iterable, List, Optional

from campus_messaging.schemas.message import LiveEvent, MessageRecord

logger = logging.getLogger(__name__)

Listener = Callable[[List[MessageRecord]], None]


def merge_records(current: Optional[MessageRecord], incoming: MessageRecord) -> MessageRecord:
    """Combine two versions of the same message.

    The later `updated_at` wins, except that `read` never goes back to False,
    so a late duplicate INSERT cannot undo a read flip.
    """
    if current is None:
        return incoming
    newer = incoming if incoming.updated_at >= current.updated_at else current
    read = current.read or incoming.read
    if newer.read != read:
        newer = newer.model_copy(update={"read": read})
    return newer


class MessageState:
    """Client-side message set keyed by id.

    Every change bumps `version`, which the conversation list uses as its
    memoization key.
    """

    def __init__(self):
        self._messages: Dict[str, MessageRecord] = {}
        self._listeners: Dict[int, Listener] = {}
        self._next_listener = 0
        self.version = 0

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._messages

    def get(self, message_id: str) -> Optional[MessageRecord]:
        return self._messages.get(message_id)

    def all(self) -> List[MessageRecord]:
        return list(self._messages.values())

    def _merge(self, record: MessageRecord) -> bool:
        current = self._messages.get(record.id)
        merged = merge_records(current, record)
        if merged == current:
            return False
        self._messages[record.id] = merged
        return True

    def upsert(self, record: MessageRecord) -> bool:
        """Insert or replace by id. Returns False when nothing changed."""
        if not self._merge(record):
            return False
        self.version += 1
        self._notify([self._messages[record.id]])
        return True

    def replace_all(self, records: Iterable[MessageRecord]) -> None:
        """Reconcile with a full fetch from the store."""
        changed = [self._messages[r.id] for r in records if self._merge(r)]
        self.version += 1
        self._notify(changed)

    def apply_event(self, event: LiveEvent) -> bool:
        return self.upsert(event.record)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Call the returned function to remove it."""
        key = self._next_listener
        self._next_listener += 1
        self._listeners[key] = listener

        def remove() -> None:
            self._listeners.pop(key, None)

        return remove

    def _notify(self, changed: List[MessageRecord]) -> None:
        if not changed:
            return
        for key, listener in list(self._listeners.items()):
            # a listener removed by an earlier one must not fire
            if key not in self._listeners:
                continue
            try:
                listener(changed)
            except Exception:
                logger.exception("Message state listener failed")
