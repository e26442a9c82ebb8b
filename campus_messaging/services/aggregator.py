"""
Conversation aggregation.

Turns a flat message list into per-counterpart conversation summaries. All
functions are pure: the current user and the resolved profiles are passed in
explicitly, nothing is read from ambient state.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

OWN_MESSAGE_PREFIX = "You: "


@dataclass(frozen=True)
class ConversationSummary:
    other_user_id: str
    last_message: Any
    unread_count: int
    profile: Any


def other_party(message, current_user_id: str) -> Optional[str]:
    """Counterpart of `current_user_id` in `message`, or None if they are not a participant."""
    if message.sender_id == current_user_id:
        return message.recipient_id
    if message.recipient_id == current_user_id:
        return message.sender_id
    return None


def message_sort_key(message) -> Tuple:
    # id breaks timestamp ties so equal-time messages never swap places between renders
    return (message.created_at, message.id)


def is_unread_for(message, viewer_id: str) -> bool:
    return message.recipient_id == viewer_id and not message.read


def group_by_counterpart(messages: Iterable, current_user_id: str) -> Dict[str, List]:
    """Partition messages by other party, each partition newest first."""
    grouped: Dict[str, List] = {}
    for message in messages:
        other_id = other_party(message, current_user_id)
        if other_id is None:
            continue
        grouped.setdefault(other_id, []).append(message)

    for partition in grouped.values():
        partition.sort(key=message_sort_key, reverse=True)
    return grouped


def count_unread(messages: Iterable, current_user_id: str) -> int:
    return sum(1 for m in messages if is_unread_for(m, current_user_id))


def thread_for(messages: Iterable, current_user_id: str, other_user_id: str) -> List:
    """Messages exchanged with `other_user_id`, oldest first."""
    thread = [m for m in messages if other_party(m, current_user_id) == other_user_id]
    thread.sort(key=message_sort_key)
    return thread


def aggregate_conversations(
    messages: Iterable,
    current_user_id: str,
    profiles: Mapping[str, Any],
) -> List[ConversationSummary]:
    """Build the conversation list, most recently active first.

    Conversations whose counterpart has no entry (or a None entry) in
    `profiles` are left out rather than shown without an identity.
    """
    grouped = group_by_counterpart(messages, current_user_id)

    ordered = sorted(
        grouped.items(),
        key=lambda item: (message_sort_key(item[1][0]), item[0]),
        reverse=True,
    )

    summaries = []
    for other_id, partition in ordered:
        profile = profiles.get(other_id)
        if profile is None:
            continue
        summaries.append(
            ConversationSummary(
                other_user_id=other_id,
                last_message=partition[0],
                unread_count=count_unread(partition, current_user_id),
                profile=profile,
            )
        )
    return summaries


def counterpart_ids(messages: Iterable, current_user_id: str) -> set:
    return {
        other_id
        for other_id in (other_party(m, current_user_id) for m in messages)
        if other_id is not None
    }


def preview_text(summary: ConversationSummary, current_user_id: str) -> str:
    message = summary.last_message
    if message.sender_id == current_user_id:
        return OWN_MESSAGE_PREFIX + message.content
    return message.content


class MemoizedAggregator:
    """Caches the last aggregation, keyed on the caller-supplied versions.

    The caller bumps `messages_version` whenever the message set changes and
    `profiles_version` whenever a profile resolves, so unrelated re-renders
    reuse the previous sort.
    """

    def __init__(self, aggregate: Callable[..., List[ConversationSummary]] = aggregate_conversations):
        self._aggregate = aggregate
        self._key: Optional[Tuple[Hashable, ...]] = None
        self._result: List[ConversationSummary] = []
        self.computations = 0

    def summaries(
        self,
        messages: Sequence,
        current_user_id: str,
        profiles: Mapping[str, Any],
        messages_version: Hashable,
        profiles_version: Hashable,
    ) -> List[ConversationSummary]:
        key = (current_user_id, messages_version, profiles_version)
        if key != self._key:
            self._result = self._aggregate(messages, current_user_id, profiles)
            self._key = key
            self.computations += 1
        return list(self._result)

    def invalidate(self) -> None:
        self._key = None
