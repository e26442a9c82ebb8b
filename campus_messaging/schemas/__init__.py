from campus_messaging.schemas.message import (
    MessageRecord, SendMessageRequest, MarkReadRequest, MarkReadResponse, LiveEvent,
    ConversationSummaryDto, ThreadDto,
)
from campus_messaging.schemas.profile import ProfileDto

__all__ = [
    "MessageRecord", "SendMessageRequest", "MarkReadRequest", "MarkReadResponse", "LiveEvent",
    "ConversationSummaryDto", "ThreadDto",
    "ProfileDto",
]
