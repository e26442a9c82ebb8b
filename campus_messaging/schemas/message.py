from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal
from datetime import datetime, timezone

from campus_messaging.schemas.profile import ProfileDto

INSERT = "INSERT"
UPDATE = "UPDATE"


class MessageRecord(BaseModel):
    """Wire and storage shape of a message."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    sender_id: str
    recipient_id: str
    content: str
    read: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class SendMessageRequest(BaseModel):
    recipient_id: str
    content: str


class MarkReadRequest(BaseModel):
    message_ids: List[str] = Field(default_factory=list)


class MarkReadResponse(BaseModel):
    updated: List[str]


class LiveEvent(BaseModel):
    event: Literal["INSERT", "UPDATE"]
    record: MessageRecord


class ConversationSummaryDto(BaseModel):
    other_user_id: str
    profile: ProfileDto
    last_message: MessageRecord
    preview: str
    unread_count: int = 0


class ThreadDto(BaseModel):
    other_user_id: str
    profile: ProfileDto
    messages: List[MessageRecord]
