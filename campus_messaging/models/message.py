from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import validates
import uuid
from datetime import datetime, timezone
from campus_messaging.database import Base


def utcnow() -> datetime:
    # Stored naive, always UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Message(Base):
    """Direct message between exactly two profiles."""
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sender_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    recipient_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("sender_id <> recipient_id", name="ck_messages_not_self"),
        Index("ix_messages_sender_created", "sender_id", "created_at"),
        Index("ix_messages_recipient_read", "recipient_id", "read"),
    )

    @validates("read")
    def _validate_read(self, key, value):
        if self.read and not value:
            raise ValueError("A read message cannot become unread")
        return value

    def __repr__(self):
        return f"<Message(id={self.id}, from={self.sender_id}, to={self.recipient_id})>"
