from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
import uuid
from campus_messaging.database import Base
from campus_messaging.models.message import utcnow


class Profile(Base):
    """Public profile owned by the campus profile service. Read-only here."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(String(32), nullable=True)  # student / professor / alumni
    profile_picture = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    messages_sent = relationship("Message", foreign_keys="Message.sender_id", viewonly=True)
    messages_received = relationship("Message", foreign_keys="Message.recipient_id", viewonly=True)
