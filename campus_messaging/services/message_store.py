"""
Message Store: the only code path that writes messages.

Every operation takes the caller's identity explicitly and checks it against
the participants it touches.
"""
import logging
from typing import Callable, Iterable, List, Optional
from datetime import datetime

from sqlalchemy import select, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_messaging.config import get_settings
from campus_messaging.errors import AuthError, NotFoundError, TransportError
from campus_messaging.models.message import Message, utcnow
from campus_messaging.models.profile import Profile
from campus_messaging.schemas.message import INSERT, UPDATE, LiveEvent, MessageRecord
from campus_messaging.validation import validate_content, validate_id, validate_participants
from campus_messaging.ws import LiveUpdateChannel

logger = logging.getLogger(__name__)


def live_event(kind: str, message: Message) -> dict:
    return LiveEvent(event=kind, record=MessageRecord.model_validate(message)).model_dump(mode="json")


class MessageStore:
    def __init__(
        self,
        db: AsyncSession,
        caller_id: str,
        channel: Optional[LiveUpdateChannel] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.caller_id = caller_id
        self.channel = channel
        self.clock = clock

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to {action} for {self.caller_id}: {e}")
            raise TransportError(f"Could not {action}") from e

    async def _publish(self, kind: str, message: Message) -> None:
        if self.channel is None:
            return
        await self.channel.publish(live_event(kind, message))

    async def send(self, sender_id: str, recipient_id: str, content: str) -> Message:
        validate_participants(sender_id, recipient_id)
        if sender_id != self.caller_id:
            raise AuthError("Cannot send messages as another user")
        validate_content(content, get_settings().max_message_length)

        recipient = await self.db.get(Profile, recipient_id)
        if recipient is None:
            raise NotFoundError("User not found")

        now = self.clock()
        msg = Message(
            sender_id=sender_id,
            recipient_id=recipient_id,
            content=content,
            read=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(msg)
        await self._commit("send message")
        await self.db.refresh(msg)

        logger.info(f"Message {msg.id} sent from {sender_id} to {recipient_id}")
        await self._publish(INSERT, msg)
        return msg

    async def list_for_user(self, user_id: str) -> List[Message]:
        validate_id(user_id, "user_id")
        if user_id != self.caller_id:
            raise AuthError("Cannot list another user's messages")

        stmt = select(Message).where(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(self, message_ids: Iterable[str]) -> List[Message]:
        """Flip unread messages addressed to the caller. Other ids are ignored."""
        ids = {validate_id(message_id, "message id") for message_id in message_ids}
        if not ids:
            return []

        stmt = select(Message.id).where(
            Message.id.in_(sorted(ids)),
            Message.recipient_id == self.caller_id,
            Message.read.is_(False),
        )
        result = await self.db.execute(stmt)
        to_flip = set(result.scalars().all())

        ignored = len(ids) - len(to_flip)
        if ignored:
            logger.debug(f"mark_read by {self.caller_id}: ignored {ignored} foreign, unknown or already-read id(s)")
        if not to_flip:
            return []

        # recipient/read conditions repeated so a concurrent flip is a no-op
        stmt = (
            update(Message)
            .where(
                Message.id.in_(sorted(to_flip)),
                Message.recipient_id == self.caller_id,
                Message.read.is_(False),
            )
            .values(read=True, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        await self._commit("mark messages read")

        result = await self.db.execute(
            select(Message).where(Message.id.in_(sorted(to_flip))).execution_options(populate_existing=True)
        )
        flipped = list(result.scalars().all())

        logger.info(f"{len(flipped)} message(s) marked read by {self.caller_id}")
        for msg in flipped:
            await self._publish(UPDATE, msg)
        return flipped
