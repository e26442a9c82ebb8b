import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_messaging.database import get_db
from campus_messaging.dependencies import get_store
from campus_messaging.errors import NotFoundError, ValidationError
from campus_messaging.identity import get_current_user_id, websocket_user_id
from campus_messaging.schemas.message import (
    ConversationSummaryDto,
    MarkReadRequest,
    MarkReadResponse,
    MessageRecord,
    SendMessageRequest,
    ThreadDto,
)
from campus_messaging.schemas.profile import ProfileDto
from campus_messaging.services.aggregator import aggregate_conversations, counterpart_ids, preview_text, thread_for
from campus_messaging.services.message_store import MessageStore
from campus_messaging.services.profiles import ProfileDirectory
from campus_messaging.services.read_state import ReadStateController
from campus_messaging.validation import validate_id
from campus_messaging.ws import LiveUpdateChannel, Subscription, get_channel

logger = logging.getLogger(__name__)

router = APIRouter()

POLICY_VIOLATION = 1008
TRY_AGAIN_LATER = 1013


@router.get("", response_model=List[MessageRecord])
async def list_messages(
    user_id: Optional[str] = None,
    current_user_id: str = Depends(get_current_user_id),
    store: MessageStore = Depends(get_store),
):
    messages = await store.list_for_user(user_id or current_user_id)
    return [MessageRecord.model_validate(m) for m in messages]


@router.post("", response_model=MessageRecord, status_code=status.HTTP_201_CREATED)
async def send_message(
    body: SendMessageRequest,
    current_user_id: str = Depends(get_current_user_id),
    store: MessageStore = Depends(get_store),
):
    msg = await store.send(current_user_id, body.recipient_id, body.content)
    return MessageRecord.model_validate(msg)


@router.post("/read", response_model=MarkReadResponse)
async def mark_read(body: MarkReadRequest, store: MessageStore = Depends(get_store)):
    flipped = await store.mark_read(body.message_ids)
    return MarkReadResponse(updated=sorted(m.id for m in flipped))


@router.get("/conversations", response_model=List[ConversationSummaryDto])
async def get_conversations(
    current_user_id: str = Depends(get_current_user_id),
    store: MessageStore = Depends(get_store),
    db: AsyncSession = Depends(get_db),
):
    messages = [MessageRecord.model_validate(m) for m in await store.list_for_user(current_user_id)]
    found = await ProfileDirectory(db).get_profiles(counterpart_ids(messages, current_user_id))
    profiles = {pid: ProfileDto.model_validate(p) for pid, p in found.items()}

    return [
        ConversationSummaryDto(
            other_user_id=s.other_user_id,
            profile=s.profile,
            last_message=s.last_message,
            preview=preview_text(s, current_user_id),
            unread_count=s.unread_count,
        )
        for s in aggregate_conversations(messages, current_user_id, profiles)
    ]


@router.get("/conversations/{other_user_id}", response_model=ThreadDto)
async def open_conversation(
    other_user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    store: MessageStore = Depends(get_store),
    db: AsyncSession = Depends(get_db),
):
    """Open (or start) the thread with another user and mark it read."""
    validate_id(other_user_id, "user id")
    if other_user_id == current_user_id:
        raise ValidationError("Cannot message yourself")

    profile = await ProfileDirectory(db).get_profile_by_id(other_user_id)
    if profile is None:
        raise NotFoundError("User not found")

    messages = [MessageRecord.model_validate(m) for m in await store.list_for_user(current_user_id)]
    thread = thread_for(messages, current_user_id, other_user_id)

    flipped = {}

    async def mark(ids):
        for m in await store.mark_read(ids):
            flipped[m.id] = MessageRecord.model_validate(m)

    await ReadStateController(mark).thread_opened(current_user_id, other_user_id, thread)

    return ThreadDto(
        other_user_id=other_user_id,
        profile=ProfileDto.model_validate(profile),
        messages=[flipped.get(m.id, m) for m in thread],
    )


async def _forward_events(websocket: WebSocket, sub: Subscription) -> None:
    async for event in sub:
        await websocket.send_json(event)


async def _receive_until_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_json({"event": "PONG"})
    except WebSocketDisconnect:
        return


@router.websocket("/ws")
async def live_updates(websocket: WebSocket, channel: LiveUpdateChannel = Depends(get_channel)):
    """Push INSERT/UPDATE events for the authenticated user's messages."""
    await websocket.accept()
    user_id = websocket_user_id(websocket)
    if not user_id:
        await websocket.close(code=POLICY_VIOLATION)
        return

    sub = channel.subscribe(user_id)
    receiver = asyncio.create_task(_receive_until_disconnect(websocket))
    forwarder = asyncio.create_task(_forward_events(websocket, sub))
    try:
        done, _ = await asyncio.wait({receiver, forwarder}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        sub.close()
        receiver.cancel()
        forwarder.cancel()

    for task in done:
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Live connection for {user_id} ended with error: {task.exception()!r}")

    if sub.stale:
        # client reconnects and reconciles
        await websocket.close(code=TRY_AGAIN_LATER)
