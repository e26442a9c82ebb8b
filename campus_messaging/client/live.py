"""
Client side of the live update channel.

The feed subscribes first, then re-fetches the full message list, then
applies pushed events as upserts by id. Every reconnect repeats the fetch,
so anything pushed while the connection was down is picked up from the
store instead of being lost.
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Awaitable, Callable, Iterable, Optional

from pydantic import ValidationError as SchemaError
from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from campus_messaging.client.state import MessageState
from campus_messaging.errors import MessagingError, TransportError
from campus_messaging.schemas.message import LiveEvent, MessageRecord

logger = logging.getLogger(__name__)

Connector = Callable[[], AsyncContextManager[AsyncIterator[dict]]]
EventCallback = Callable[[LiveEvent, bool], None]


async def _frames(ws) -> AsyncIterator[dict]:
    async for raw in ws:
        try:
            event = json.loads(raw)
        except ValueError:
            event = None
        if not isinstance(event, dict):
            logger.warning(f"Ignoring undecodable live frame: {raw!r}")
            continue
        yield event


@asynccontextmanager
async def websocket_events(url: str, token: str):
    """Open the live WebSocket and yield its decoded events."""
    try:
        async with connect(url, additional_headers={"Authorization": f"Bearer {token}"}) as ws:
            yield _frames(ws)
    except (OSError, WebSocketException) as e:
        raise TransportError(f"Live channel failed: {e}") from e


def websocket_connector(url: str, token: str) -> Connector:
    return lambda: websocket_events(url, token)


class LiveFeed:
    def __init__(
        self,
        connect: Connector,
        state: MessageState,
        reconcile: Callable[[], Awaitable[Iterable[MessageRecord]]],
        on_event: Optional[EventCallback] = None,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
    ):
        self._connect = connect
        self.state = state
        self._reconcile = reconcile
        self._on_event = on_event
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.connected = False
        self.reconnects = 0
        self._closed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
            self._task.add_done_callback(self._run_done)
        return self._task

    def _run_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Live feed stopped unexpectedly", exc_info=exc)

    def handle(self, raw: dict) -> Optional[LiveEvent]:
        """Merge one pushed event into local state."""
        if self._closed or raw.get("event") == "PONG":
            return None
        try:
            event = LiveEvent.model_validate(raw)
        except SchemaError:
            logger.warning(f"Ignoring malformed live event: {raw!r}")
            return None

        changed = self.state.apply_event(event)
        if self._on_event is not None:
            self._on_event(event, changed)
        return event

    async def _session(self) -> None:
        async with self._connect() as events:
            records = await self._reconcile()
            if self._closed:
                return
            self.state.replace_all(records)
            self.connected = True
            async for raw in events:
                if self._closed:
                    return
                self.handle(raw)

    async def run(self) -> None:
        delay = self.retry_delay
        while not self._closed:
            try:
                await self._session()
                delay = self.retry_delay
                wait = delay
                if not self._closed:
                    logger.info("Live channel closed by server; reconnecting")
            except TransportError as e:
                wait = delay
                logger.warning(f"Live channel dropped: {e.detail}; retrying in {wait:.1f}s")
                delay = min(delay * 2, self.max_retry_delay)
            except MessagingError as e:
                # reconcile rejected by the server, e.g. an expired session
                wait = delay
                logger.error(f"Live channel reconcile failed: {e.detail}; retrying in {wait:.1f}s")
                delay = min(delay * 2, self.max_retry_delay)
            finally:
                self.connected = False
            if self._closed:
                break
            self.reconnects += 1
            await asyncio.sleep(wait)

    def close(self) -> None:
        """Stop delivery. No callback runs after this returns."""
        self._closed = True
        self.connected = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
