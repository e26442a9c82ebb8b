from typing import Any, Dict, Optional, Set
import asyncio
import json
import logging
import uuid

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class Subscription:
    """One live session's inbox. Events queue here until the session reads them."""

    def __init__(self, channel: "LiveUpdateChannel", user_id: str, maxsize: int):
        self.channel = channel
        self.user_id = user_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.stale = False  # dropped because the reader fell behind

    def deliver(self, event: dict) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Live subscription for {self.user_id} fell behind; dropping it")
            self.stale = True
            self.close()
            return False
        return True

    async def get(self) -> Optional[dict]:
        """Next event, or None once the subscription is closed."""
        if self.closed:
            return None
        event = await self.queue.get()
        if event is None or self.closed:
            return None
        return event

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.channel.unsubscribe(self)
        # wake a reader blocked in get()
        while True:
            try:
                self.queue.put_nowait(None)
                break
            except asyncio.QueueFull:
                self.queue.get_nowait()

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class LiveUpdateChannel:
    def __init__(self, queue_size: int = 256):
        # user_id -> set of Subscription
        self.subscriptions: Dict[str, Set[Subscription]] = {}
        self.queue_size = queue_size
        self.instance_id = uuid.uuid4().hex
        self.redis: Optional[Any] = None
        self.redis_channel = "messages:events"
        self._listener: Optional[asyncio.Task] = None

    def subscribe(self, user_id: str) -> Subscription:
        sub = Subscription(self, user_id, self.queue_size)
        self.subscriptions.setdefault(user_id, set()).add(sub)
        logger.info(f"Live subscription opened for {user_id}")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self.subscriptions.get(sub.user_id)
        if not subs:
            return
        subs.discard(sub)
        if len(subs) == 0:
            self.subscriptions.pop(sub.user_id, None)
        logger.info(f"Live subscription closed for {sub.user_id}")

    def subscriber_count(self, user_id: str) -> int:
        return len(self.subscriptions.get(user_id, ()))

    def dispatch(self, event: dict) -> int:
        """Deliver an event to every local session of both participants."""
        record = event.get("record") or {}
        targets = {record.get("sender_id"), record.get("recipient_id")}
        delivered = 0
        for user_id in targets:
            if not user_id:
                continue
            for sub in list(self.subscriptions.get(user_id, ())):
                if sub.deliver(event):
                    delivered += 1
        return delivered

    async def publish(self, event: dict) -> int:
        delivered = self.dispatch(event)
        if self.redis is None:
            return delivered
        try:
            await self.redis.publish(
                self.redis_channel,
                json.dumps({"origin": self.instance_id, "event": event}),
            )
        except (RedisError, OSError):
            # Local delivery already happened; other instances reconcile on reconnect
            logger.exception("Failed to publish live event to redis")
        return delivered

    def _handle_pubsub_message(self, data) -> None:
        envelope = json.loads(data)
        if envelope.get("origin") == self.instance_id:
            return
        event = envelope.get("event")
        if event:
            self.dispatch(event)

    async def _redis_listener(self) -> None:
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.redis_channel)
        try:
            async for item in pubsub.listen():
                if item is None or item["type"] != "message":
                    continue
                try:
                    self._handle_pubsub_message(item["data"])
                except (ValueError, KeyError):
                    logger.exception("Error processing pubsub message")
        finally:
            await pubsub.unsubscribe(self.redis_channel)

    def init_redis(self, redis_url: str, redis_channel: str) -> None:
        """Connect to Redis and start the fan-out listener if a URL is configured."""
        if self.redis is not None:
            return
        if not redis_url:
            logger.info("REDIS_URL not configured, running without Redis pub/sub")
            return
        self.redis_channel = redis_channel
        self.redis = aioredis.from_url(redis_url)
        self._listener = asyncio.get_running_loop().create_task(self._redis_listener())
        logger.info(f"Redis initialized: {redis_url}")

    async def close_redis(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    def close_all(self) -> None:
        for subs in list(self.subscriptions.values()):
            for sub in list(subs):
                sub.close()


channel = LiveUpdateChannel()


def get_channel() -> LiveUpdateChannel:
    return channel
