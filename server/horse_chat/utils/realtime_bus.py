import asyncio
import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from horse_chat.config import get_settings


logger = logging.getLogger(__name__)

# single channel carrying room emits between instances
ROOM_EVENTS_CHANNEL = "horse_chat:room_events"


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]) -> "NoopSubscription":
        return NoopSubscription()

    async def close(self) -> None:
        return


class NoopSubscription:

    async def run(self) -> None:
        await asyncio.Future()

    async def cancel(self) -> None:
        return


class RedisSubscription:

    def __init__(self, pubsub, channel: str, on_message: Callable[[str], Awaitable[None]]) -> None:
        self._pubsub = pubsub
        self._channel = channel
        self._on_message = on_message
        self._running = True

    async def run(self) -> None:
        while self._running:
            try:
                msg = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except redis.RedisError:
                logger.warning("Relay read failed on %s, retrying", self._channel, exc_info=True)
                await asyncio.sleep(0.5)
                continue
            if msg and msg.get("type") == "message":
                data = msg.get("data")
                if isinstance(data, bytes):
                    data = data.decode("utf-8")
                try:
                    await self._on_message(data)
                except Exception:
                    logger.exception("Relay handler failed for message on %s", self._channel)

    async def cancel(self) -> None:
        self._running = False
        try:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
        except redis.RedisError:
            logger.warning("Relay unsubscribe from %s failed", self._channel, exc_info=True)


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]) -> RedisSubscription:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        return RedisSubscription(pubsub, channel, on_message)

    async def close(self) -> None:
        await self._redis.aclose()


_bus: Optional[object] = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    url = get_settings().redis_url
    if not url:
        _bus = NoopBus()
    else:
        _bus = RedisBus(url)
        logger.info("Realtime relay enabled via Redis")
    return _bus


async def close_bus() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
        _bus = None
