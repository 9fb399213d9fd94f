"""Cross-process broadcast channels for real-time delivery.

A backplane carries a message published by any process to every process
subscribed to the same channel. ``RedisBackplane`` is the production one;
``InMemoryBackplane`` instances attached to one ``InMemoryHub`` behave like
separate processes sharing a broker, which is what single-process
deployments and the test suite use.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str, dict[str, Any]], Awaitable[None]]


class BackplaneUnavailableError(Exception):
    """The shared broadcast channel cannot be reached."""


class Backplane(ABC):
    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    async def publish(self, channel: str, message: dict[str, Any]) -> int:
        """Broadcast ``message``; return how many subscribed processes received it."""

    @abstractmethod
    async def subscribe(self, channel: str, callback: MessageCallback) -> None: ...

    @abstractmethod
    async def unsubscribe(self, channel: str) -> None: ...

    @property
    @abstractmethod
    def healthy(self) -> bool: ...


class InMemoryHub:
    """Broker shared by every ``InMemoryBackplane`` created against it."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[InMemoryBackplane]] = {}
        self.available = True

    def attach(self, channel: str, backplane: InMemoryBackplane) -> None:
        members = self._subscribers.setdefault(channel, [])
        if backplane not in members:
            members.append(backplane)

    def detach(self, channel: str, backplane: InMemoryBackplane) -> None:
        members = self._subscribers.get(channel)
        if not members:
            return
        if backplane in members:
            members.remove(backplane)
        if not members:
            del self._subscribers[channel]

    async def broadcast(self, channel: str, message: dict[str, Any]) -> int:
        if not self.available:
            raise BackplaneUnavailableError("in-memory hub is unavailable")
        # Round-trip through JSON so subscribers see what Redis would hand them.
        wire = json.loads(json.dumps(message, default=str))
        receivers = list(self._subscribers.get(channel, []))
        for backplane in receivers:
            await backplane.receive(channel, wire)
        return len(receivers)


class InMemoryBackplane(Backplane):
    def __init__(self, hub: InMemoryHub | None = None):
        self.hub = hub or InMemoryHub()
        self._callbacks: dict[str, MessageCallback] = {}

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        for channel in list(self._callbacks):
            await self.unsubscribe(channel)

    async def publish(self, channel: str, message: dict[str, Any]) -> int:
        return await self.hub.broadcast(channel, message)

    async def subscribe(self, channel: str, callback: MessageCallback) -> None:
        if not self.hub.available:
            raise BackplaneUnavailableError("in-memory hub is unavailable")
        self._callbacks[channel] = callback
        self.hub.attach(channel, self)

    async def unsubscribe(self, channel: str) -> None:
        self._callbacks.pop(channel, None)
        self.hub.detach(channel, self)

    async def receive(self, channel: str, message: dict[str, Any]) -> None:
        callback = self._callbacks.get(channel)
        if callback is None:
            return
        try:
            await callback(channel, message)
        except Exception:
            logger.exception("Backplane callback failed on %s", channel)

    @property
    def healthy(self) -> bool:
        return self.hub.available


class RedisBackplane(Backplane):
    """Redis pub/sub backplane with a single listener task per process."""

    def __init__(self, redis_url: str, reconnect_delay: float = 1.0):
        self.redis_url = redis_url
        self.reconnect_delay = reconnect_delay
        self._client: redis.Redis | None = None
        self._pubsub: Any = None
        self._callbacks: dict[str, MessageCallback] = {}
        self._listener: asyncio.Task[None] | None = None
        self._healthy = False

    async def start(self) -> None:
        self._client = redis.from_url(self.redis_url)
        try:
            await self._client.ping()
        except RedisError as exc:
            self._healthy = False
            logger.warning("Redis backplane unreachable at startup: %s", exc)
        else:
            self._healthy = True
            logger.info("Redis backplane connected")
        self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        self._listener = asyncio.create_task(self._listen())

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None
        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._healthy = False
        logger.info("Redis backplane disconnected")

    async def publish(self, channel: str, message: dict[str, Any]) -> int:
        if self._client is None:
            raise BackplaneUnavailableError("Redis backplane is not started")
        try:
            receivers = await self._client.publish(channel, json.dumps(message, default=str))
        except RedisError as exc:
            self._healthy = False
            raise BackplaneUnavailableError(str(exc)) from exc
        self._healthy = True
        return int(receivers)

    async def subscribe(self, channel: str, callback: MessageCallback) -> None:
        if self._pubsub is None:
            raise BackplaneUnavailableError("Redis backplane is not started")
        try:
            await self._pubsub.subscribe(channel)
        except RedisError as exc:
            # The caller resubscribes once Redis is back; the listener must
            # not restore this channel on its own or the caller double-delivers.
            self._healthy = False
            raise BackplaneUnavailableError(str(exc)) from exc
        self._callbacks[channel] = callback

    async def unsubscribe(self, channel: str) -> None:
        self._callbacks.pop(channel, None)
        if self._pubsub is None:
            return
        try:
            await self._pubsub.unsubscribe(channel)
        except RedisError as exc:
            self._healthy = False
            logger.warning("Redis unsubscribe from %s failed: %s", channel, exc)

    @property
    def healthy(self) -> bool:
        return self._healthy

    async def _listen(self) -> None:
        while True:
            try:
                if not self._healthy and self._callbacks:
                    await asyncio.sleep(self.reconnect_delay)
                    await self._resubscribe()
                    continue
                if not self._pubsub.subscribed:
                    await asyncio.sleep(0.1)
                    continue
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=1.0
                )
                if message is None:
                    continue
                await self._dispatch(message)
            except asyncio.CancelledError:
                raise
            except RedisError as exc:
                self._healthy = False
                logger.warning("Redis backplane listener error: %s", exc)

    async def _dispatch(self, message: dict[str, Any]) -> None:
        channel = message["channel"]
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")
        callback = self._callbacks.get(channel)
        if callback is None:
            return
        try:
            data = json.loads(message["data"])
        except (TypeError, ValueError):
            logger.warning("Dropping undecodable backplane message on %s", channel)
            return
        try:
            await callback(channel, data)
        except Exception:
            logger.exception("Backplane callback failed on %s", channel)

    async def _resubscribe(self) -> None:
        channels = list(self._callbacks)
        try:
            await self._pubsub.aclose()
            self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)  # type: ignore[union-attr]
            if channels:
                await self._pubsub.subscribe(*channels)
            await self._client.ping()  # type: ignore[union-attr]
        except RedisError as exc:
            logger.warning("Redis backplane still unavailable: %s", exc)
            return
        self._healthy = True
        logger.info("Redis backplane recovered; resubscribed %d channels", len(channels))
