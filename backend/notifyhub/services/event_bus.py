"""In-process publish/subscribe bus between event producers and consumers.

One ``EventBus`` is built per process (see ``notifyhub.main``) and handed to
whoever needs it. ``publish`` never blocks on, and never fails because of,
its handlers: they run later on the event loop, one task per event, in the
order they were registered. A handler that raises is logged and the next one
still runs.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from notifyhub.models.shared import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """An immutable fact produced once and consumed by zero or more handlers."""

    type: str
    payload: Mapping[str, Any]
    occurred_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))


Handler = Callable[[Event], Awaitable[None] | None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """Register ``handler`` for ``event_type``; registering it twice is a no-op."""
        handlers = self._handlers.setdefault(str(event_type), [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        handlers = self._handlers.get(str(event_type))
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event_type: str) -> list[Handler]:
        return list(self._handlers.get(str(event_type), []))

    def publish(self, event_type: str, payload: Mapping[str, Any] | None = None) -> Event:
        """Schedule every handler for a new event and return immediately.

        Must be called from code running on the event loop.
        """
        event = Event(type=str(event_type), payload=payload or {})
        handlers = self.handlers_for(event.type)
        if not handlers:
            logger.debug("No handlers registered for %s", event.type)
            return event

        task = asyncio.get_running_loop().create_task(self._dispatch(event, handlers))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return event

    async def _dispatch(self, event: Event, handlers: list[Handler]) -> None:
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Handler %s failed for %s event",
                    getattr(handler, "__qualname__", repr(handler)),
                    event.type,
                )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait until every handler scheduled so far, and any they publish, has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
