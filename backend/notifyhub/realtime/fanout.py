"""Deliver real-time messages to every live session of a user, on any process."""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from uuid import uuid4

from notifyhub.models.shared import utc_now
from notifyhub.realtime.backplane import Backplane

logger = logging.getLogger(__name__)

CONNECTED_MESSAGE = "Connected to notification service"


class ConnectionHandle(Protocol):
    """Anything that can push JSON to one client session (a Starlette WebSocket)."""

    async def send_json(self, data: Any) -> None: ...


@dataclass
class LiveConnection:
    connection_id: str
    user_id: str
    handle: ConnectionHandle
    connected_at: datetime = field(default_factory=utc_now)


def user_channel(user_id: str) -> str:
    return f"notifications:user:{user_id}"


def default_process_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class RealtimeFanout:
    """Connection registry of one process plus its link to the shared backplane.

    The registry is only changed through ``connect`` and ``disconnect``. A
    process subscribes to a user's backplane channel while it holds at least
    one of that user's connections, so a publish reaches exactly the
    processes that can deliver it. If the backplane fails, publishing falls
    back to this process's own connections and ``health()`` reports
    ``degraded`` until a publish succeeds again.
    """

    def __init__(self, backplane: Backplane, process_id: str | None = None):
        self.backplane = backplane
        self.process_id = process_id or default_process_id()
        self._connections: dict[str, LiveConnection] = {}
        self._by_handle: dict[int, str] = {}
        self._user_connections: dict[str, set[str]] = {}
        self._unsynced_users: set[str] = set()
        self._degraded = False

    # ── Registry ───────────────────────────────────────────────────

    async def connect(self, user_id: str, handle: ConnectionHandle) -> str:
        """Register an already-authenticated session and greet it."""
        connection_id = str(uuid4())
        self._connections[connection_id] = LiveConnection(connection_id, user_id, handle)
        self._by_handle[id(handle)] = connection_id
        first_for_user = user_id not in self._user_connections
        self._user_connections.setdefault(user_id, set()).add(connection_id)

        if first_for_user:
            await self._subscribe_user(user_id)

        try:
            await handle.send_json(
                {"type": "connection_successful", "data": {"message": CONNECTED_MESSAGE}}
            )
        except Exception as exc:
            logger.warning("Greeting failed for connection %s: %s", connection_id, exc)
            await self.disconnect(connection_id)
            raise

        logger.info(
            "Connection %s registered for user %s on %s", connection_id, user_id, self.process_id
        )
        return connection_id

    async def disconnect(self, handle_or_id: ConnectionHandle | str) -> bool:
        """Remove a connection; unknown handles are ignored."""
        if isinstance(handle_or_id, str):
            connection_id: str | None = handle_or_id
        else:
            connection_id = self._by_handle.get(id(handle_or_id))
        connection = self._connections.pop(connection_id, None) if connection_id else None
        if connection is None:
            return False

        self._by_handle.pop(id(connection.handle), None)
        remaining = self._user_connections.get(connection.user_id)
        if remaining is not None:
            remaining.discard(connection.connection_id)
            if not remaining:
                del self._user_connections[connection.user_id]
                self._unsynced_users.discard(connection.user_id)
                await self._unsubscribe_user(connection.user_id)

        logger.info("Connection %s closed for user %s", connection.connection_id, connection.user_id)
        return True

    def connection_count(self, user_id: str | None = None) -> int:
        if user_id is None:
            return len(self._connections)
        return len(self._user_connections.get(user_id, ()))

    # ── Delivery ───────────────────────────────────────────────────

    async def publish_to_user(self, user_id: str, payload: dict[str, Any]) -> int:
        """Send one notification to all of the user's sessions, wherever they live.

        Returns the number of processes that accepted the message (0 when the
        user is offline everywhere). Never waits for client acknowledgement.
        """
        message = {"type": "notification", "data": payload}
        envelope = {"userId": user_id, "origin": self.process_id, "message": message}
        try:
            receivers = await self.backplane.publish(user_channel(user_id), envelope)
        except Exception as exc:
            self._mark_degraded(exc)
            delivered = await self.deliver_local(user_id, message)
            return 1 if delivered else 0

        if user_id in self._unsynced_users:
            # Our own sessions missed the broadcast because the subscribe failed.
            if await self.deliver_local(user_id, message):
                receivers += 1
        if self._degraded:
            self._degraded = False
            logger.info("Backplane recovered on %s", self.process_id)
            await self._resync_subscriptions()
        return receivers

    async def deliver_local(self, user_id: str, message: dict[str, Any]) -> int:
        """Push ``message`` to this process's sessions of ``user_id``; drop broken ones."""
        delivered = 0
        for connection_id in list(self._user_connections.get(user_id, ())):
            connection = self._connections.get(connection_id)
            if connection is None:
                continue
            try:
                await connection.handle.send_json(message)
            except Exception as exc:
                logger.warning("Dropping connection %s after send failure: %s", connection_id, exc)
                await self.disconnect(connection_id)
                continue
            delivered += 1
        return delivered

    async def _on_backplane_message(self, channel: str, envelope: dict[str, Any]) -> None:
        user_id = envelope.get("userId")
        message = envelope.get("message")
        if not user_id or not isinstance(message, dict):
            logger.warning("Ignoring malformed fanout message on %s", channel)
            return
        await self.deliver_local(str(user_id), message)

    # ── Backplane bookkeeping ──────────────────────────────────────

    async def _subscribe_user(self, user_id: str) -> None:
        try:
            await self.backplane.subscribe(user_channel(user_id), self._on_backplane_message)
        except Exception as exc:
            self._mark_degraded(exc)
            self._unsynced_users.add(user_id)

    async def _unsubscribe_user(self, user_id: str) -> None:
        try:
            await self.backplane.unsubscribe(user_channel(user_id))
        except Exception as exc:
            self._mark_degraded(exc)

    async def _resync_subscriptions(self) -> None:
        for user_id in list(self._unsynced_users):
            if user_id not in self._user_connections:
                self._unsynced_users.discard(user_id)
                continue
            try:
                await self.backplane.subscribe(user_channel(user_id), self._on_backplane_message)
            except Exception as exc:
                self._mark_degraded(exc)
                return
            self._unsynced_users.discard(user_id)

    def _mark_degraded(self, exc: Exception) -> None:
        if not self._degraded:
            logger.warning(
                "Backplane unavailable on %s, delivering to local connections only: %s",
                self.process_id,
                exc,
            )
        self._degraded = True

    # ── Health ─────────────────────────────────────────────────────

    @property
    def degraded(self) -> bool:
        return self._degraded or not self.backplane.healthy

    def health(self) -> dict[str, Any]:
        return {
            "process_id": self.process_id,
            "backplane": "degraded" if self.degraded else "ok",
            "local_connections": len(self._connections),
            "local_users": len(self._user_connections),
        }
