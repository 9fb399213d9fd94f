"""FastAPI dependencies for the per-process pipeline objects built at startup."""

from starlette.requests import HTTPConnection

from notifyhub.realtime.fanout import RealtimeFanout
from notifyhub.services.event_bus import EventBus


def get_event_bus(connection: HTTPConnection) -> EventBus:
    return connection.app.state.event_bus  # type: ignore[no-any-return]


def get_fanout(connection: HTTPConnection) -> RealtimeFanout:
    return connection.app.state.fanout  # type: ignore[no-any-return]
