import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notifyhub.core.config import settings
from notifyhub.core.database import init_db
from notifyhub.core.dependencies import get_fanout
from notifyhub.realtime.backplane import Backplane, InMemoryBackplane, RedisBackplane
from notifyhub.realtime.fanout import RealtimeFanout
from notifyhub.routers import contacts, events, notifications, preferences, realtime
from notifyhub.services.delivery_router import default_adapters
from notifyhub.services.event_bus import EventBus
from notifyhub.services.notification_pipeline import NotificationPipeline

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Notifications", "description": "Read the notification feed and manage read state."},
    {"name": "Preferences", "description": "Per-channel and per-type delivery preferences."},
    {"name": "Contacts", "description": "Email address and push tokens used for delivery."},
    {"name": "Events", "description": "Publish application events into the pipeline."},
    {"name": "Realtime", "description": "WebSocket channel for live notifications."},
    {"name": "Health", "description": "Process and backplane health."},
]


def build_backplane() -> Backplane:
    if settings.redis_backplane_enabled:
        return RedisBackplane(settings.REDIS_URL)
    logger.info("Using in-memory backplane; real-time delivery is single-process")
    return InMemoryBackplane()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_db()

    backplane = build_backplane()
    await backplane.start()
    fanout = RealtimeFanout(backplane, process_id=settings.PROCESS_ID or None)

    event_bus = EventBus()
    NotificationPipeline(default_adapters(fanout)).register(event_bus)

    app.state.event_bus = event_bus
    app.state.fanout = fanout
    logger.info("Notification pipeline ready on %s", fanout.process_id)
    try:
        yield
    finally:
        await event_bus.drain()
        await backplane.stop()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Notification delivery pipeline: grouped, preference-aware notifications "
        "delivered in-app over WebSockets and by email and push."
    ),
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications.router, prefix="/v1/notifications", tags=["Notifications"])
app.include_router(preferences.router, prefix="/v1/preferences", tags=["Preferences"])
app.include_router(contacts.router, prefix="/v1/contacts", tags=["Contacts"])
app.include_router(events.router, prefix="/v1/events", tags=["Events"])
app.include_router(realtime.router, prefix="/v1/realtime", tags=["Realtime"])


@app.get("/health", tags=["Health"])
async def health(fanout: RealtimeFanout = Depends(get_fanout)) -> dict[str, object]:
    """Liveness plus the backplane signal: ``degraded`` means local-only real-time delivery."""
    realtime_health = fanout.health()
    return {
        "status": "ok" if realtime_health["backplane"] == "ok" else "degraded",
        "realtime": realtime_health,
    }
