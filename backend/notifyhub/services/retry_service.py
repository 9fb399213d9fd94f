"""Re-dispatch email and push deliveries that failed transiently."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from notifyhub.core.config import settings
from notifyhub.models.notification import DeliveryChannel, Notification
from notifyhub.models.shared import utc_now
from notifyhub.repositories.notification_repository import NotificationRepository
from notifyhub.services.channels.base import ChannelAdapter
from notifyhub.services.delivery_router import DeliveryRouter, default_adapters

logger = logging.getLogger(__name__)

RETRYABLE_CHANNELS = (DeliveryChannel.EMAIL.value, DeliveryChannel.PUSH.value)
RETRY_LOOKBACK = timedelta(days=1)


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def retry_due(entry: dict[str, Any], now: datetime, max_attempts: int) -> bool:
    """Whether a channel status entry is failed, under the attempt cap and past its backoff.

    Backoff: 2^attempts minutes from the last attempt.
    """
    if entry.get("delivered") or not entry.get("error"):
        return False
    attempts = int(entry.get("attempts") or 0)
    if attempts >= max_attempts:
        return False
    last_attempt_at = _parse_timestamp(entry.get("last_attempt_at"))
    if last_attempt_at is None:
        return True
    return now >= last_attempt_at + timedelta(minutes=2**attempts)


class DeliveryRetryService:
    def __init__(
        self,
        db: Session,
        adapters: dict[str, ChannelAdapter] | None = None,
        max_attempts: int | None = None,
    ):
        self.db = db
        self.notification_repo = NotificationRepository(db)
        self.router = DeliveryRouter(db, adapters if adapters is not None else default_adapters())
        self.max_attempts = (
            max_attempts if max_attempts is not None else settings.DELIVERY_MAX_ATTEMPTS
        )

    def due_channels(self, notification: Notification, now: datetime) -> list[str]:
        status = notification.delivery_status or {}
        return [
            channel
            for channel in RETRYABLE_CHANNELS
            if retry_due(status.get(channel) or {}, now, self.max_attempts)
        ]

    async def retry_failed_deliveries(self, now: datetime | None = None) -> int:
        """Retry every due email/push delivery from the last day.

        Returns:
            Number of channel deliveries re-dispatched.
        """
        now = now or utc_now()
        retried = 0
        for notification in self.notification_repo.get_recent(now - RETRY_LOOKBACK):
            for channel in self.due_channels(notification, now):
                result = await self.router.redeliver(notification, channel)
                retried += 1
                logger.info(
                    "Retried %s delivery for %s: %s",
                    channel,
                    notification.id,
                    result.status.value,
                )
        return retried
