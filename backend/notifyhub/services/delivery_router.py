"""Dispatch a stored notification to every channel the recipient permits."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notifyhub.core.config import settings
from notifyhub.models.notification import DeliveryChannel, Notification
from notifyhub.realtime.fanout import RealtimeFanout
from notifyhub.repositories.contact_repository import ContactRepository
from notifyhub.repositories.notification_repository import NotificationRepository
from notifyhub.schemas.notification import NotificationResponse
from notifyhub.services.channels.base import (
    ChannelAdapter,
    ChannelResult,
    ChannelStatus,
    DeliveryRequest,
)
from notifyhub.services.channels.email import EmailAdapter
from notifyhub.services.channels.in_app import InAppAdapter
from notifyhub.services.channels.push import PushAdapter
from notifyhub.services.preference_service import PreferenceService

logger = logging.getLogger(__name__)

DELIVERY_CHANNELS = tuple(channel.value for channel in DeliveryChannel)
ADDRESSED_CHANNELS = (DeliveryChannel.EMAIL.value, DeliveryChannel.PUSH.value)


def default_adapters(fanout: RealtimeFanout | None = None) -> dict[str, ChannelAdapter]:
    """Adapters for every channel; in-app is left out when there is no fanout (worker)."""
    adapters: dict[str, ChannelAdapter] = {
        DeliveryChannel.EMAIL.value: EmailAdapter(),
        DeliveryChannel.PUSH.value: PushAdapter(),
    }
    if fanout is not None:
        adapters[DeliveryChannel.IN_APP.value] = InAppAdapter(fanout)
    return adapters


class DeliveryRouter:
    """Fan one notification out to its channels and record each outcome.

    Channels run concurrently and independently: a timeout or failure on one
    never blocks, cancels or rolls back another.
    """

    def __init__(
        self,
        db: Session,
        adapters: dict[str, ChannelAdapter],
        timeout: float | None = None,
    ):
        self.db = db
        self.adapters = adapters
        self.timeout = timeout if timeout is not None else settings.CHANNEL_TIMEOUT_SECONDS
        self.preferences = PreferenceService(db)
        self.notification_repo = NotificationRepository(db)
        self.contact_repo = ContactRepository(db)

    async def deliver(self, notification: Notification) -> dict[str, ChannelResult]:
        return await self._deliver_channels(notification, DELIVERY_CHANNELS)

    async def redeliver(self, notification: Notification, channel: str) -> ChannelResult:
        """Retry a single channel; used by the background retry worker."""
        results = await self._deliver_channels(notification, (channel,))
        return results[channel]

    async def _deliver_channels(
        self, notification: Notification, channels: Iterable[str]
    ) -> dict[str, ChannelResult]:
        channels = tuple(channels)
        recipient_id = str(notification.recipient_id)
        notification_type = str(notification.type)
        request, contact_error = self._build_request(notification)

        pending: dict[str, asyncio.Future[ChannelResult] | ChannelResult] = {}
        for channel in channels:
            if not self.preferences.resolve(recipient_id, notification_type, channel):
                pending[channel] = ChannelResult.skipped("disabled by preferences")
            elif contact_error and channel in ADDRESSED_CHANNELS:
                pending[channel] = ChannelResult.failure(contact_error)
            else:
                pending[channel] = asyncio.ensure_future(self._dispatch(channel, request))

        results: dict[str, ChannelResult] = {}
        for channel, item in pending.items():
            results[channel] = await item if isinstance(item, asyncio.Future) else item

        self._record(notification, results)
        return results

    async def _dispatch(self, channel: str, request: DeliveryRequest) -> ChannelResult:
        adapter = self.adapters.get(channel)
        if adapter is None:
            return ChannelResult.skipped("no adapter configured")
        try:
            return await asyncio.wait_for(adapter.send(request), timeout=self.timeout)
        except TimeoutError:
            logger.warning(
                "%s delivery timed out after %.1fs for %s",
                channel,
                self.timeout,
                request.notification_id,
            )
            return ChannelResult(ChannelStatus.TIMEOUT, f"timed out after {self.timeout}s")
        except Exception as exc:
            logger.exception("%s adapter crashed for %s", channel, request.notification_id)
            return ChannelResult.failure(str(exc)[:500] or type(exc).__name__)

    def _build_request(self, notification: Notification) -> tuple[DeliveryRequest, str | None]:
        payload = NotificationResponse.model_validate(notification).model_dump(
            mode="json", by_alias=True
        )
        request = DeliveryRequest(
            notification_id=str(notification.id),
            recipient_id=str(notification.recipient_id),
            type=str(notification.type),
            message=str(notification.message),
            payload=payload,
        )
        try:
            contact = self.contact_repo.get_by_user(request.recipient_id)
        except SQLAlchemyError:
            logger.exception("Contact lookup failed for user %s", request.recipient_id)
            self.db.rollback()
            return request, "contact lookup failed"
        if contact is not None:
            request.email = contact.email  # type: ignore[assignment]
            request.push_tokens = list(contact.push_tokens or [])
        return request, None

    def _record(self, notification: Notification, results: dict[str, ChannelResult]) -> None:
        outcomes = {
            channel: {
                "delivered": result.delivered,
                "error": result.detail if result.retryable else None,
                "attempted": result.attempted,
            }
            for channel, result in results.items()
            if result.attempted
        }
        if not outcomes:
            return
        try:
            self.notification_repo.record_delivery(notification.id, outcomes)  # type: ignore[arg-type]
        except SQLAlchemyError:
            logger.exception("Could not record delivery status for %s", notification.id)
            self.db.rollback()
