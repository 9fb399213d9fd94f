"""Event handlers that turn application events into delivered notifications."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notifyhub.core.database import new_session
from notifyhub.core.errors import GroupingConflictError, MalformedEventError
from notifyhub.models.notification import NotificationType, ResourceType
from notifyhub.repositories.notification_repository import NotificationRepository
from notifyhub.schemas.event import (
    EventType,
    MentionPayload,
    NewCommentPayload,
    NewLikePayload,
    NewSubscriptionPayload,
    NewVideoPayload,
    VideoProcessedPayload,
)
from notifyhub.services.channels.base import ChannelAdapter
from notifyhub.services.delivery_router import DeliveryRouter
from notifyhub.services.event_bus import Event, EventBus
from notifyhub.services.grouping_service import (
    GroupingResult,
    GroupingService,
    NotificationCandidate,
)
from notifyhub.services.preference_service import PreferenceService

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)

EXCERPT_LENGTH = 100

# Recipients delivered at once for a fan-out event such as a new upload.
DELIVERY_CONCURRENCY = 10


def _unique_recipients(user_ids: Iterable[str], exclude: str) -> list[str]:
    return [user_id for user_id in dict.fromkeys(user_ids) if user_id and user_id != exclude]


def comment_candidates(payload: NewCommentPayload) -> list[NotificationCandidate]:
    if payload.author_id == payload.video_owner_id:
        return []
    return [
        NotificationCandidate(
            recipient_id=payload.video_owner_id,
            sender_id=payload.author_id,
            type=NotificationType.COMMENT.value,
            resource_type=ResourceType.VIDEO.value,
            resource_id=payload.video_id,
            data={
                "actorName": payload.author_name,
                "videoId": payload.video_id,
                "videoTitle": payload.video_title,
                "commentId": payload.comment_id,
                "excerpt": (payload.content or "")[:EXCERPT_LENGTH],
            },
        )
    ]


def like_candidates(payload: NewLikePayload) -> list[NotificationCandidate]:
    if payload.comment_id and payload.comment_author_id:
        recipient_id = payload.comment_author_id
        resource_type, resource_id = ResourceType.COMMENT.value, payload.comment_id
    else:
        recipient_id = payload.video_owner_id
        resource_type, resource_id = ResourceType.VIDEO.value, payload.video_id
    if payload.liker_id == recipient_id:
        return []
    return [
        NotificationCandidate(
            recipient_id=recipient_id,
            sender_id=payload.liker_id,
            type=NotificationType.LIKE.value,
            resource_type=resource_type,
            resource_id=resource_id,
            data={
                "actorName": payload.liker_name,
                "videoId": payload.video_id,
                "videoTitle": payload.video_title,
                "commentId": payload.comment_id if resource_type == ResourceType.COMMENT.value else None,
            },
        )
    ]


def subscription_candidates(payload: NewSubscriptionPayload) -> list[NotificationCandidate]:
    if payload.subscriber_id == payload.channel_id:
        return []
    return [
        NotificationCandidate(
            recipient_id=payload.channel_id,
            sender_id=payload.subscriber_id,
            type=NotificationType.SUBSCRIPTION.value,
            resource_type=ResourceType.USER.value,
            resource_id=payload.channel_id,
            data={"actorName": payload.subscriber_name, "subscriberId": payload.subscriber_id},
        )
    ]


def new_video_candidates(payload: NewVideoPayload) -> list[NotificationCandidate]:
    return [
        NotificationCandidate(
            recipient_id=subscriber_id,
            sender_id=payload.owner_id,
            type=NotificationType.VIDEO_UPLOAD.value,
            resource_type=ResourceType.VIDEO.value,
            resource_id=payload.video_id,
            data={
                "actorName": payload.owner_name,
                "videoId": payload.video_id,
                "videoTitle": payload.video_title,
            },
        )
        for subscriber_id in _unique_recipients(payload.subscriber_ids, exclude=payload.owner_id)
    ]


def video_processed_candidates(payload: VideoProcessedPayload) -> list[NotificationCandidate]:
    return [
        NotificationCandidate(
            recipient_id=payload.owner_id,
            type=NotificationType.SYSTEM.value,
            resource_type=ResourceType.VIDEO.value,
            resource_id=payload.video_id,
            data={
                "videoId": payload.video_id,
                "videoTitle": payload.video_title,
                "status": payload.status,
            },
        )
    ]


def mention_candidates(payload: MentionPayload) -> list[NotificationCandidate]:
    return [
        NotificationCandidate(
            recipient_id=user_id,
            sender_id=payload.author_id,
            type=NotificationType.MENTION.value,
            resource_type=ResourceType.COMMENT.value,
            resource_id=payload.comment_id,
            data={
                "actorName": payload.author_name,
                "videoId": payload.video_id,
                "commentId": payload.comment_id,
            },
        )
        for user_id in _unique_recipients(payload.mentioned_user_ids, exclude=payload.author_id)
    ]


class NotificationPipeline:
    """Subscribes to the event bus and runs each event through the pipeline.

    For every recipient: type-level preference check, atomic grouping,
    persistence, then delivery on the permitted channels. Rows are stored
    first and recipients are delivered concurrently, each on its own
    session. One recipient's store failure is logged and does not stop the
    others.
    """

    def __init__(
        self,
        adapters: dict[str, ChannelAdapter],
        session_factory: Callable[[], Session] = new_session,
        grouping_window: timedelta | None = None,
        channel_timeout: float | None = None,
    ):
        self.adapters = adapters
        self.session_factory = session_factory
        self.grouping_window = grouping_window
        self.channel_timeout = channel_timeout

    def register(self, bus: EventBus) -> None:
        bus.subscribe(EventType.NEW_COMMENT.value, self.on_new_comment)
        bus.subscribe(EventType.NEW_LIKE.value, self.on_new_like)
        bus.subscribe(EventType.NEW_SUBSCRIPTION.value, self.on_new_subscription)
        bus.subscribe(EventType.NEW_VIDEO.value, self.on_new_video)
        bus.subscribe(EventType.VIDEO_PROCESSED.value, self.on_video_processed)
        bus.subscribe(EventType.MENTION.value, self.on_mention)

    async def on_new_comment(self, event: Event) -> list[GroupingResult]:
        return await self._run(event, NewCommentPayload, comment_candidates)

    async def on_new_like(self, event: Event) -> list[GroupingResult]:
        return await self._run(event, NewLikePayload, like_candidates)

    async def on_new_subscription(self, event: Event) -> list[GroupingResult]:
        return await self._run(event, NewSubscriptionPayload, subscription_candidates)

    async def on_new_video(self, event: Event) -> list[GroupingResult]:
        return await self._run(event, NewVideoPayload, new_video_candidates)

    async def on_video_processed(self, event: Event) -> list[GroupingResult]:
        return await self._run(event, VideoProcessedPayload, video_processed_candidates)

    async def on_mention(self, event: Event) -> list[GroupingResult]:
        return await self._run(event, MentionPayload, mention_candidates)

    @staticmethod
    def parse(event: Event, schema: type[P]) -> P:
        try:
            return schema.model_validate(dict(event.payload))
        except ValidationError as exc:
            raise MalformedEventError(event.type, str(exc)) from exc

    async def _run(
        self,
        event: Event,
        schema: type[P],
        build: Callable[[Any], list[NotificationCandidate]],
    ) -> list[GroupingResult]:
        try:
            payload = self.parse(event, schema)
        except MalformedEventError as exc:
            logger.warning("Rejected %s event: %s", event.type, exc.reason)
            return []

        candidates = build(payload)
        if not candidates:
            logger.debug("%s event produced no notifications", event.type)
            return []
        return await self.process(candidates)

    async def process(self, candidates: list[NotificationCandidate]) -> list[GroupingResult]:
        results: list[GroupingResult] = []
        db = self.session_factory()
        try:
            preferences = PreferenceService(db)
            grouping = GroupingService(db, window=self.grouping_window)
            for candidate in candidates:
                if not preferences.type_enabled(candidate.recipient_id, candidate.type):
                    logger.debug(
                        "User %s has %s notifications turned off",
                        candidate.recipient_id,
                        candidate.type,
                    )
                    continue
                try:
                    result = grouping.record(candidate)
                except (SQLAlchemyError, GroupingConflictError):
                    logger.exception(
                        "Could not store %s notification for %s",
                        candidate.type,
                        candidate.recipient_id,
                    )
                    with contextlib.suppress(SQLAlchemyError):
                        db.rollback()
                    continue
                results.append(result)

            semaphore = asyncio.Semaphore(DELIVERY_CONCURRENCY)
            await asyncio.gather(
                *(self._deliver(result.notification.id, semaphore) for result in results)
            )
            for result in results:
                db.refresh(result.notification)
        finally:
            db.close()
        return results

    async def _deliver(self, notification_id: Any, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            db = self.session_factory()
            try:
                notification = NotificationRepository(db).get_by_id(notification_id)
                if notification is None:
                    return
                router = DeliveryRouter(db, self.adapters, timeout=self.channel_timeout)
                await router.deliver(notification)
            except SQLAlchemyError:
                logger.exception("Could not deliver notification %s", notification_id)
            finally:
                db.close()
