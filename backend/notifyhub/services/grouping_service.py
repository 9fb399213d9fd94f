"""Collapse near-duplicate notifications into one counted row per grouping window."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notifyhub.core.config import settings
from notifyhub.core.errors import GroupingConflictError
from notifyhub.models.notification import Notification, build_group_key
from notifyhub.models.shared import utc_now
from notifyhub.repositories.notification_repository import NotificationRepository
from notifyhub.services import templates

logger = logging.getLogger(__name__)

MAX_RECORD_ATTEMPTS = 3


@dataclass(frozen=True)
class NotificationCandidate:
    recipient_id: str
    type: str
    resource_type: str
    resource_id: str
    sender_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    message: str | None = None

    @property
    def group_key(self) -> str:
        return build_group_key(self.recipient_id, self.type, self.resource_type, self.resource_id)


@dataclass
class GroupingResult:
    notification: Notification
    created: bool


class GroupingService:
    """Decide insert-vs-update for a candidate and apply it atomically.

    The window is recomputed from ``now`` for every event, so a burst that
    straddles the window edge ends up split across two rows.
    """

    def __init__(self, db: Session, window: timedelta | None = None):
        self.db = db
        self.repo = NotificationRepository(db)
        self.window = (
            window if window is not None else timedelta(seconds=settings.GROUPING_WINDOW_SECONDS)
        )

    def record(self, candidate: NotificationCandidate, now: datetime | None = None) -> GroupingResult:
        now = now or utc_now()
        cutoff = now - self.window
        key = candidate.group_key

        for attempt in range(1, MAX_RECORD_ATTEMPTS + 1):
            if self.repo.increment_open_group(key, cutoff, now):
                return GroupingResult(notification=self._rerender(key, candidate), created=False)

            self.repo.release_expired_group(key, cutoff)
            try:
                notification = self.repo.create(
                    recipient_id=candidate.recipient_id,
                    sender_id=candidate.sender_id,
                    type=candidate.type,
                    resource_type=candidate.resource_type,
                    resource_id=candidate.resource_id,
                    message=candidate.message
                    or templates.render(candidate.type, 1, candidate.data),
                    data={**candidate.data, "count": 1},
                    group_key=key,
                    created_at=now,
                )
            except IntegrityError:
                # Another writer opened the group first; fold into its row.
                self.db.rollback()
                logger.debug("Lost insert race for %s (attempt %d)", key, attempt)
                continue
            return GroupingResult(notification=notification, created=True)

        raise GroupingConflictError(key, MAX_RECORD_ATTEMPTS)

    def _rerender(self, key: str, candidate: NotificationCandidate) -> Notification:
        notification = self.repo.get_by_group_key(key)
        if notification is None:
            # Released between our increment and this read; nothing left to render.
            raise GroupingConflictError(key, 1)

        count = int(notification.group_count)
        data = {**(notification.data or {}), **candidate.data, "count": count}
        message = templates.render(candidate.type, count, data)
        if self.repo.set_group_message(notification.id, count, message, data):  # type: ignore[arg-type]
            self.db.refresh(notification)
        else:
            logger.debug("Skipped stale message render for %s at count %d", key, count)
        if candidate.sender_id:
            # Latest actor, used by the count-1 template and the DTO
            notification.sender_id = candidate.sender_id  # type: ignore[assignment]
            self.db.commit()
            self.db.refresh(notification)
        return notification
