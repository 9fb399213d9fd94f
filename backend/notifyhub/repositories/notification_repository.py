"""Repository for Notification persistence, read state and delivery status."""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from notifyhub.core.sorting import apply_order_by
from notifyhub.models.notification import Notification, default_delivery_status
from notifyhub.models.shared import generate_uuid, utc_now


class NotificationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        recipient_id: str,
        type: str,
        resource_type: str,
        resource_id: str,
        message: str,
        sender_id: str | None = None,
        data: dict[str, Any] | None = None,
        group_key: str | None = None,
        created_at: datetime | None = None,
    ) -> Notification:
        """Insert a notification.

        Raises ``IntegrityError`` when ``group_key`` is already held by another
        row; the caller owns the rollback.
        """
        now = created_at or utc_now()
        notification = Notification(
            id=generate_uuid(),
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            resource_type=resource_type,
            resource_id=resource_id,
            message=message,
            is_read=False,
            delivery_status=default_delivery_status(),
            data=dict(data or {}),
            group_count=1,
            group_key=group_key,
            created_at=now,
            updated_at=now,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def get_by_id(self, notification_id: UUID) -> Notification | None:
        return (
            self.db.query(Notification)
            .filter(Notification.id == notification_id)
            .populate_existing()
            .first()
        )

    def get_by_group_key(self, group_key: str) -> Notification | None:
        return (
            self.db.query(Notification)
            .filter(Notification.group_key == group_key)
            .populate_existing()
            .first()
        )

    def get_feed(
        self,
        recipient_id: str,
        skip: int = 0,
        limit: int = 20,
        is_read: bool | None = None,
        type: str | None = None,
        order_by: str | None = None,
    ) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.recipient_id == recipient_id)
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        if type is not None:
            query = query.filter(Notification.type == type)
        query = apply_order_by(query, Notification, order_by)
        return query.offset(skip).limit(limit).all()

    def count_for_recipient(self, recipient_id: str) -> int:
        return self.db.query(Notification).filter(Notification.recipient_id == recipient_id).count()

    def count_unread(self, recipient_id: str) -> int:
        return (
            self.db.query(Notification)
            .filter(
                Notification.recipient_id == recipient_id,
                Notification.is_read == False,  # noqa: E712
            )
            .count()
        )

    def mark_as_read(self, notification_id: UUID) -> Notification | None:
        notification = self.get_by_id(notification_id)
        if notification is None:
            return None
        notification.is_read = True  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, recipient_id: str) -> int:
        count = (
            self.db.query(Notification)
            .filter(
                Notification.recipient_id == recipient_id,
                Notification.is_read == False,  # noqa: E712
            )
            .update({"is_read": True}, synchronize_session=False)
        )
        self.db.commit()
        return count

    # ── Grouping primitives ────────────────────────────────────────
    # Each one is a single conditional statement so that concurrent
    # processes serialize on the database row, not on application locks.

    def increment_open_group(self, group_key: str, cutoff: datetime, now: datetime) -> bool:
        """Bump the row holding ``group_key`` if it was created at or after ``cutoff``."""
        updated = (
            self.db.query(Notification)
            .filter(
                Notification.group_key == group_key,
                Notification.created_at >= cutoff,
            )
            .update(
                {
                    Notification.group_count: Notification.group_count + 1,
                    Notification.is_read: False,
                    Notification.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def set_group_message(
        self,
        notification_id: UUID,
        expected_count: int,
        message: str,
        data: dict[str, Any],
    ) -> bool:
        """Write a re-rendered message only if the count has not moved since it was read."""
        updated = (
            self.db.query(Notification)
            .filter(
                Notification.id == notification_id,
                Notification.group_count == expected_count,
            )
            .update(
                {Notification.message: message, Notification.data: data},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def release_expired_group(self, group_key: str, cutoff: datetime) -> int:
        """Detach ``group_key`` from a row whose window closed before ``cutoff``."""
        released = (
            self.db.query(Notification)
            .filter(
                Notification.group_key == group_key,
                Notification.created_at < cutoff,
            )
            .update({Notification.group_key: None}, synchronize_session=False)
        )
        self.db.commit()
        return released

    # ── Delivery status ────────────────────────────────────────────

    def _get_for_update(self, notification_id: UUID) -> Notification | None:
        return (
            self.db.query(Notification)
            .filter(Notification.id == notification_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def record_delivery(
        self,
        notification_id: UUID,
        outcomes: dict[str, dict[str, Any]],
        now: datetime | None = None,
    ) -> Notification | None:
        """Merge per-channel outcomes into ``delivery_status``.

        ``outcomes`` maps a channel key to ``{"delivered": bool, "error": str | None,
        "attempted": bool}``. Channels not present are left untouched. A failed
        attempt clears ``delivered`` even if an earlier attempt succeeded, since
        grouped rows are re-sent with a new message; ``timestamp`` keeps the
        time of the last success.
        """
        now = now or utc_now()
        notification = self._get_for_update(notification_id)
        if notification is None:
            return None

        status = copy.deepcopy(notification.delivery_status or default_delivery_status())
        for channel, outcome in outcomes.items():
            entry = status.setdefault(
                channel, {"delivered": False, "timestamp": None, "attempts": 0, "error": None}
            )
            if outcome.get("attempted", True):
                entry["attempts"] = int(entry.get("attempts") or 0) + 1
                entry["last_attempt_at"] = now.isoformat()
            if outcome["delivered"]:
                entry["delivered"] = True
                entry["timestamp"] = now.isoformat()
                entry["error"] = None
            else:
                entry["delivered"] = False
                entry["error"] = outcome.get("error")
        notification.delivery_status = status  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_in_app_delivered(self, notifications: list[Notification], now: datetime) -> int:
        """Mark feed rows as delivered in-app once the recipient has pulled them.

        Each row is re-read under a row lock so a concurrent ``record_delivery``
        for another channel is merged rather than overwritten.
        """
        count = 0
        for notification in notifications:
            current = self._get_for_update(notification.id)  # type: ignore[arg-type]
            if current is None:
                continue
            status = copy.deepcopy(current.delivery_status or default_delivery_status())
            entry = status.setdefault("inApp", {"delivered": False, "timestamp": None})
            if entry.get("delivered"):
                continue
            entry["delivered"] = True
            entry["timestamp"] = now.isoformat()
            current.delivery_status = status  # type: ignore[assignment]
            self.db.commit()
            count += 1
        return count

    def get_recent(self, since: datetime) -> list[Notification]:
        """Rows created at or after ``since``, oldest first."""
        return (
            self.db.query(Notification)
            .filter(Notification.created_at >= since)
            .order_by(Notification.created_at.asc())
            .all()
        )
