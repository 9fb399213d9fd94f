"""Notification model for the multi-channel delivery pipeline."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String
from sqlalchemy.types import JSON

from notifyhub.core.database import Base
from notifyhub.models.shared import UUIDType, generate_uuid, utc_now


class NotificationType(str, Enum):
    COMMENT = "COMMENT"
    LIKE = "LIKE"
    SUBSCRIPTION = "SUBSCRIPTION"
    VIDEO_UPLOAD = "VIDEO_UPLOAD"
    MENTION = "MENTION"
    SYSTEM = "SYSTEM"


class ResourceType(str, Enum):
    VIDEO = "VIDEO"
    COMMENT = "COMMENT"
    USER = "USER"
    SYSTEM = "SYSTEM"


class DeliveryChannel(str, Enum):
    IN_APP = "inApp"
    EMAIL = "email"
    PUSH = "push"


def default_delivery_status() -> dict[str, dict[str, object]]:
    return {
        channel.value: {"delivered": False, "timestamp": None, "attempts": 0, "error": None}
        for channel in DeliveryChannel
    }


def build_group_key(
    recipient_id: str, notification_type: str, resource_type: str, resource_id: str
) -> str:
    """Join the grouping tuple into the value stored in ``group_key``."""
    return f"{recipient_id}:{notification_type}:{resource_type}:{resource_id}"


class Notification(Base):
    """Notification model - one row per grouping key per grouping window."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        Index("ix_notifications_recipient_is_read", "recipient_id", "is_read"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    recipient_id = Column(String(64), nullable=False)
    sender_id = Column(String(64), nullable=True)
    type = Column(String(30), nullable=False, index=True)
    resource_type = Column(String(30), nullable=False)
    resource_id = Column(String(64), nullable=False)
    message = Column(String(1000), nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    delivery_status = Column(JSON, nullable=False, default=default_delivery_status)
    data = Column(JSON, nullable=False, default=dict)
    group_count = Column(Integer, nullable=False, default=1)
    # Held only by the row that is currently open for its grouping key.
    group_key = Column(String(300), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    # Moves only when a grouped event lands, so the feed sorts by activity.
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
