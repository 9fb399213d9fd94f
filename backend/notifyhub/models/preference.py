"""Per-user notification preferences."""

from typing import Any

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.types import JSON

from notifyhub.core.database import Base
from notifyhub.models.notification import NotificationType
from notifyhub.models.shared import UUIDType, generate_uuid, utc_now

PREFERENCE_CHANNELS = ("inApp", "email", "push", "sms")

# Master toggle column for each channel key
CHANNEL_COLUMNS = {
    "inApp": "in_app",
    "email": "email",
    "push": "push",
    "sms": "sms",
}


def default_channel_flags() -> dict[str, bool]:
    return {"inApp": True, "email": True, "push": True, "sms": False}


def default_type_settings() -> dict[str, Any]:
    return {
        notification_type.value: {"enabled": True, "channels": default_channel_flags()}
        for notification_type in NotificationType
    }


class Preference(Base):
    """Preference model - master channel toggles plus per-type overrides."""

    __tablename__ = "notification_preferences"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    in_app = Column(Boolean, nullable=False, default=True)
    email = Column(Boolean, nullable=False, default=True)
    push = Column(Boolean, nullable=False, default=True)
    sms = Column(Boolean, nullable=False, default=False)
    types = Column(JSON, nullable=False, default=default_type_settings)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def channel_enabled(self, channel: str) -> bool:
        column = CHANNEL_COLUMNS.get(channel)
        if column is None:
            return False
        return bool(getattr(self, column))

    def type_settings(self, notification_type: str) -> dict[str, Any]:
        stored = (self.types or {}).get(notification_type)
        if stored is None:
            return {"enabled": True, "channels": default_channel_flags()}
        channels = default_channel_flags()
        channels.update(stored.get("channels") or {})
        return {"enabled": bool(stored.get("enabled", True)), "channels": channels}

    def allows(self, notification_type: str, channel: str) -> bool:
        """Effective permission: type enabled AND master toggle AND type override."""
        settings_for_type = self.type_settings(notification_type)
        return (
            settings_for_type["enabled"]
            and self.channel_enabled(channel)
            and bool(settings_for_type["channels"].get(channel, False))
        )
