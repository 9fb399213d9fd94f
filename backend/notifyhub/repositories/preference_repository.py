"""Repository for per-user notification preferences."""

from __future__ import annotations

import copy
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notifyhub.models.preference import CHANNEL_COLUMNS, Preference, default_type_settings
from notifyhub.models.shared import utc_now


class PreferenceRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: str) -> Preference | None:
        return self.db.query(Preference).filter(Preference.user_id == user_id).first()

    def get_or_create(self, user_id: str) -> Preference:
        """Return the user's preferences, inserting the defaults on first access."""
        preference = self.get_by_user(user_id)
        if preference is not None:
            return preference

        preference = Preference(user_id=user_id, types=default_type_settings())
        self.db.add(preference)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created the defaults first.
            self.db.rollback()
            existing = self.get_by_user(user_id)
            if existing is None:
                raise
            return existing
        self.db.refresh(preference)
        return preference

    def update(
        self,
        user_id: str,
        channels: dict[str, bool] | None = None,
        types: dict[str, dict[str, Any]] | None = None,
    ) -> Preference:
        """Apply a partial update; keys not given keep their stored value."""
        preference = self.get_or_create(user_id)

        for channel, enabled in (channels or {}).items():
            column = CHANNEL_COLUMNS.get(channel)
            if column is not None:
                setattr(preference, column, bool(enabled))

        if types:
            merged = copy.deepcopy(preference.types or default_type_settings())
            for notification_type, changes in types.items():
                current = merged.setdefault(notification_type, preference.type_settings(notification_type))
                if changes.get("enabled") is not None:
                    current["enabled"] = bool(changes["enabled"])
                for channel, enabled in (changes.get("channels") or {}).items():
                    if enabled is not None:
                        current.setdefault("channels", {})[channel] = bool(enabled)
            preference.types = merged  # type: ignore[assignment]

        preference.updated_at = utc_now()  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(preference)
        return preference
