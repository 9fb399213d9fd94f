"""Resolve whether a user accepts a notification type on a channel."""

from __future__ import annotations

import contextlib
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notifyhub.models.preference import Preference
from notifyhub.repositories.preference_repository import PreferenceRepository

logger = logging.getLogger(__name__)


class PreferenceService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = PreferenceRepository(db)

    def get(self, user_id: str) -> Preference:
        return self.repo.get_or_create(user_id)

    def update(
        self,
        user_id: str,
        channels: dict[str, bool] | None = None,
        types: dict[str, dict[str, Any]] | None = None,
    ) -> Preference:
        return self.repo.update(user_id, channels=channels, types=types)

    def resolve(self, user_id: str, notification_type: str, channel: str) -> bool:
        """Return True when delivery is permitted.

        Fails closed: if the preference row cannot be read or created the
        answer is False, so an explicit opt-out is never bypassed.
        """
        try:
            preference = self.repo.get_or_create(user_id)
        except SQLAlchemyError:
            logger.exception("Preference lookup failed for user %s; denying %s", user_id, channel)
            with contextlib.suppress(SQLAlchemyError):
                self.db.rollback()
            return False
        return preference.allows(str(notification_type), channel)

    def type_enabled(self, user_id: str, notification_type: str) -> bool:
        """Whether the user wants this type at all, regardless of channel."""
        try:
            preference = self.repo.get_or_create(user_id)
        except SQLAlchemyError:
            logger.exception("Preference lookup failed for user %s", user_id)
            with contextlib.suppress(SQLAlchemyError):
                self.db.rollback()
            return False
        return bool(preference.type_settings(str(notification_type))["enabled"])
