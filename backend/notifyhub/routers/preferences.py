"""Endpoints for the caller's notification preferences."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from notifyhub.core.auth import get_current_user
from notifyhub.core.database import get_db
from notifyhub.models.notification import NotificationType
from notifyhub.models.preference import Preference
from notifyhub.schemas.preference import (
    ChannelFlags,
    PreferenceResponse,
    PreferenceUpdate,
    TypePreference,
)
from notifyhub.services.preference_service import PreferenceService

router = APIRouter()


def _to_response(preference: Preference) -> PreferenceResponse:
    return PreferenceResponse(
        user_id=str(preference.user_id),
        channels=ChannelFlags(
            in_app=bool(preference.in_app),
            email=bool(preference.email),
            push=bool(preference.push),
            sms=bool(preference.sms),
        ),
        types={
            notification_type: TypePreference.model_validate(
                preference.type_settings(notification_type.value)
            )
            for notification_type in NotificationType
        },
    )


@router.get(
    "/",
    response_model=PreferenceResponse,
    summary="Get notification preferences",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def get_preferences(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> PreferenceResponse:
    """Return the caller's preferences, creating the defaults on first access."""
    return _to_response(PreferenceService(db).get(user_id))


@router.put(
    "/",
    response_model=PreferenceResponse,
    summary="Update notification preferences",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def update_preferences(
    data: PreferenceUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> PreferenceResponse:
    """Partially update master channel toggles and per-type settings."""
    types = None
    if data.types:
        types = {
            notification_type.value: {
                "enabled": changes.enabled,
                "channels": changes.channels.as_channel_map() if changes.channels else {},
            }
            for notification_type, changes in data.types.items()
        }
    preference = PreferenceService(db).update(
        user_id,
        channels=data.channels.as_channel_map() if data.channels else None,
        types=types,
    )
    return _to_response(preference)
