from notifyhub.models.contact import UserContact
from notifyhub.models.notification import (
    DeliveryChannel,
    Notification,
    NotificationType,
    ResourceType,
)
from notifyhub.models.preference import Preference

__all__ = [
    "DeliveryChannel",
    "Notification",
    "NotificationType",
    "Preference",
    "ResourceType",
    "UserContact",
]
