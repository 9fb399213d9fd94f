from notifyhub.repositories.contact_repository import ContactRepository
from notifyhub.repositories.notification_repository import NotificationRepository
from notifyhub.repositories.preference_repository import PreferenceRepository

__all__ = [
    "ContactRepository",
    "NotificationRepository",
    "PreferenceRepository",
]
