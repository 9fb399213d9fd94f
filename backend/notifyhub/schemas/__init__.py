from notifyhub.schemas.contact import ContactResponse, ContactUpdate
from notifyhub.schemas.event import (
    EVENT_PAYLOAD_SCHEMAS,
    EventAcceptedResponse,
    EventPublishRequest,
    EventType,
    MentionPayload,
    NewCommentPayload,
    NewLikePayload,
    NewSubscriptionPayload,
    NewVideoPayload,
    VideoProcessedPayload,
)
from notifyhub.schemas.notification import (
    ChannelDeliveryStatus,
    DeliveryStatusResponse,
    NotificationCountResponse,
    NotificationReadAllResponse,
    NotificationResponse,
)
from notifyhub.schemas.preference import (
    ChannelFlags,
    ChannelFlagsUpdate,
    PreferenceResponse,
    PreferenceUpdate,
    TypePreference,
    TypePreferenceUpdate,
)

__all__ = [
    "EVENT_PAYLOAD_SCHEMAS",
    "ChannelDeliveryStatus",
    "ChannelFlags",
    "ChannelFlagsUpdate",
    "ContactResponse",
    "ContactUpdate",
    "DeliveryStatusResponse",
    "EventAcceptedResponse",
    "EventPublishRequest",
    "EventType",
    "MentionPayload",
    "NewCommentPayload",
    "NewLikePayload",
    "NewSubscriptionPayload",
    "NewVideoPayload",
    "NotificationCountResponse",
    "NotificationReadAllResponse",
    "NotificationResponse",
    "PreferenceResponse",
    "PreferenceUpdate",
    "TypePreference",
    "TypePreferenceUpdate",
    "VideoProcessedPayload",
]
