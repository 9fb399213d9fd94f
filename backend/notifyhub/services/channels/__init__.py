from notifyhub.services.channels.base import (
    ChannelAdapter,
    ChannelResult,
    ChannelStatus,
    DeliveryRequest,
)
from notifyhub.services.channels.email import EmailAdapter
from notifyhub.services.channels.in_app import InAppAdapter
from notifyhub.services.channels.push import PushAdapter

__all__ = [
    "ChannelAdapter",
    "ChannelResult",
    "ChannelStatus",
    "DeliveryRequest",
    "EmailAdapter",
    "InAppAdapter",
    "PushAdapter",
]
