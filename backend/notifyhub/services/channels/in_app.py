from __future__ import annotations

from notifyhub.realtime.fanout import RealtimeFanout
from notifyhub.services.channels.base import ChannelAdapter, ChannelResult, ChannelStatus, DeliveryRequest


class InAppAdapter(ChannelAdapter):
    """Best-effort real-time push; an offline recipient catches up from the feed."""

    channel = "inApp"

    def __init__(self, fanout: RealtimeFanout):
        self.fanout = fanout

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        receivers = await self.fanout.publish_to_user(request.recipient_id, request.payload)
        if receivers == 0:
            return ChannelResult(ChannelStatus.OFFLINE, "no live connection")
        return ChannelResult.success(f"{receivers} process(es)")
