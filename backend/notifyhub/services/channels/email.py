from __future__ import annotations

import logging

import aiosmtplib

from notifyhub.services.channels.base import ChannelAdapter, ChannelResult, DeliveryRequest
from notifyhub.services.email_service import EmailService

logger = logging.getLogger(__name__)


class EmailAdapter(ChannelAdapter):
    channel = "email"

    def __init__(self, email_service: EmailService | None = None):
        self.email_service = email_service or EmailService()

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        if not request.email:
            return ChannelResult.skipped("no email address on file")
        try:
            await self.email_service.send_notification_email(
                to=request.email,
                notification_type=request.type,
                message=request.message,
                count=int(request.payload.get("data", {}).get("count", 1)),
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.warning("Email delivery failed for %s: %s", request.notification_id, exc)
            return ChannelResult.failure(str(exc)[:500])
        return ChannelResult.success()
