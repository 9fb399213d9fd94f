"""Email service for sending notification emails via SMTP."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from html import escape

from notifyhub.core.config import settings

logger = logging.getLogger(__name__)

SUBJECTS = {
    "COMMENT": "New comment on your video",
    "LIKE": "Someone liked your content",
    "SUBSCRIPTION": "You have a new subscriber",
    "VIDEO_UPLOAD": "New video from a channel you follow",
    "MENTION": "You were mentioned",
    "SYSTEM": "Update on your video",
}


def subject_for(notification_type: str) -> str:
    return SUBJECTS.get(notification_type, "You have a new notification")


class EmailService:
    """Service for sending notification emails via SMTP."""

    async def send_email(self, to: str, subject: str, html_body: str) -> bool:
        """Send an email via SMTP.

        Args:
            to: Recipient email address.
            subject: Email subject line.
            html_body: HTML content of the email.

        Returns:
            True if sent successfully (or no-op when SMTP unconfigured).
        """
        if not settings.SMTP_HOST:
            logger.info("SMTP not configured, skipping email to %s: %s", to, subject)
            return True

        import aiosmtplib

        msg = EmailMessage()
        msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("Please view this email in an HTML-capable client.")
        msg.add_alternative(html_body, subtype="html")

        await aiosmtplib.send(
            msg,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME or None,
            password=settings.SMTP_PASSWORD or None,
            start_tls=settings.SMTP_USE_TLS,
        )
        logger.info("Email sent to %s: %s", to, subject)
        return True

    async def send_notification_email(
        self, to: str, notification_type: str, message: str, count: int = 1
    ) -> bool:
        """Send the email rendering of one notification."""
        html_body = (
            f"<h2>{escape(subject_for(notification_type))}</h2>"
            f"<p>{escape(message)}</p>"
        )
        if count > 1:
            html_body += f"<p><small>{count} updates grouped into this email.</small></p>"
        html_body += "<p>You can change which emails you receive in your notification settings.</p>"
        return await self.send_email(to=to, subject=subject_for(notification_type), html_body=html_body)
