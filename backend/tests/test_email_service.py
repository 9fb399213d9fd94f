"""Tests for EmailService and the email channel adapter."""

from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from notifyhub.services.channels import ChannelStatus, DeliveryRequest, EmailAdapter
from notifyhub.services.email_service import EmailService, subject_for


def _request(**overrides):  # type: ignore[no-untyped-def]
    fields = {
        "notification_id": "n-1",
        "recipient_id": "user-1",
        "type": "LIKE",
        "message": "3 people liked your video",
        "payload": {"data": {"count": 3}},
        "email": "owner@example.com",
    }
    fields.update(overrides)
    return DeliveryRequest(**fields)


class TestSubjects:
    def test_known_type(self):
        assert subject_for("COMMENT") == "New comment on your video"

    def test_unknown_type(self):
        assert subject_for("POKE") == "You have a new notification"


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_returns_true_when_smtp_unconfigured(self) -> None:
        with patch("notifyhub.services.email_service.settings") as mock_settings:
            mock_settings.SMTP_HOST = ""
            result = await EmailService().send_email(
                to="test@example.com", subject="Test", html_body="<p>Hello</p>"
            )
        assert result is True

    @pytest.mark.asyncio
    async def test_sends_email_via_smtp(self) -> None:
        mock_send = AsyncMock()
        with (
            patch("notifyhub.services.email_service.settings") as mock_settings,
            patch("aiosmtplib.send", mock_send),
        ):
            mock_settings.SMTP_HOST = "smtp.example.com"
            mock_settings.SMTP_PORT = 587
            mock_settings.SMTP_USERNAME = ""
            mock_settings.SMTP_PASSWORD = ""
            mock_settings.SMTP_FROM_EMAIL = "notifications@example.com"
            mock_settings.SMTP_FROM_NAME = "Notifications"
            mock_settings.SMTP_USE_TLS = True

            result = await EmailService().send_email(
                to="test@example.com", subject="Hi", html_body="<p>Hello</p>"
            )

        assert result is True
        message = mock_send.call_args[0][0]
        assert message["To"] == "test@example.com"
        assert message["From"] == "Notifications <notifications@example.com>"
        call_kwargs = mock_send.call_args[1]
        assert call_kwargs["hostname"] == "smtp.example.com"
        assert call_kwargs["username"] is None
        assert call_kwargs["password"] is None
        assert call_kwargs["start_tls"] is True

    @pytest.mark.asyncio
    async def test_notification_email_escapes_message(self) -> None:
        service = EmailService()
        with patch.object(service, "send_email", AsyncMock(return_value=True)) as send:
            await service.send_notification_email(
                to="a@example.com", notification_type="COMMENT", message="<b>hi</b>", count=2
            )

        kwargs = send.call_args[1]
        assert kwargs["subject"] == "New comment on your video"
        assert "&lt;b&gt;hi&lt;/b&gt;" in kwargs["html_body"]
        assert "2 updates grouped" in kwargs["html_body"]


class TestEmailAdapter:
    @pytest.mark.asyncio
    async def test_skips_without_address(self):
        result = await EmailAdapter(EmailService()).send(_request(email=None))
        assert result.status == ChannelStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_success(self):
        service = EmailService()
        with patch.object(
            service, "send_notification_email", AsyncMock(return_value=True)
        ) as send:
            result = await EmailAdapter(service).send(_request())

        assert result.delivered is True
        send.assert_awaited_once_with(
            to="owner@example.com",
            notification_type="LIKE",
            message="3 people liked your video",
            count=3,
        )

    @pytest.mark.asyncio
    async def test_smtp_error_is_a_failure(self):
        service = EmailService()
        error = aiosmtplib.SMTPConnectError("connection refused")
        with patch.object(service, "send_notification_email", AsyncMock(side_effect=error)):
            result = await EmailAdapter(service).send(_request())

        assert result.status == ChannelStatus.FAILURE
        assert "connection refused" in result.detail
