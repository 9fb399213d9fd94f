"""Tests for channel dispatch, isolation and delivery status recording."""

import asyncio
import uuid
from datetime import UTC, datetime, timedelta

import pytest

from notifyhub.realtime.backplane import InMemoryBackplane
from notifyhub.realtime.fanout import RealtimeFanout
from notifyhub.repositories.contact_repository import ContactRepository
from notifyhub.repositories.notification_repository import NotificationRepository
from notifyhub.services.channels import (
    ChannelAdapter,
    ChannelResult,
    ChannelStatus,
    DeliveryRequest,
    InAppAdapter,
)
from notifyhub.services.delivery_router import DeliveryRouter, default_adapters
from notifyhub.services.preference_service import PreferenceService
from notifyhub.services.retry_service import retry_due
from tests.conftest import OWNER_ID, FakeConnection


class RecordingAdapter(ChannelAdapter):
    def __init__(self, channel: str, result: ChannelResult | None = None, delay: float = 0.0):
        self.channel = channel
        self.result = result or ChannelResult.success()
        self.delay = delay
        self.requests: list[DeliveryRequest] = []

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


class CrashingAdapter(ChannelAdapter):
    channel = "push"

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        raise ValueError("adapter bug")


@pytest.fixture
def notification(db_session):
    return NotificationRepository(db_session).create(
        recipient_id=OWNER_ID,
        sender_id="fan-1",
        type="COMMENT",
        resource_type="VIDEO",
        resource_id="video-1",
        message="Fan commented on your video",
        data={"videoId": "video-1"},
    )


@pytest.fixture
def contact(db_session):
    return ContactRepository(db_session).upsert(
        OWNER_ID, email="owner@example.com", push_tokens=["ExponentPushToken[abc]"]
    )


def _adapters(**overrides: ChannelAdapter) -> dict[str, ChannelAdapter]:
    adapters: dict[str, ChannelAdapter] = {
        "inApp": RecordingAdapter("inApp"),
        "email": RecordingAdapter("email"),
        "push": RecordingAdapter("push"),
    }
    adapters.update(overrides)
    return adapters


class TestDeliver:
    @pytest.mark.asyncio
    async def test_all_channels_succeed(self, db_session, notification, contact):
        adapters = _adapters()
        results = await DeliveryRouter(db_session, adapters).deliver(notification)

        assert {channel: r.status for channel, r in results.items()} == {
            "inApp": ChannelStatus.SUCCESS,
            "email": ChannelStatus.SUCCESS,
            "push": ChannelStatus.SUCCESS,
        }
        stored = NotificationRepository(db_session).get_by_id(notification.id)
        for channel in ("inApp", "email", "push"):
            assert stored.delivery_status[channel]["delivered"] is True
            assert stored.delivery_status[channel]["timestamp"] is not None
            assert stored.delivery_status[channel]["attempts"] == 1

    @pytest.mark.asyncio
    async def test_request_carries_contact_and_payload(self, db_session, notification, contact):
        adapters = _adapters()
        await DeliveryRouter(db_session, adapters).deliver(notification)

        request = adapters["email"].requests[0]  # type: ignore[attr-defined]
        assert request.email == "owner@example.com"
        assert request.push_tokens == ["ExponentPushToken[abc]"]
        assert request.payload["id"] == str(notification.id)
        assert request.payload["data"]["count"] == 1
        assert "inApp" in request.payload["delivery_status"]

    @pytest.mark.asyncio
    async def test_slow_channel_times_out_without_blocking_others(
        self, db_session, notification, contact
    ):
        adapters = _adapters(email=RecordingAdapter("email", delay=5))
        router = DeliveryRouter(db_session, adapters, timeout=0.05)

        loop = asyncio.get_running_loop()
        started = loop.time()
        results = await router.deliver(notification)
        elapsed = loop.time() - started

        assert elapsed < 1
        assert results["email"].status == ChannelStatus.TIMEOUT
        assert results["inApp"].delivered is True
        assert results["push"].delivered is True

        status = NotificationRepository(db_session).get_by_id(notification.id).delivery_status
        assert status["email"]["delivered"] is False
        assert "timed out" in status["email"]["error"]
        assert status["email"]["attempts"] == 1
        assert status["push"]["delivered"] is True

    @pytest.mark.asyncio
    async def test_crashing_adapter_is_isolated(self, db_session, notification, contact, caplog):
        results = await DeliveryRouter(db_session, _adapters(push=CrashingAdapter())).deliver(
            notification
        )

        assert results["push"].status == ChannelStatus.FAILURE
        assert results["push"].detail == "adapter bug"
        assert results["email"].delivered is True
        assert "push adapter crashed" in caplog.text

    @pytest.mark.asyncio
    async def test_disabled_channel_is_skipped_and_not_recorded(
        self, db_session, notification, contact
    ):
        PreferenceService(db_session).update(OWNER_ID, channels={"email": False})
        adapters = _adapters()

        results = await DeliveryRouter(db_session, adapters).deliver(notification)

        assert results["email"].status == ChannelStatus.SKIPPED
        assert adapters["email"].requests == []  # type: ignore[attr-defined]
        status = NotificationRepository(db_session).get_by_id(notification.id).delivery_status
        assert status["email"] == {
            "delivered": False,
            "timestamp": None,
            "attempts": 0,
            "error": None,
        }

    @pytest.mark.asyncio
    async def test_email_disabled_globally_never_delivers(self, db_session, notification, contact):
        PreferenceService(db_session).update(
            OWNER_ID,
            channels={"email": False},
            types={"COMMENT": {"channels": {"email": True}}},
        )
        await DeliveryRouter(db_session, _adapters()).deliver(notification)
        await DeliveryRouter(db_session, _adapters()).redeliver(notification, "email")

        status = NotificationRepository(db_session).get_by_id(notification.id).delivery_status
        assert status["email"]["delivered"] is False

    @pytest.mark.asyncio
    async def test_offline_in_app_leaves_delivered_false(self, db_session, notification):
        fanout = RealtimeFanout(InMemoryBackplane(), process_id="p1")
        adapters = _adapters(inApp=InAppAdapter(fanout))

        results = await DeliveryRouter(db_session, adapters).deliver(notification)

        assert results["inApp"].status == ChannelStatus.OFFLINE
        status = NotificationRepository(db_session).get_by_id(notification.id).delivery_status
        assert status["inApp"]["delivered"] is False
        assert status["inApp"]["attempts"] == 0

    @pytest.mark.asyncio
    async def test_online_in_app_pushes_notification(self, db_session, notification):
        fanout = RealtimeFanout(InMemoryBackplane(), process_id="p1")
        socket = FakeConnection()
        await fanout.connect(OWNER_ID, socket)

        results = await DeliveryRouter(
            db_session, _adapters(inApp=InAppAdapter(fanout))
        ).deliver(notification)

        assert results["inApp"].delivered is True
        assert len(socket.notifications) == 1
        assert socket.notifications[0]["data"]["id"] == str(notification.id)

    @pytest.mark.asyncio
    async def test_missing_adapter_is_skipped(self, db_session, notification):
        results = await DeliveryRouter(db_session, {}).deliver(notification)
        assert all(r.status == ChannelStatus.SKIPPED for r in results.values())

    @pytest.mark.asyncio
    async def test_redeliver_single_channel(self, db_session, notification, contact):
        adapters = _adapters()
        result = await DeliveryRouter(db_session, adapters).redeliver(notification, "push")

        assert result.delivered is True
        assert len(adapters["push"].requests) == 1  # type: ignore[attr-defined]
        assert adapters["email"].requests == []  # type: ignore[attr-defined]


class TestDeliveryStatusRecording:
    def test_failures_accumulate_attempts(self, db_session, notification):
        repo = NotificationRepository(db_session)
        now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        failed = {"delivered": False, "error": "HTTP 503", "attempted": True}

        repo.record_delivery(notification.id, {"push": failed}, now=now)
        stored = repo.record_delivery(notification.id, {"push": failed}, now=now)

        assert stored.delivery_status["push"]["attempts"] == 2
        assert stored.delivery_status["push"]["error"] == "HTTP 503"
        assert stored.delivery_status["push"]["last_attempt_at"] == now.isoformat()

    def test_success_clears_error(self, db_session, notification):
        repo = NotificationRepository(db_session)
        repo.record_delivery(
            notification.id, {"email": {"delivered": False, "error": "refused", "attempted": True}}
        )
        stored = repo.record_delivery(
            notification.id, {"email": {"delivered": True, "error": None, "attempted": True}}
        )
        assert stored.delivery_status["email"]["delivered"] is True
        assert stored.delivery_status["email"]["error"] is None

    def test_failure_after_success_clears_delivered(self, db_session, notification):
        repo = NotificationRepository(db_session)
        first = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        later = datetime(2026, 3, 1, 12, 5, tzinfo=UTC)
        repo.record_delivery(
            notification.id,
            {"email": {"delivered": True, "error": None, "attempted": True}},
            now=first,
        )
        stored = repo.record_delivery(
            notification.id,
            {"email": {"delivered": False, "error": "SMTP 421", "attempted": True}},
            now=later,
        )

        entry = stored.delivery_status["email"]
        assert entry["delivered"] is False
        assert entry["error"] == "SMTP 421"
        assert entry["attempts"] == 2
        assert entry["timestamp"] == first.isoformat()
        assert retry_due(entry, later + timedelta(hours=1), max_attempts=5)

    @pytest.mark.asyncio
    async def test_regrouped_resend_failure_is_recorded(self, db_session, notification, contact):
        router = DeliveryRouter(db_session, _adapters())
        await router.deliver(notification)

        failing = _adapters(email=RecordingAdapter("email", ChannelResult.failure("mailbox full")))
        await DeliveryRouter(db_session, failing).deliver(notification)

        db_session.refresh(notification)
        email = notification.delivery_status["email"]
        assert email["delivered"] is False
        assert email["error"] == "mailbox full"
        assert notification.delivery_status["push"]["delivered"] is True

    def test_unknown_notification(self, db_session):
        assert NotificationRepository(db_session).record_delivery(uuid.uuid4(), {}) is None


class TestDefaultAdapters:
    def test_worker_adapters_have_no_in_app(self):
        assert set(default_adapters()) == {"email", "push"}

    def test_app_adapters_include_in_app(self):
        fanout = RealtimeFanout(InMemoryBackplane(), process_id="p1")
        adapters = default_adapters(fanout)
        assert set(adapters) == {"inApp", "email", "push"}
        assert isinstance(adapters["inApp"], InAppAdapter)
