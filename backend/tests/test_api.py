"""End-to-end tests through the app lifespan: events, WebSocket delivery and health."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from notifyhub.core.database import new_session
from notifyhub.main import app, build_backplane
from notifyhub.models.notification import Notification
from notifyhub.realtime.backplane import InMemoryBackplane
from tests.conftest import OWNER_ID, VIEWER_ID, auth_headers, make_token

COMMENT_EVENT = {
    "type": "NEW_COMMENT",
    "payload": {
        "commentId": "comment-1",
        "videoId": "video-1",
        "videoOwnerId": OWNER_ID,
        "authorId": VIEWER_ID,
        "authorName": "Viewer",
        "videoTitle": "Cooking 101",
    },
}


def _notifications() -> list[Notification]:
    db = new_session()
    try:
        return db.query(Notification).all()
    finally:
        db.close()


class TestLifespan:
    def test_memory_backplane_selected(self):
        assert isinstance(build_backplane(), InMemoryBackplane)

    def test_health(self):
        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["realtime"]["backplane"] == "ok"
        assert body["realtime"]["local_connections"] == 0


class TestEventsApi:
    def test_publish_is_accepted_and_processed(self):
        with TestClient(app) as client:
            response = client.post("/v1/events/", json=COMMENT_EVENT, headers=auth_headers(VIEWER_ID))
            assert response.status_code == 202
            body = response.json()
            assert body["type"] == "NEW_COMMENT"
            assert body["subscribers"] == 1
        # Shutdown drains the bus.

        [notification] = _notifications()
        assert notification.recipient_id == OWNER_ID
        assert notification.type == "COMMENT"

    def test_malformed_payload_is_still_accepted(self):
        with TestClient(app) as client:
            response = client.post(
                "/v1/events/",
                json={"type": "NEW_LIKE", "payload": {"videoId": "v"}},
                headers=auth_headers(VIEWER_ID),
            )
            assert response.status_code == 202

        assert _notifications() == []

    def test_unknown_event_type(self):
        with TestClient(app) as client:
            response = client.post(
                "/v1/events/",
                json={"type": "NEW_POKE", "payload": {}},
                headers=auth_headers(VIEWER_ID),
            )
        assert response.status_code == 422

    def test_requires_auth(self):
        with TestClient(app) as client:
            assert client.post("/v1/events/", json=COMMENT_EVENT).status_code == 401


class TestRealtimeSocket:
    def test_rejects_invalid_token(self):
        with TestClient(app) as client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect("/v1/realtime/ws?token=garbage"):
                    pass
        assert exc_info.value.code == 1008

    def test_live_session_receives_notification(self):
        token = make_token(OWNER_ID)
        with TestClient(app) as client:
            with client.websocket_connect(f"/v1/realtime/ws?token={token}") as websocket:
                greeting = websocket.receive_json()
                assert greeting["type"] == "connection_successful"
                assert client.get("/health").json()["realtime"]["local_connections"] == 1

                client.post("/v1/events/", json=COMMENT_EVENT, headers=auth_headers(VIEWER_ID))
                frame = websocket.receive_json()

            assert frame["type"] == "notification"
            assert frame["data"]["recipient_id"] == OWNER_ID
            assert frame["data"]["message"] == 'Viewer commented on your video "Cooking 101"'
            assert frame["data"]["data"]["count"] == 1

        [notification] = _notifications()
        assert notification.delivery_status["inApp"]["delivered"] is True

    def test_other_users_receive_nothing(self):
        with TestClient(app) as client:
            token = make_token("bystander")
            with client.websocket_connect(f"/v1/realtime/ws?token={token}") as websocket:
                websocket.receive_json()
                client.post("/v1/events/", json=COMMENT_EVENT, headers=auth_headers(VIEWER_ID))
                # Sent after the event; it would arrive second if a notification leaked.
                client.post(
                    "/v1/events/",
                    json={
                        "type": "NEW_SUBSCRIPTION",
                        "payload": {"channelId": "bystander", "subscriberId": VIEWER_ID},
                    },
                    headers=auth_headers(VIEWER_ID),
                )
                frame = websocket.receive_json()

        assert frame["data"]["type"] == "SUBSCRIPTION"
