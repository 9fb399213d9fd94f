"""Tests for notification message templates."""

import pytest

from notifyhub.services import templates


class TestRender:
    @pytest.mark.parametrize(
        ("notification_type", "context", "expected"),
        [
            ("COMMENT", {"actorName": "Ana", "videoTitle": "Cats"}, 'Ana commented on your video "Cats"'),
            ("LIKE", {"actorName": "Ana"}, "Ana liked your video"),
            ("LIKE", {"actorName": "Ana", "commentId": "c1"}, "Ana liked your comment"),
            ("SUBSCRIPTION", {"actorName": "Ana"}, "Ana subscribed to your channel"),
            ("VIDEO_UPLOAD", {"actorName": "Chef", "videoTitle": "Pie"}, 'Chef uploaded "Pie"'),
            ("MENTION", {"actorName": "Ana"}, "Ana mentioned you in a comment"),
            ("SYSTEM", {"videoTitle": "Pie"}, 'Your video "Pie" is ready to watch'),
        ],
    )
    def test_single(self, notification_type, context, expected):
        assert templates.render(notification_type, 1, context) == expected

    @pytest.mark.parametrize(
        ("notification_type", "context", "expected"),
        [
            ("COMMENT", {"videoTitle": "Cats"}, '4 new comments on your video "Cats"'),
            ("LIKE", {}, "4 people liked your video"),
            ("SUBSCRIPTION", {}, "4 new subscribers joined your channel"),
            ("VIDEO_UPLOAD", {"actorName": "Chef"}, "Chef uploaded 4 new videos"),
            ("MENTION", {}, "You were mentioned 4 times in a comment thread"),
        ],
    )
    def test_grouped(self, notification_type, context, expected):
        assert templates.render(notification_type, 4, context) == expected

    def test_missing_actor_falls_back(self):
        assert templates.render("LIKE", 1, {}) == "Someone liked your video"

    def test_failed_processing(self):
        assert templates.render("SYSTEM", 1, {"status": "failed"}) == (
            "Your video could not be processed"
        )

    def test_count_below_one_is_treated_as_one(self):
        assert templates.render("LIKE", 0, {"actorName": "Ana"}) == "Ana liked your video"

    def test_unknown_type(self):
        with pytest.raises(KeyError):
            templates.render("POKE", 1, {})
