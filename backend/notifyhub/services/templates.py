"""Message templates, rendered again every time a grouped row is bumped."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from notifyhub.models.notification import NotificationType


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _video(context: Mapping[str, Any]) -> str:
    title = context.get("videoTitle")
    return f'your video "{title}"' if title else "your video"


def _actor(context: Mapping[str, Any], key: str) -> str:
    return str(context.get(key) or "Someone")


def _comment(count: int, context: Mapping[str, Any]) -> str:
    if count == 1:
        return f"{_actor(context, 'actorName')} commented on {_video(context)}"
    return f"{_plural(count, 'new comment')} on {_video(context)}"


def _like(count: int, context: Mapping[str, Any]) -> str:
    target = "your comment" if context.get("commentId") else _video(context)
    if count == 1:
        return f"{_actor(context, 'actorName')} liked {target}"
    return f"{count} people liked {target}"


def _subscription(count: int, context: Mapping[str, Any]) -> str:
    if count == 1:
        return f"{_actor(context, 'actorName')} subscribed to your channel"
    return f"{_plural(count, 'new subscriber')} joined your channel"


def _video_upload(count: int, context: Mapping[str, Any]) -> str:
    title = context.get("videoTitle") or "a new video"
    owner = _actor(context, "actorName")
    if count == 1:
        return f'{owner} uploaded "{title}"' if context.get("videoTitle") else f"{owner} uploaded {title}"
    return f"{owner} uploaded {_plural(count, 'new video')}"


def _mention(count: int, context: Mapping[str, Any]) -> str:
    if count == 1:
        return f"{_actor(context, 'actorName')} mentioned you in a comment"
    return f"You were mentioned {count} times in a comment thread"


def _system(count: int, context: Mapping[str, Any]) -> str:
    title = context.get("videoTitle")
    subject = f'Your video "{title}"' if title else "Your video"
    if context.get("status") == "failed":
        return f"{subject} could not be processed"
    return f"{subject} is ready to watch"


TEMPLATES: dict[str, Callable[[int, Mapping[str, Any]], str]] = {
    NotificationType.COMMENT.value: _comment,
    NotificationType.LIKE.value: _like,
    NotificationType.SUBSCRIPTION.value: _subscription,
    NotificationType.VIDEO_UPLOAD.value: _video_upload,
    NotificationType.MENTION.value: _mention,
    NotificationType.SYSTEM.value: _system,
}


def render(notification_type: str, count: int, context: Mapping[str, Any]) -> str:
    template = TEMPLATES.get(str(notification_type))
    if template is None:
        raise KeyError(f"No message template for notification type {notification_type!r}")
    return template(max(int(count), 1), context)
