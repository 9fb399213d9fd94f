"""Inbound event contract: event types and their payload schemas."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventType(str, Enum):
    NEW_SUBSCRIPTION = "NEW_SUBSCRIPTION"
    NEW_VIDEO = "NEW_VIDEO"
    NEW_COMMENT = "NEW_COMMENT"
    NEW_LIKE = "NEW_LIKE"
    VIDEO_PROCESSED = "VIDEO_PROCESSED"
    MENTION = "MENTION"


class _Payload(BaseModel):
    # Producers send camelCase; snake_case is accepted too.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class NewCommentPayload(_Payload):
    comment_id: str = Field(..., min_length=1)
    video_id: str = Field(..., min_length=1)
    video_owner_id: str = Field(..., min_length=1)
    author_id: str = Field(..., min_length=1)
    author_name: str | None = None
    video_title: str | None = None
    content: str | None = None


class NewLikePayload(_Payload):
    video_id: str = Field(..., min_length=1)
    video_owner_id: str = Field(..., min_length=1)
    liker_id: str = Field(..., min_length=1)
    liker_name: str | None = None
    video_title: str | None = None
    comment_id: str | None = None
    comment_author_id: str | None = None


class NewSubscriptionPayload(_Payload):
    channel_id: str = Field(..., min_length=1)
    subscriber_id: str = Field(..., min_length=1)
    subscriber_name: str | None = None


class NewVideoPayload(_Payload):
    video_id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    owner_name: str | None = None
    video_title: str | None = None
    subscriber_ids: list[str] = Field(default_factory=list)


class VideoProcessedPayload(_Payload):
    video_id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    video_title: str | None = None
    status: str = "ready"


class MentionPayload(_Payload):
    comment_id: str = Field(..., min_length=1)
    video_id: str = Field(..., min_length=1)
    author_id: str = Field(..., min_length=1)
    author_name: str | None = None
    mentioned_user_ids: list[str] = Field(default_factory=list)


EVENT_PAYLOAD_SCHEMAS: dict[EventType, type[_Payload]] = {
    EventType.NEW_COMMENT: NewCommentPayload,
    EventType.NEW_LIKE: NewLikePayload,
    EventType.NEW_SUBSCRIPTION: NewSubscriptionPayload,
    EventType.NEW_VIDEO: NewVideoPayload,
    EventType.VIDEO_PROCESSED: VideoProcessedPayload,
    EventType.MENTION: MentionPayload,
}


class EventPublishRequest(BaseModel):
    type: EventType
    payload: dict[str, Any] = Field(default_factory=dict)


class EventAcceptedResponse(BaseModel):
    type: EventType
    occurred_at: str
    subscribers: int
