"""Pydantic schemas for Notification."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ChannelDeliveryStatus(BaseModel):
    delivered: bool = False
    timestamp: str | None = None


class DeliveryStatusResponse(BaseModel):
    in_app: ChannelDeliveryStatus = Field(default_factory=ChannelDeliveryStatus, alias="inApp")
    email: ChannelDeliveryStatus = Field(default_factory=ChannelDeliveryStatus)
    push: ChannelDeliveryStatus = Field(default_factory=ChannelDeliveryStatus)

    model_config = {"populate_by_name": True}


class NotificationResponse(BaseModel):
    id: UUID
    recipient_id: str
    sender_id: str | None
    type: str
    resource_type: str
    resource_id: str
    message: str
    is_read: bool
    delivery_status: DeliveryStatusResponse
    data: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def expose_group_count(cls, value: Any) -> Any:
        """Surface ``group_count`` as ``data.count`` on the wire."""
        if isinstance(value, dict):
            return value
        data = dict(getattr(value, "data", None) or {})
        data["count"] = int(getattr(value, "group_count", None) or 1)
        return {
            "id": value.id,
            "recipient_id": value.recipient_id,
            "sender_id": value.sender_id,
            "type": value.type,
            "resource_type": value.resource_type,
            "resource_id": value.resource_id,
            "message": value.message,
            "is_read": value.is_read,
            "delivery_status": value.delivery_status or {},
            "data": data,
            "created_at": value.created_at,
            "updated_at": value.updated_at,
        }


class NotificationCountResponse(BaseModel):
    unread_count: int


class NotificationReadAllResponse(BaseModel):
    updated_count: int
