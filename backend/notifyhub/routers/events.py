"""Inbound event endpoint for producers running outside this process."""

import logging

from fastapi import APIRouter, Depends, status

from notifyhub.core.auth import get_current_user
from notifyhub.core.dependencies import get_event_bus
from notifyhub.schemas.event import EventAcceptedResponse, EventPublishRequest
from notifyhub.services.event_bus import EventBus

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/",
    response_model=EventAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Publish an application event",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        422: {"description": "Unknown event type"},
    },
)
async def publish_event(
    data: EventPublishRequest,
    bus: EventBus = Depends(get_event_bus),
    user_id: str = Depends(get_current_user),
) -> EventAcceptedResponse:
    """Hand an event to the notification pipeline and return immediately.

    Payload validation happens in the handlers; a malformed payload is
    logged there and never fails this request.
    """
    event = bus.publish(data.type.value, data.payload)
    logger.debug("Accepted %s event from %s", event.type, user_id)
    return EventAcceptedResponse(
        type=data.type,
        occurred_at=event.occurred_at.isoformat(),
        subscribers=len(bus.handlers_for(event.type)),
    )
