"""Notification feed and read-state endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from notifyhub.core.auth import get_current_user
from notifyhub.core.database import get_db
from notifyhub.models.notification import NotificationType
from notifyhub.models.shared import utc_now
from notifyhub.repositories.notification_repository import NotificationRepository
from notifyhub.schemas.notification import (
    NotificationCountResponse,
    NotificationReadAllResponse,
    NotificationResponse,
)

router = APIRouter()


@router.get(
    "/",
    response_model=list[NotificationResponse],
    summary="List notifications",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def list_notifications(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    is_read: bool | None = None,
    type: NotificationType | None = None,
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> list[NotificationResponse]:
    """Return a page of the caller's feed.

    Rows returned here count as delivered in-app: this is how a user who was
    offline during the real-time push catches up.
    """
    repo = NotificationRepository(db)
    notifications = repo.get_feed(
        recipient_id=user_id,
        skip=skip,
        limit=limit,
        is_read=is_read,
        type=type.value if type else None,
        order_by=order_by,
    )
    repo.mark_in_app_delivered(notifications, utc_now())
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.get(
    "/unread_count",
    response_model=NotificationCountResponse,
    summary="Get unread notification count",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def get_unread_count(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> NotificationCountResponse:
    repo = NotificationRepository(db)
    return NotificationCountResponse(unread_count=repo.count_unread(user_id))


@router.post(
    "/read_all",
    response_model=NotificationReadAllResponse,
    summary="Mark all notifications as read",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def mark_all_as_read(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> NotificationReadAllResponse:
    """Mark all unread notifications as read."""
    repo = NotificationRepository(db)
    return NotificationReadAllResponse(updated_count=repo.mark_all_as_read(user_id))


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification as read",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        404: {"description": "Notification not found"},
    },
)
async def mark_as_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> NotificationResponse:
    """Mark a single notification as read."""
    repo = NotificationRepository(db)
    notification = repo.get_by_id(notification_id)
    if notification is None or notification.recipient_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    updated = repo.mark_as_read(notification_id)
    return NotificationResponse.model_validate(updated)
