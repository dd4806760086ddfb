"""
Notifications Router - in-app notifications and email preferences.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from careerbridge.core.deps import get_current_user, get_db, require_csrf_header
from careerbridge.db.models import User
from careerbridge.schemas.common import ApiResponse
from careerbridge.schemas.notification import (
    NotificationListResponse,
    NotificationRead,
    NotificationSettingsRead,
    NotificationSettingsUpdate,
)
from careerbridge.services import notification_service

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=ApiResponse[NotificationListResponse])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get user's notifications."""
    notifications = notification_service.get_notifications(
        db, user.id, unread_only=unread_only, limit=limit, offset=offset
    )
    unread_count = notification_service.get_unread_count(db, user.id)
    return ApiResponse(data=NotificationListResponse(
        items=[NotificationRead.model_validate(n) for n in notifications],
        unread_count=unread_count,
    ))


@router.patch(
    "/notifications/{notification_id}/read",
    response_model=ApiResponse[NotificationRead],
    dependencies=[Depends(require_csrf_header)],
)
def mark_notification_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = notification_service.mark_read(db, notification_id, user.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return ApiResponse(data=NotificationRead.model_validate(notification))


@router.post(
    "/notifications/read-all",
    response_model=ApiResponse[dict],
    dependencies=[Depends(require_csrf_header)],
)
def mark_all_notifications_read(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = notification_service.mark_all_read(db, user.id)
    return ApiResponse(data={"marked_read": count})


@router.get("/notification-settings", response_model=ApiResponse[NotificationSettingsRead])
def get_notification_settings(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    settings = notification_service.get_user_settings(db, user.id)
    return ApiResponse(data=NotificationSettingsRead(**settings))


@router.put(
    "/notification-settings",
    response_model=ApiResponse[NotificationSettingsRead],
    dependencies=[Depends(require_csrf_header)],
)
def update_notification_settings(
    body: NotificationSettingsUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Partial update; omitted fields keep their current values."""
    updates = body.model_dump(exclude_unset=True, mode="json")
    settings = notification_service.update_user_settings(db, user.id, updates)
    return ApiResponse(data=NotificationSettingsRead(**settings))
