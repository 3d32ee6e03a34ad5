from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query

from ..dependencies import get_notification_service
from ..models import User
from ..schemas import NotificationRead, NotificationUpdate, envelope
from ..security import get_current_active_user
from ..services import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", summary="List my notifications")
async def list_notifications(
        current_user: Annotated[User, Depends(get_current_active_user)],
        notifications: Annotated[NotificationService, Depends(get_notification_service)],
        unread: bool = False,
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[int, Query(ge=1, le=100)] = 20,
):
    """
    Newest first, with the unread total for the badge.
    """
    items, total = notifications.list_for(current_user, unread_only=unread, skip=(page - 1) * limit, limit=limit)
    total_pages = -(-total // limit)
    return envelope({
        "notifications": items,
        "unread_count": notifications.unread_count(current_user),
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_items": total,
            "items_per_page": limit,
            "has_next_page": page < total_pages,
            "has_previous_page": page > 1,
        },
    })


@router.get("/unread-count", summary="Count unread notifications")
async def unread_count(
        current_user: Annotated[User, Depends(get_current_active_user)],
        notifications: Annotated[NotificationService, Depends(get_notification_service)],
):
    return envelope({"count": notifications.unread_count(current_user)})


@router.put("/{notification_id}", summary="Mark a notification read or unread")
async def mark_notification(
        notification_id: Annotated[int, Path(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        notifications: Annotated[NotificationService, Depends(get_notification_service)],
        payload: Annotated[NotificationUpdate, Body()] = NotificationUpdate(),
):
    notification = notifications.mark(current_user, notification_id, is_read=payload.is_read)
    return envelope(NotificationRead.model_validate(notification))


@router.delete("/{notification_id}", summary="Delete a notification")
async def delete_notification(
        notification_id: Annotated[int, Path(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        notifications: Annotated[NotificationService, Depends(get_notification_service)],
):
    notifications.delete(current_user, notification_id)
    return envelope({"message": "Notification deleted successfully"})
