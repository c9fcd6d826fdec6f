"""Notification inbox API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pms.api.deps import http_error, require_auth
from pms.db.session import get_db
from pms.models.user import User
from pms.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationPagination,
    NotificationRead,
)
from pms.services.errors import CoreError
from pms.services.notifications import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
def api_list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> NotificationListResponse:
    """Current user's notifications, newest first."""
    result = list_notifications(db, user.id, page=page, limit=limit, unread_only=unread_only)
    return NotificationListResponse(
        notifications=[NotificationRead.model_validate(n) for n in result.items],
        pagination=NotificationPagination(
            current_page=result.page,
            total_pages=result.total_pages,
            total_count=result.total,
            unread_count=result.unread_count,
        ),
    )


@router.patch("/read-all", response_model=MarkAllReadResponse)
def api_mark_all_read(
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> MarkAllReadResponse:
    """Mark all of the current user's notifications read."""
    return MarkAllReadResponse(updated=mark_all_notifications_read(db, user.id))


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def api_mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> NotificationRead:
    """Mark one notification read."""
    try:
        notification = mark_notification_read(db, user.id, notification_id)
    except CoreError as exc:
        raise http_error(exc) from exc
    return NotificationRead.model_validate(notification)
