"""Notification inbox endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..db import run_with_retry
from ..deps import get_db
from ..services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=schemas.Page[schemas.Notification])
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    cursor: int | None = Query(None, ge=1),
    unread_only: bool = False,
    since: datetime | None = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Page[schemas.Notification]:
    """
    Get the current user's notifications, newest first.

    Pass `since` to fetch only what arrived after the last poll.
    """
    items, next_cursor = run_with_retry(
        db,
        lambda: NotificationService.list_notifications(
            db,
            current_user.id,
            limit=limit,
            cursor=cursor,
            unread_only=unread_only,
            since=since,
        ),
    )
    return schemas.Page[schemas.Notification](
        items=[schemas.Notification.model_validate(n) for n in items],
        next_cursor=str(next_cursor) if next_cursor is not None else None,
    )


@router.get("/unread-count", response_model=schemas.NotificationUnreadCount)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.NotificationUnreadCount:
    """Get unread notification count (cached)."""
    count = run_with_retry(
        db, lambda: NotificationService.get_unread_count(db, current_user.id)
    )
    return schemas.NotificationUnreadCount(unread_count=count)


@router.post("/{id}/read", response_model=schemas.NotificationUnreadCount)
def mark_notification_read(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.NotificationUnreadCount:
    """Mark one notification as read. Idempotent."""
    run_with_retry(db, lambda: NotificationService.mark_read(db, id, current_user.id))
    count = NotificationService.get_unread_count(db, current_user.id)
    return schemas.NotificationUnreadCount(unread_count=count)


@router.post("/mark-read", response_model=schemas.NotificationUnreadCount)
def mark_notifications_read(
    payload: schemas.NotificationMarkRead,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.NotificationUnreadCount:
    """Mark a batch of notifications as read; IDs of other users are ignored."""
    run_with_retry(
        db,
        lambda: NotificationService.mark_as_read(
            db, payload.notification_ids, current_user.id
        ),
    )
    count = NotificationService.get_unread_count(db, current_user.id)
    return schemas.NotificationUnreadCount(unread_count=count)


@router.post("/mark-all-read", response_model=schemas.NotificationUnreadCount)
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.NotificationUnreadCount:
    """Mark all notifications as read."""
    run_with_retry(db, lambda: NotificationService.mark_all_as_read(db, current_user.id))
    return schemas.NotificationUnreadCount(unread_count=0)
