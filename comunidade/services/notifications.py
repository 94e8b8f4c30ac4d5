"""
Notification fan-out service.

Handles creation, retrieval, and read-state management of notifications
raised by comments, replies and reactions.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..cache import (
    cache_decr,
    cache_get_int,
    cache_incr,
    cache_set_int,
    rate_limit_check,
)
from ..errors import NotFound
from ..settings import NOTIFICATION_RATE_LIMIT_PER_HOUR

logger = logging.getLogger(__name__)

# Cache key patterns
UNREAD_COUNT_KEY = "notif:unread:{user_id}"
RATE_LIMIT_KEY = "notif:rate:{sender_id}:{recipient_id}"

PREVIEW_LENGTH = 100


def publication_link(publication_id: int, comment_id: int | None = None) -> str:
    link = f"/publicacao/{publication_id}"
    if comment_id is not None:
        link += f"#comment-{comment_id}"
    return link


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH] + "..."


def _best_effort(func):
    """Fan-out runs after the triggering write is committed: drop, log and move on."""

    @functools.wraps(func)
    def wrapper(db: Session, *args, **kwargs):
        try:
            return func(db, *args, **kwargs)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"{func.__name__} failed, notification dropped")
            return None

    return wrapper


class NotificationService:
    """Service for fanning out and managing notifications."""

    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        notification_type: str,
        title: str,
        message: str,
        link: str | None = None,
        sender: models.User | None = None,
    ) -> models.Notification | None:
        """
        Create a notification for a user.

        Args:
            db: Database session
            user_id: ID of the recipient
            notification_type: One of models.NOTIFICATION_TYPES
            title: Short headline
            message: Body text
            link: Deep link to the content
            sender: The user who performed the action (None for system events)

        Returns:
            Created notification, or None if skipped (self-action, rate limited,
            or the write failed)
        """
        # Don't notify users about their own actions
        if sender is not None and sender.id == user_id:
            logger.debug(f"Skipping self-notification for user {user_id}")
            return None

        if sender is not None:
            rate_key = RATE_LIMIT_KEY.format(sender_id=sender.id, recipient_id=user_id)
            if not rate_limit_check(rate_key, NOTIFICATION_RATE_LIMIT_PER_HOUR):
                logger.warning(
                    f"Rate limit exceeded for notifications from user {sender.id} to user {user_id}"
                )
                return None

        notification = models.Notification(
            user_id=user_id,
            sender_id=sender.id if sender else None,
            type=notification_type,
            title=title,
            message=message,
            link=link,
            sender_name=sender.name if sender else None,
            sender_avatar_url=sender.avatar_url if sender else None,
            read=False,
        )

        # Fan-out is a side effect of an already committed write: a failure
        # here is logged and must not surface to the caller.
        try:
            db.add(notification)
            db.commit()
            db.refresh(notification)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                f"Failed to create {notification_type} notification for user {user_id}"
            )
            return None

        logger.info(
            f"Created {notification_type} notification {notification.id} for user {user_id}"
        )

        NotificationService._increment_unread_count(user_id)

        return notification

    @staticmethod
    @_best_effort
    def notify_comment(
        db: Session,
        publication: models.Publication,
        comment: models.Comment,
        sender: models.User,
    ) -> models.Notification | None:
        """Notify the publication owner about a new top-level comment."""
        return NotificationService.create_notification(
            db=db,
            user_id=publication.user_id,
            notification_type="comment",
            title="Novo comentário",
            message=f'{sender.name} comentou em "{publication.title}": {_preview(comment.content)}',
            link=publication_link(publication.id, comment.id),
            sender=sender,
        )

    @staticmethod
    @_best_effort
    def notify_reply(
        db: Session,
        publication: models.Publication,
        parent: models.Comment,
        reply: models.Comment,
        sender: models.User,
    ) -> models.Notification | None:
        """Notify the parent comment's owner about a reply."""
        return NotificationService.create_notification(
            db=db,
            user_id=parent.user_id,
            notification_type="reply",
            title="Nova resposta",
            message=f"{sender.name} respondeu ao seu comentário: {_preview(reply.content)}",
            link=publication_link(publication.id, reply.id),
            sender=sender,
        )

    @staticmethod
    @_best_effort
    def notify_reaction(
        db: Session,
        target_type: str,
        target_owner_id: int,
        publication: models.Publication,
        sender: models.User,
        comment_id: int | None = None,
    ) -> models.Notification | None:
        """Notify the owner of a publication or comment about a new reaction."""
        if target_type == "comment":
            message = f"{sender.name} curtiu seu comentário"
        else:
            message = f'{sender.name} curtiu sua publicação "{publication.title}"'
        return NotificationService.create_notification(
            db=db,
            user_id=target_owner_id,
            notification_type="reaction",
            title="Nova curtida",
            message=message,
            link=publication_link(publication.id, comment_id),
            sender=sender,
        )

    @staticmethod
    @_best_effort
    def create_system_notification(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        link: str | None = None,
        actor: models.User | None = None,
    ) -> models.Notification | None:
        """
        Create a system notification (moderation outcomes and the like).

        The acting moderator is recorded as sender so self-actions are skipped.
        """
        return NotificationService.create_notification(
            db=db,
            user_id=user_id,
            notification_type="system",
            title=title,
            message=message,
            link=link,
            sender=actor,
        )

    @staticmethod
    def get_unread_count(db: Session, user_id: int) -> int:
        """
        Get unread notification count for a user.

        Uses Redis cache with database fallback.
        """
        cache_key = UNREAD_COUNT_KEY.format(user_id=user_id)
        cached = cache_get_int(cache_key)
        if cached is not None:
            return cached

        count = (
            db.query(func.count(models.Notification.id))
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.read == False,
            )
            .scalar()
            or 0
        )

        cache_set_int(cache_key, count)

        return count

    @staticmethod
    def list_notifications(
        db: Session,
        user_id: int,
        limit: int = 20,
        cursor: int | None = None,
        unread_only: bool = False,
        since: datetime | None = None,
    ) -> tuple[list[models.Notification], int | None]:
        """
        List notifications for a user, newest first.

        Args:
            db: Database session
            user_id: Recipient ID
            limit: Maximum number of notifications to return
            cursor: Only return notifications older than this notification ID
            unread_only: If True, only return unread notifications
            since: Only return notifications created after this instant
                (lets polling clients fetch just what is new)

        Returns:
            Tuple of (notifications, next_cursor)
        """
        query = db.query(models.Notification).filter(
            models.Notification.user_id == user_id
        )

        if unread_only:
            query = query.filter(models.Notification.read == False)

        if cursor is not None:
            query = query.filter(models.Notification.id < cursor)

        if since is not None:
            query = query.filter(models.Notification.created_at > since)

        query = query.order_by(
            models.Notification.created_at.desc(), models.Notification.id.desc()
        )

        # Fetch limit + 1 to determine if there are more results
        notifications = query.limit(limit + 1).all()

        has_more = len(notifications) > limit
        items = notifications[:limit]

        next_cursor = items[-1].id if has_more and items else None

        return items, next_cursor

    @staticmethod
    def mark_read(db: Session, notification_id: int, user_id: int) -> None:
        """
        Mark one notification as read. Already-read notifications are a no-op.

        Raises NotFound if the notification does not belong to the user.
        """
        notification = (
            db.query(models.Notification)
            .filter(
                models.Notification.id == notification_id,
                models.Notification.user_id == user_id,
            )
            .first()
        )
        if not notification:
            raise NotFound("Notificação não encontrada")

        if notification.read:
            return

        notification.read = True
        notification.read_at = datetime.now(timezone.utc)
        db.commit()

        NotificationService._decrement_unread_count(user_id, 1)

    @staticmethod
    def mark_as_read(db: Session, notification_ids: list[int], user_id: int) -> int:
        """
        Mark specific notifications as read.

        Only notifications belonging to user_id are touched.

        Returns:
            Number of notifications updated
        """
        if not notification_ids:
            return 0

        count = (
            db.query(models.Notification)
            .filter(
                models.Notification.id.in_(notification_ids),
                models.Notification.user_id == user_id,
                models.Notification.read == False,
            )
            .update(
                {"read": True, "read_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )

        db.commit()

        if count > 0:
            NotificationService._decrement_unread_count(user_id, count)

        return count

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int) -> int:
        """
        Mark all notifications as read for a user.

        Returns:
            Number of notifications updated
        """
        count = (
            db.query(models.Notification)
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.read == False,
            )
            .update(
                {"read": True, "read_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )

        db.commit()

        if count > 0:
            cache_set_int(UNREAD_COUNT_KEY.format(user_id=user_id), 0)

        return count

    # =========================================================================
    # Private helper methods
    # =========================================================================

    @staticmethod
    def _increment_unread_count(user_id: int) -> None:
        cache_incr(UNREAD_COUNT_KEY.format(user_id=user_id))

    @staticmethod
    def _decrement_unread_count(user_id: int, amount: int = 1) -> None:
        cache_decr(UNREAD_COUNT_KEY.format(user_id=user_id), amount)
