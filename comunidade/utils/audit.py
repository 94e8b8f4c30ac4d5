"""Audit logging utility for moderation actions."""

from __future__ import annotations

from sqlalchemy.orm import Session

from .. import models


def log_moderation_action(
    db: Session,
    actor_id: int,
    action: str,
    city_id: int | None = None,
    target_type: str | None = None,
    target_id: int | None = None,
    note: str | None = None,
) -> models.AuditLog:
    """
    Record a moderation action in the audit log.

    The entry is added to the caller's session and committed together with the
    action it describes.

    Args:
        db: Database session
        actor_id: ID of the user performing the action
        action: Action name (e.g., "approve_publication", "hide_publication")
        city_id: Tenant the action applies to, if any
        target_type: Type of target (e.g., "publication", "comment")
        target_id: ID of the target entity
        note: Additional context

    Returns:
        The pending AuditLog entry
    """
    audit_entry = models.AuditLog(
        actor_id=actor_id,
        city_id=city_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        note=note,
    )
    db.add(audit_entry)
    return audit_entry


def list_moderation_actions(
    db: Session, city_id: int, limit: int = 50
) -> list[models.AuditLog]:
    return (
        db.query(models.AuditLog)
        .filter(models.AuditLog.city_id == city_id)
        .order_by(models.AuditLog.created_at.desc(), models.AuditLog.id.desc())
        .limit(limit)
        .all()
    )
