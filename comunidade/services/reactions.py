"""
Reaction toggle service.

At most one reaction row exists per (target_type, target_id, user_id). The
store's unique constraint is the only lock: a concurrent duplicate insert is
rejected there and reported back as "already reacted".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFound, ValidationError
from . import counters
from .notifications import NotificationService
from .publications import get_visible_publication

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReactionResult:
    reacted: bool


def _load_target(
    db: Session, target_type: str, target_id: int, user: models.User
) -> tuple[models.Publication, models.Comment | None]:
    if target_type not in models.REACTION_TARGET_TYPES:
        raise ValidationError(f"Tipo de alvo inválido: {target_type}")

    if target_type == "publication":
        return get_visible_publication(db, target_id, user), None

    comment = db.query(models.Comment).filter(models.Comment.id == target_id).first()
    if not comment:
        raise NotFound("Comentário não encontrado")
    return get_visible_publication(db, comment.publication_id, user), comment


def _find_reaction(
    db: Session, target_type: str, target_id: int, user_id: int
) -> models.Reaction | None:
    return (
        db.query(models.Reaction)
        .filter(
            models.Reaction.target_type == target_type,
            models.Reaction.target_id == target_id,
            models.Reaction.user_id == user_id,
        )
        .first()
    )


def toggle(
    db: Session, target_type: str, target_id: int, user: models.User
) -> ReactionResult:
    """
    Add the user's reaction if absent, remove it if present.

    The returned flag is authoritative; clients reconcile optimistic counts
    against it. Removing a reaction does not retract its notification.
    Nothing after the commit can change the outcome: counters and the
    notification are best-effort.
    """
    publication, comment = _load_target(db, target_type, target_id, user)

    # Committing expires loaded rows; read what the side effects need first
    user_id = user.id
    target_owner_id = comment.user_id if comment is not None else publication.user_id
    comment_id = comment.id if comment is not None else None

    existing = _find_reaction(db, target_type, target_id, user_id)
    if existing is not None:
        removed = (
            db.query(models.Reaction)
            .filter(models.Reaction.id == existing.id)
            .delete(synchronize_session=False)
        )
        db.commit()
        # A concurrent unreact may have removed it first
        if removed:
            counters.adjust_reactions_count(db, target_type, target_id, -1)
        logger.debug(f"User {user_id} removed reaction on {target_type} {target_id}")
        return ReactionResult(reacted=False)

    reaction = models.Reaction(
        target_type=target_type,
        target_id=target_id,
        user_id=user_id,
        type="like",
    )
    try:
        db.add(reaction)
        db.commit()
    except IntegrityError:
        # Lost the race against a concurrent toggle from the same user
        db.rollback()
        logger.info(
            f"Duplicate reaction from user {user_id} on {target_type} {target_id}; "
            "treating as already reacted"
        )
        return ReactionResult(reacted=True)

    counters.adjust_reactions_count(db, target_type, target_id, 1)

    NotificationService.notify_reaction(
        db=db,
        target_type=target_type,
        target_owner_id=target_owner_id,
        publication=publication,
        sender=user,
        comment_id=comment_id,
    )

    logger.debug(f"User {user_id} reacted to {target_type} {target_id}")
    return ReactionResult(reacted=True)


def has_reacted(db: Session, target_type: str, target_id: int, user_id: int) -> bool:
    return _find_reaction(db, target_type, target_id, user_id) is not None


def reacted_target_ids(
    db: Session, target_type: str, target_ids: list[int], user_id: int
) -> set[int]:
    """Return the subset of target_ids the user has reacted to."""
    if not target_ids:
        return set()
    rows = (
        db.query(models.Reaction.target_id)
        .filter(
            models.Reaction.target_type == target_type,
            models.Reaction.target_id.in_(target_ids),
            models.Reaction.user_id == user_id,
        )
        .all()
    )
    return {row.target_id for row in rows}
