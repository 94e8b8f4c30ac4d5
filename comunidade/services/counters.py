"""Denormalized counter maintenance for publications and comments.

Counters are adjusted after the primary row is committed. A failed adjustment
is logged and left for reconciliation; the primary write is never rolled back.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models

logger = logging.getLogger(__name__)


def _adjust(db: Session, model, row_id: int, field: str, delta: int) -> bool:
    column = getattr(model, field)
    try:
        db.query(model).filter(model.id == row_id).update(
            {column: case((column + delta < 0, 0), else_=column + delta)},
            synchronize_session=False,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            f"Failed to adjust {model.__tablename__}.{field} by {delta} for id {row_id}"
        )
        return False
    return True


def adjust_comments_count(db: Session, publication_id: int, delta: int) -> bool:
    return _adjust(db, models.Publication, publication_id, "comments_count", delta)


def adjust_reactions_count(db: Session, target_type: str, target_id: int, delta: int) -> bool:
    model = models.Publication if target_type == "publication" else models.Comment
    return _adjust(db, model, target_id, "reactions_count", delta)


def recount_publication(db: Session, publication_id: int) -> tuple[int, int]:
    """
    Re-derive both publication counters from the underlying rows.

    Returns:
        Tuple of (comments_count, reactions_count)
    """
    comments_count = (
        db.query(func.count(models.Comment.id))
        .filter(models.Comment.publication_id == publication_id)
        .scalar()
        or 0
    )
    reactions_count = (
        db.query(func.count(models.Reaction.id))
        .filter(
            models.Reaction.target_type == "publication",
            models.Reaction.target_id == publication_id,
        )
        .scalar()
        or 0
    )
    db.query(models.Publication).filter(models.Publication.id == publication_id).update(
        {"comments_count": comments_count, "reactions_count": reactions_count},
        synchronize_session=False,
    )
    db.commit()
    return comments_count, reactions_count
