"""
Comment thread service.

Threads are at most one level deep: a top-level comment may carry replies,
replies may not be replied to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session, joinedload

from .. import models
from ..errors import InvalidTransition, NotFound, ValidationError
from ..settings import COMMENT_MAX_LENGTH
from . import counters, reactions, tenancy
from .notifications import NotificationService
from .publications import PUBLIC_STATUSES, get_publication, get_visible_publication

logger = logging.getLogger(__name__)


@dataclass
class CommentNode:
    """A comment annotated for one viewer, with its replies."""

    comment: models.Comment
    reactions_count: int
    user_reacted: bool
    replies: list["CommentNode"] = field(default_factory=list)


def create_comment(
    db: Session,
    publication_id: int,
    content: str,
    author: models.User,
    parent_id: int | None = None,
) -> models.Comment:
    """
    Create a top-level comment, or a reply when parent_id is given.

    Notifies the publication owner (top-level) or the parent comment's owner
    (reply); self-actions never notify. The counter and the notification are
    best-effort once the comment is committed.
    """
    content = (content or "").strip()
    if not content:
        raise ValidationError("O comentário não pode ser vazio")
    if len(content) > COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"O comentário deve ter no máximo {COMMENT_MAX_LENGTH} caracteres"
        )

    publication = get_visible_publication(db, publication_id, author)
    tenancy.require_writable_city(db, publication.city_id)
    if publication.status not in PUBLIC_STATUSES:
        raise InvalidTransition("Esta publicação não aceita comentários")

    parent = None
    if parent_id is not None:
        parent = db.query(models.Comment).filter(models.Comment.id == parent_id).first()
        if not parent or parent.publication_id != publication.id:
            raise ValidationError("Comentário pai inválido")
        if parent.parent_id is not None:
            raise ValidationError("Não é possível responder a uma resposta")

    # Committing expires loaded rows; read what the side effects need first
    target_publication_id = publication.id
    author_id = author.id
    parent_comment_id = parent.id if parent is not None else None

    comment = models.Comment(
        publication_id=target_publication_id,
        user_id=author_id,
        parent_id=parent_comment_id,
        content=content,
        reactions_count=0,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    comment_id = comment.id

    counters.adjust_comments_count(db, target_publication_id, 1)

    if parent is not None:
        NotificationService.notify_reply(db, publication, parent, comment, author)
    else:
        NotificationService.notify_comment(db, publication, comment, author)

    logger.info(
        f"User {author_id} commented {comment_id} on publication {target_publication_id}"
        + (f" (reply to {parent_comment_id})" if parent_comment_id is not None else "")
    )
    return comment


def delete_comment(db: Session, comment_id: int, user: models.User) -> int:
    """
    Delete a comment owned by the user, with its replies when top-level.

    Returns:
        Number of comments removed
    """
    comment = db.query(models.Comment).filter(models.Comment.id == comment_id).first()
    if not comment:
        raise NotFound("Comentário não encontrado")

    publication = get_publication(db, comment.publication_id)
    tenancy.require_writable_city(db, publication.city_id)
    tenancy.require_owner(comment.user_id, user)

    removed_ids = [comment.id]
    if comment.parent_id is None:
        removed_ids += [
            row.id
            for row in db.query(models.Comment.id)
            .filter(models.Comment.parent_id == comment.id)
            .all()
        ]

    db.query(models.Reaction).filter(
        models.Reaction.target_type == "comment",
        models.Reaction.target_id.in_(removed_ids),
    ).delete(synchronize_session=False)
    db.query(models.Comment).filter(
        models.Comment.parent_id == comment.id
    ).delete(synchronize_session=False)
    db.query(models.Comment).filter(
        models.Comment.id == comment.id
    ).delete(synchronize_session=False)
    db.commit()

    counters.adjust_comments_count(db, publication.id, -len(removed_ids))

    logger.info(
        f"User {user.id} deleted comment {comment_id} ({len(removed_ids)} removed)"
    )
    return len(removed_ids)


def list_comments(
    db: Session, publication_id: int, viewer: models.User | None = None
) -> list[CommentNode]:
    """
    Comment tree of a publication.

    Top-level comments oldest first, each with its replies oldest first,
    annotated with reaction counts and whether the viewer reacted.
    """
    publication = get_visible_publication(db, publication_id, viewer)

    rows = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.publication_id == publication.id)
        .order_by(models.Comment.created_at.asc(), models.Comment.id.asc())
        .all()
    )

    mine: set[int] = set()
    if viewer is not None:
        mine = reactions.reacted_target_ids(db, "comment", [c.id for c in rows], viewer.id)

    nodes: dict[int, CommentNode] = {}
    tree: list[CommentNode] = []
    for comment in rows:
        node = CommentNode(
            comment=comment,
            reactions_count=comment.reactions_count,
            user_reacted=comment.id in mine,
        )
        if comment.parent_id is None:
            nodes[comment.id] = node
            tree.append(node)

    for comment in rows:
        if comment.parent_id is None:
            continue
        parent = nodes.get(comment.parent_id)
        # Orphans (parent concurrently deleted) are skipped
        if parent is not None:
            parent.replies.append(
                CommentNode(
                    comment=comment,
                    reactions_count=comment.reactions_count,
                    user_reacted=comment.id in mine,
                )
            )

    return tree
