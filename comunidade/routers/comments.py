"""Comment endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional
from ..db import run_with_retry
from ..deps import get_db
from ..services import comments
from ..services.comments import CommentNode

router = APIRouter(tags=["Comments"])


def _node_to_schema(node: CommentNode) -> schemas.CommentNode:
    base = schemas.Comment.model_validate(node.comment)
    return schemas.CommentNode(
        **base.model_dump(),
        user_reacted=node.user_reacted,
        replies=[_node_to_schema(reply) for reply in node.replies],
    )


@router.get("/publications/{id}/comments", response_model=list[schemas.CommentNode])
def list_comments(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> list[schemas.CommentNode]:
    """
    Comment tree for a publication.

    Top-level comments oldest first, each with its replies. `user_reacted`
    is only ever true for an authenticated viewer.
    """
    tree = run_with_retry(db, lambda: comments.list_comments(db, id, current_user))
    return [_node_to_schema(node) for node in tree]


@router.post(
    "/publications/{id}/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Comment:
    """
    Comment on a publication, or reply to a top-level comment.

    Replies to replies are rejected with 400.
    """
    comment = run_with_retry(
        db,
        lambda: comments.create_comment(
            db, id, payload.content, current_user, parent_id=payload.parent_id
        ),
    )
    return schemas.Comment.model_validate(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> Response:
    """Delete own comment; its replies go with it."""
    run_with_retry(db, lambda: comments.delete_comment(db, comment_id, current_user))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
