"""Reaction endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..db import run_with_retry
from ..deps import get_db
from ..services import reactions

router = APIRouter(prefix="/reactions", tags=["Reactions"])


@router.put("/{target_type}/{target_id}", response_model=schemas.ReactionToggle)
def toggle_reaction(
    target_type: str,
    target_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.ReactionToggle:
    """
    Toggle the current user's like on a publication or comment.

    `reacted` is the authoritative state after the call; clients reconcile
    their optimistic counters against it.
    """
    result = run_with_retry(
        db, lambda: reactions.toggle(db, target_type, target_id, current_user)
    )
    return schemas.ReactionToggle(reacted=result.reacted)
