"""Publication endpoints: detail, lifecycle transitions and deletion."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional
from ..db import run_with_retry
from ..deps import get_db
from ..services import publications

router = APIRouter(prefix="/publications", tags=["Publications"])


@router.get("/{id}", response_model=schemas.Publication)
def get_publication(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.Publication:
    """
    Get a publication.

    Pending, rejected and hidden publications are only visible to their
    owner and to moderators; everyone else gets 404.
    """
    publication = run_with_retry(
        db, lambda: publications.get_visible_publication(db, id, current_user)
    )
    return schemas.Publication.model_validate(publication)


@router.post("/{id}/transitions", response_model=schemas.Publication)
def transition_publication(
    id: int,
    payload: schemas.PublicationTransition,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Publication:
    """
    Apply a lifecycle action (approve, reject, resolve, reopen, hide, unhide).

    Authorization is checked before the current status, so a caller without
    rights always gets 403 regardless of the publication's state.
    """
    publication = run_with_retry(
        db, lambda: publications.transition(db, id, payload.action, current_user)
    )
    return schemas.Publication.model_validate(publication)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_publication(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> Response:
    """Delete a publication with its comments and reactions (owner or moderator)."""
    run_with_retry(db, lambda: publications.delete_publication(db, id, current_user))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
