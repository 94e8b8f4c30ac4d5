"""Search endpoints, scoped to one city."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..db import run_with_retry
from ..deps import get_city, get_db
from ..services import search
from ..settings import SEARCH_MAX_LIMIT

router = APIRouter(prefix="/cities/{slug}/search", tags=["Search"])


@router.get("", response_model=list[schemas.Publication])
def search_publications(
    q: str | None = Query(None, max_length=200),
    category: str | None = None,
    limit: int | None = Query(None, ge=1, le=SEARCH_MAX_LIMIT),
    db: Session = Depends(get_db),
    city: models.City = Depends(get_city),
) -> list[schemas.Publication]:
    """
    Search active publications by title or description.

    An empty query lists the newest active publications.
    """
    items = run_with_retry(
        db,
        lambda: search.search_publications(db, city, query=q, category=category, limit=limit),
    )
    return [schemas.Publication.model_validate(p) for p in items]


@router.get("/suggestions", response_model=list[schemas.Suggestion])
def search_suggestions(
    q: str | None = Query(None, max_length=100),
    limit: int | None = Query(None, ge=1, le=20),
    db: Session = Depends(get_db),
    city: models.City = Depends(get_city),
) -> list[schemas.Suggestion]:
    """Category suggestions for autocomplete."""
    items = run_with_retry(db, lambda: search.suggest(db, city, query=q, limit=limit))
    return [schemas.Suggestion.model_validate(s) for s in items]
