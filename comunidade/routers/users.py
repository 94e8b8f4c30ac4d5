"""User profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..db import run_with_retry
from ..deps import get_db
from ..services.stats import StatsService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/{id}/stats", response_model=schemas.UserStats)
def get_user_stats(id: int, db: Session = Depends(get_db)) -> schemas.UserStats:
    """Public activity totals for a profile page."""
    stats = run_with_retry(db, lambda: StatsService(db).get_user_stats(id))
    return schemas.UserStats(**stats.to_dict())
