from __future__ import annotations

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from . import models
from .db import get_session
from .services.tenancy import resolve_city


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_city(slug: str, db: Session = Depends(get_db)) -> models.City:
    """Resolve the `{slug}` path parameter to an active city (404 otherwise)."""
    return resolve_city(db, slug)
