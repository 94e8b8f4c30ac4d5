"""City (tenant) endpoints: resolution, feed, publishing and admin dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..db import run_with_retry
from ..deps import get_city, get_db
from ..services import cities, publications, tenancy
from ..services.stats import StatsService
from ..utils.audit import list_moderation_actions

router = APIRouter(prefix="/cities", tags=["Cities"])


# Settings that may be cleared by sending null
_NULLABLE_SETTINGS = ("logo_url", "banner_url", "description")


def city_to_schema(city: models.City) -> schemas.City:
    info = tenancy.subscription_info(city)
    return schemas.City.model_validate(city).model_copy(
        update={
            "subscription_valid": info.is_valid,
            "is_trial": info.is_trial,
            "trial_days_left": info.trial_days_left,
        }
    )


@router.get("", response_model=list[schemas.City])
def list_cities(
    q: str | None = Query(None, max_length=100),
    db: Session = Depends(get_db),
) -> list[schemas.City]:
    """
    Directory of active cities, by name.

    With `q`, only cities whose name or state contains it (at most 10).
    """
    if q is not None and q.strip():
        items = run_with_retry(db, lambda: cities.search_cities(db, q))
    else:
        items = run_with_retry(db, lambda: cities.list_cities(db))
    return [city_to_schema(c) for c in items]


@router.get("/{slug}", response_model=schemas.City)
def get_city_by_slug(city: models.City = Depends(get_city)) -> schemas.City:
    """
    Resolve a city by slug.

    Succeeds for cities with an invalid subscription too; clients check
    `subscription_valid` to render the unavailable page.
    """
    return city_to_schema(city)


@router.patch("/{slug}/settings", response_model=schemas.City, tags=["Cities", "Admin"])
def update_city_settings(
    payload: schemas.CitySettingsUpdate,
    db: Session = Depends(get_db),
    city: models.City = Depends(get_city),
    current_user: models.User = Depends(get_current_user),
) -> schemas.City:
    """Update branding and moderation settings (city admins only)."""
    updates = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field in _NULLABLE_SETTINGS
    }
    city = run_with_retry(
        db, lambda: cities.update_city_settings(db, current_user, city, updates)
    )
    return city_to_schema(city)


@router.get("/{slug}/publications", response_model=list[schemas.Publication])
def list_city_publications(
    category: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    city: models.City = Depends(get_city),
) -> list[schemas.Publication]:
    """Active publications of a city, newest first."""
    items = run_with_retry(
        db,
        lambda: publications.list_city_publications(
            db, city, category=category, limit=limit, offset=offset
        ),
    )
    return [schemas.Publication.model_validate(p) for p in items]


@router.post(
    "/{slug}/publications",
    response_model=schemas.Publication,
    status_code=status.HTTP_201_CREATED,
)
def create_publication(
    payload: schemas.PublicationCreate,
    db: Session = Depends(get_db),
    city: models.City = Depends(get_city),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Publication:
    """
    Publish in a city.

    Starts as `pending` when the city moderates new publications.
    """
    publication = run_with_retry(
        db,
        lambda: publications.create_publication(
            db,
            author=current_user,
            title=payload.title,
            description=payload.description,
            category=payload.category,
            city_id=city.id,
            location=payload.location,
            contact_info=payload.contact_info,
        ),
    )
    return schemas.Publication.model_validate(publication)


@router.get(
    "/{slug}/publications/pending",
    response_model=list[schemas.Publication],
    tags=["Cities", "Admin"],
)
def list_pending_publications(
    db: Session = Depends(get_db),
    city: models.City = Depends(get_city),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Publication]:
    """Moderation queue (city admins only)."""
    items = run_with_retry(db, lambda: publications.list_pending(db, city, current_user))
    return [schemas.Publication.model_validate(p) for p in items]


@router.get("/{slug}/stats", response_model=schemas.CityStats, tags=["Cities", "Admin"])
def get_city_stats(
    db: Session = Depends(get_db),
    city: models.City = Depends(get_city),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CityStats:
    """Dashboard statistics (city admins only)."""
    stats = run_with_retry(db, lambda: StatsService(db).get_city_stats(city, current_user))
    return schemas.CityStats(**stats.to_dict())


@router.get(
    "/{slug}/audit-log",
    response_model=list[schemas.AuditLogEntry],
    tags=["Cities", "Admin"],
)
def get_city_audit_log(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    city: models.City = Depends(get_city),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.AuditLogEntry]:
    """Recent moderation actions in a city (city admins only)."""
    tenancy.require_moderator(db, city.id, current_user)
    entries = list_moderation_actions(db, city.id, limit=limit)
    return [schemas.AuditLogEntry.model_validate(e) for e in entries]
