"""Platform admin endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_platform_admin
from ..db import run_with_retry
from ..deps import get_db
from ..services import cities, counters, publications
from ..services.tenancy import resolve_city
from .cities import city_to_schema

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/cities", response_model=schemas.City, status_code=status.HTTP_201_CREATED)
def create_city(
    payload: schemas.CityCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_platform_admin),
) -> schemas.City:
    """Create a tenant."""
    city = run_with_retry(
        db,
        lambda: cities.create_city(
            db,
            current_user,
            slug=payload.slug,
            name=payload.name,
            state=payload.state,
            subscription_status=payload.subscription_status,
            trial_ends_at=payload.trial_ends_at,
            requires_moderation=payload.requires_moderation,
        ),
    )
    return city_to_schema(city)


@router.patch("/cities/{slug}/subscription", response_model=schemas.City)
def update_city_subscription(
    slug: str,
    payload: schemas.CitySubscriptionUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_platform_admin),
) -> schemas.City:
    """
    Record a subscription change from billing.

    Reads and writes in the city are gated on the new status immediately.
    """
    city = run_with_retry(
        db,
        lambda: cities.update_subscription(
            db, current_user, slug, payload.subscription_status, payload.trial_ends_at
        ),
    )
    return city_to_schema(city)


@router.post(
    "/cities/{slug}/admins",
    response_model=schemas.CityAdmin,
    status_code=status.HTTP_201_CREATED,
)
def add_city_admin(
    slug: str,
    payload: schemas.CityAdminCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_platform_admin),
) -> schemas.CityAdmin:
    """Grant a user moderation rights over a city."""
    city = resolve_city(db, slug)
    city_admin = run_with_retry(
        db,
        lambda: cities.add_city_admin(db, current_user, city.id, payload.user_id, payload.role),
    )
    return schemas.CityAdmin.model_validate(city_admin)


@router.post("/publications/{id}/recount", response_model=schemas.Publication)
def recount_publication(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_platform_admin),
) -> schemas.Publication:
    """Re-derive a publication's comment and reaction counters from the rows."""
    publication = publications.get_publication(db, id)
    run_with_retry(db, lambda: counters.recount_publication(db, publication.id))
    db.refresh(publication)
    return schemas.Publication.model_validate(publication)
