"""
Tenancy & authorization guard.

Pure reads: every check here runs before a service starts writing, so a
failed check never leaves partial state behind.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from .. import models
from ..errors import Forbidden, NotFound, TenantUnavailable


def resolve_city(db: Session, slug: str) -> models.City:
    """
    Resolve an active city by slug.

    Subscription validity is NOT checked here: an expired city still resolves
    so the caller can render the "unavailable" page instead of a 404.
    """
    city = (
        db.query(models.City)
        .filter(models.City.slug == slug, models.City.is_active == True)
        .first()
    )
    if not city:
        raise NotFound("Cidade não encontrada")
    return city


def get_city(db: Session, city_id: int) -> models.City:
    city = db.query(models.City).filter(models.City.id == city_id).first()
    if not city:
        raise NotFound("Cidade não encontrada")
    return city


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_subscription_valid(city: models.City, now: datetime | None = None) -> bool:
    """
    True iff the city's subscription is active or in trial.

    A trial with an end date in the past no longer counts.
    """
    if city.subscription_status not in models.VALID_SUBSCRIPTION_STATUSES:
        return False

    if city.subscription_status == "trial" and city.trial_ends_at is not None:
        now = now or datetime.now(timezone.utc)
        return _as_utc(city.trial_ends_at) > now

    return True


@dataclass(frozen=True)
class SubscriptionInfo:
    is_valid: bool
    is_trial: bool
    # Whole days until the trial ends (rounded up, never negative); None
    # outside a trial or for an open-ended one
    trial_days_left: int | None


def subscription_info(city: models.City, now: datetime | None = None) -> SubscriptionInfo:
    now = now or datetime.now(timezone.utc)
    is_trial = city.subscription_status == "trial"
    days_left = None
    if is_trial and city.trial_ends_at is not None:
        remaining = (_as_utc(city.trial_ends_at) - now).total_seconds()
        days_left = max(0, math.ceil(remaining / 86400))
    return SubscriptionInfo(
        is_valid=is_subscription_valid(city, now),
        is_trial=is_trial,
        trial_days_left=days_left,
    )


def require_valid_subscription(city: models.City) -> None:
    if not is_subscription_valid(city):
        raise TenantUnavailable()


def require_writable_city(db: Session, city_id: int | None) -> models.City | None:
    """
    Load the tenant of a city-scoped resource and require a valid subscription.

    Un-scoped (legacy) resources have no tenant and pass through.
    """
    if city_id is None:
        return None
    city = get_city(db, city_id)
    require_valid_subscription(city)
    return city


def is_city_admin(db: Session, city_id: int, user_id: int) -> bool:
    return (
        db.query(models.CityAdmin.id)
        .filter(
            models.CityAdmin.city_id == city_id,
            models.CityAdmin.user_id == user_id,
        )
        .first()
        is not None
    )


def is_platform_admin(user: models.User) -> bool:
    return user.role == "admin"


def is_owner(resource_owner_id: int, user_id: int) -> bool:
    return resource_owner_id == user_id


def can_moderate(db: Session, city_id: int | None, user: models.User) -> bool:
    """
    Check moderation rights over a tenant.

    Returns True if the user is a platform admin, or an admin of that city.
    Un-scoped content is moderated by platform admins only.
    """
    if is_platform_admin(user):
        return True
    if city_id is None:
        return False
    return is_city_admin(db, city_id, user.id)


def require_moderator(db: Session, city_id: int | None, user: models.User) -> None:
    if not can_moderate(db, city_id, user):
        raise Forbidden("Apenas administradores da cidade podem realizar esta ação")


def require_owner(resource_owner_id: int, user: models.User) -> None:
    if not is_owner(resource_owner_id, user.id):
        raise Forbidden("Apenas o autor pode realizar esta ação")


def require_owner_or_moderator(
    db: Session, resource_owner_id: int, city_id: int | None, user: models.User
) -> None:
    if is_owner(resource_owner_id, user.id):
        return
    require_moderator(db, city_id, user)
