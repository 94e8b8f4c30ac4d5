"""
Platform administration of tenants.

The public city directory, creating cities, recording subscription changes
pushed by billing, granting per-city admin capabilities (platform admins) and
the city admin's own settings page.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import Conflict, NotFound, ValidationError
from ..utils.audit import log_moderation_action
from . import tenancy
from .search import escape_like
from .tenancy import get_city, resolve_city

logger = logging.getLogger(__name__)

CITY_SEARCH_LIMIT = 10

# Fields a city admin may change from the settings page
CITY_SETTINGS_FIELDS = (
    "primary_color",
    "secondary_color",
    "logo_url",
    "banner_url",
    "description",
    "requires_moderation",
)


def list_cities(db: Session) -> list[models.City]:
    """Active cities, by name."""
    return (
        db.query(models.City)
        .filter(models.City.is_active == True)
        .order_by(models.City.name.asc(), models.City.id.asc())
        .all()
    )


def search_cities(db: Session, query: str, limit: int = CITY_SEARCH_LIMIT) -> list[models.City]:
    """Active cities whose name or state contains the query, by name."""
    text = (query or "").strip()
    if not text:
        return list_cities(db)[:limit]

    pattern = f"%{escape_like(text)}%"
    return (
        db.query(models.City)
        .filter(
            models.City.is_active == True,
            or_(
                models.City.name.ilike(pattern, escape="\\"),
                models.City.state.ilike(pattern, escape="\\"),
            ),
        )
        .order_by(models.City.name.asc(), models.City.id.asc())
        .limit(limit)
        .all()
    )


def update_city_settings(
    db: Session, actor: models.User, city: models.City, updates: dict
) -> models.City:
    """
    Apply a city admin's settings change (branding, moderation toggle).

    Unknown fields are rejected. Audited with the list of changed fields.
    """
    tenancy.require_valid_subscription(city)
    tenancy.require_moderator(db, city.id, actor)

    unknown = set(updates) - set(CITY_SETTINGS_FIELDS)
    if unknown:
        raise ValidationError(f"Campos inválidos: {', '.join(sorted(unknown))}")

    changed = sorted(k for k, v in updates.items() if getattr(city, k) != v)
    for field in changed:
        setattr(city, field, updates[field])

    if changed:
        log_moderation_action(
            db,
            actor.id,
            "update_city_settings",
            city_id=city.id,
            target_type="city",
            target_id=city.id,
            note=", ".join(changed),
        )
        db.commit()
        db.refresh(city)
        logger.info("City %s settings updated by user %s: %s", city.slug, actor.id, changed)
    return city


def create_city(
    db: Session,
    actor: models.User,
    slug: str,
    name: str,
    state: str | None = None,
    subscription_status: str = "trial",
    trial_ends_at: datetime | None = None,
    requires_moderation: bool = False,
) -> models.City:
    if subscription_status not in models.SUBSCRIPTION_STATUSES:
        raise ValidationError(f"Status de assinatura inválido: {subscription_status}")

    if db.query(models.City.id).filter(models.City.slug == slug).first():
        raise Conflict("Já existe uma cidade com este slug")

    city = models.City(
        slug=slug,
        name=name,
        state=state,
        subscription_status=subscription_status,
        trial_ends_at=trial_ends_at,
        requires_moderation=requires_moderation,
    )
    db.add(city)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise Conflict("Já existe uma cidade com este slug")

    log_moderation_action(
        db, actor.id, "create_city", city_id=city.id, target_type="city", target_id=city.id
    )
    db.commit()
    db.refresh(city)
    logger.info("City %s created by user %s", city.slug, actor.id)
    return city


def update_subscription(
    db: Session,
    actor: models.User,
    slug: str,
    subscription_status: str,
    trial_ends_at: datetime | None = None,
) -> models.City:
    """Record a subscription change. Takes effect on the next request."""
    if subscription_status not in models.SUBSCRIPTION_STATUSES:
        raise ValidationError(f"Status de assinatura inválido: {subscription_status}")

    city = resolve_city(db, slug)
    previous = city.subscription_status
    city.subscription_status = subscription_status
    city.trial_ends_at = trial_ends_at

    log_moderation_action(
        db,
        actor.id,
        "update_subscription",
        city_id=city.id,
        target_type="city",
        target_id=city.id,
        note=f"{previous} -> {subscription_status}",
    )
    db.commit()
    db.refresh(city)
    logger.info(
        "City %s subscription %s -> %s (by user %s)",
        city.slug,
        previous,
        subscription_status,
        actor.id,
    )
    return city


def add_city_admin(
    db: Session,
    actor: models.User,
    city_id: int,
    user_id: int,
    role: str = "moderator",
) -> models.CityAdmin:
    if role not in models.CITY_ADMIN_ROLES:
        raise ValidationError(f"Papel inválido: {role}")

    city = get_city(db, city_id)
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("Usuário não encontrado")

    existing = (
        db.query(models.CityAdmin)
        .filter(models.CityAdmin.city_id == city.id, models.CityAdmin.user_id == user.id)
        .first()
    )
    if existing:
        raise Conflict("Usuário já é administrador desta cidade")

    city_admin = models.CityAdmin(city_id=city.id, user_id=user.id, role=role)
    db.add(city_admin)
    log_moderation_action(
        db,
        actor.id,
        "add_city_admin",
        city_id=city.id,
        target_type="user",
        target_id=user.id,
        note=role,
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Usuário já é administrador desta cidade")
    db.refresh(city_admin)
    return city_admin
