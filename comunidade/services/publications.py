"""
Publication lifecycle manager.

    pending --approve--> ativo <--reopen-- resolvido
    pending --reject---> inativo   ativo --resolve--> resolvido
    {pending, ativo, resolvido} --hide--> oculto --unhide--> ativo

Deletion is terminal and cascades comments and reactions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from .. import models
from ..errors import InvalidTransition, NotFound, ValidationError
from ..settings import PUBLICATION_TITLE_MAX_LENGTH
from ..utils.audit import log_moderation_action
from . import tenancy
from .notifications import NotificationService, publication_link

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    sources: frozenset[str]
    target: str
    # "owner" or "moderator"
    actor: str


TRANSITIONS: dict[str, Transition] = {
    "approve": Transition(frozenset({"pending"}), "ativo", "moderator"),
    "reject": Transition(frozenset({"pending"}), "inativo", "moderator"),
    "resolve": Transition(frozenset({"ativo"}), "resolvido", "owner"),
    "reopen": Transition(frozenset({"resolvido"}), "ativo", "owner"),
    "hide": Transition(frozenset({"pending", "ativo", "resolvido"}), "oculto", "moderator"),
    "unhide": Transition(frozenset({"oculto"}), "ativo", "moderator"),
}

# Statuses visible to everyone; the rest only to the owner and moderators.
PUBLIC_STATUSES = ("ativo", "resolvido")


def _clean(value: str | None) -> str:
    return (value or "").strip()


def create_publication(
    db: Session,
    author: models.User,
    title: str,
    description: str,
    category: str,
    city_id: int | None = None,
    location: str | None = None,
    contact_info: str | None = None,
) -> models.Publication:
    """
    Create a publication.

    Starts in "ativo", or in "pending" when the city requires moderation.
    No notification is raised on create.
    """
    city = tenancy.require_writable_city(db, city_id)

    title = _clean(title)
    description = _clean(description)
    if not title or not description:
        raise ValidationError("Título e descrição são obrigatórios")
    if len(title) > PUBLICATION_TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Título deve ter no máximo {PUBLICATION_TITLE_MAX_LENGTH} caracteres"
        )
    if category not in models.PUBLICATION_CATEGORIES:
        raise ValidationError(f"Categoria inválida: {category}")

    status = "pending" if city is not None and city.requires_moderation else "ativo"

    publication = models.Publication(
        user_id=author.id,
        city_id=city_id,
        title=title,
        description=description,
        category=category,
        status=status,
        location=_clean(location) or None,
        contact_info=_clean(contact_info) or None,
        comments_count=0,
        reactions_count=0,
    )
    db.add(publication)
    db.commit()
    db.refresh(publication)

    logger.info(
        f"User {author.id} created publication {publication.id} "
        f"(city={city_id}, status={status})"
    )
    return publication


def get_publication(db: Session, publication_id: int) -> models.Publication:
    publication = (
        db.query(models.Publication)
        .filter(models.Publication.id == publication_id)
        .first()
    )
    if not publication:
        raise NotFound("Publicação não encontrada")
    return publication


def get_visible_publication(
    db: Session, publication_id: int, viewer: models.User | None
) -> models.Publication:
    """
    Load a publication the viewer is allowed to see.

    Pending, rejected and hidden publications read as NotFound to everyone but
    the owner and moderators. Publications of an unavailable city raise
    TenantUnavailable.
    """
    publication = get_publication(db, publication_id)
    if publication.city_id is not None:
        tenancy.require_valid_subscription(tenancy.get_city(db, publication.city_id))

    if publication.status in PUBLIC_STATUSES:
        return publication
    if viewer is not None and (
        tenancy.is_owner(publication.user_id, viewer.id)
        or tenancy.can_moderate(db, publication.city_id, viewer)
    ):
        return publication
    raise NotFound("Publicação não encontrada")


def transition(
    db: Session, publication_id: int, action: str, actor: models.User
) -> models.Publication:
    """
    Apply a lifecycle action.

    Authorization is checked before the current state, so an unauthorized
    caller always gets Forbidden. Repeating an action (e.g. resolving twice)
    fails with InvalidTransition.
    """
    rule = TRANSITIONS.get(action)
    if rule is None:
        raise ValidationError(f"Ação desconhecida: {action}")

    publication = get_publication(db, publication_id)
    tenancy.require_writable_city(db, publication.city_id)

    if rule.actor == "owner":
        tenancy.require_owner(publication.user_id, actor)
    else:
        tenancy.require_moderator(db, publication.city_id, actor)

    previous = publication.status
    if previous not in rule.sources:
        raise InvalidTransition(
            f"Não é possível executar '{action}' em uma publicação com status '{previous}'"
        )

    publication.status = rule.target
    if rule.actor == "moderator":
        log_moderation_action(
            db=db,
            actor_id=actor.id,
            action=f"{action}_publication",
            city_id=publication.city_id,
            target_type="publication",
            target_id=publication.id,
            note=f"{previous} -> {rule.target}",
        )
    db.commit()
    db.refresh(publication)

    logger.info(
        f"Publication {publication.id}: {previous} -> {publication.status} "
        f"({action} by user {actor.id})"
    )

    if action in ("approve", "reject"):
        _notify_moderation_outcome(db, publication, action, actor)

    return publication


def _notify_moderation_outcome(
    db: Session, publication: models.Publication, action: str, actor: models.User
) -> None:
    if action == "approve":
        title = "Publicação aprovada"
        message = f'Sua publicação "{publication.title}" foi aprovada e já está visível.'
    else:
        title = "Publicação recusada"
        message = f'Sua publicação "{publication.title}" não foi aprovada pela moderação.'
    NotificationService.create_system_notification(
        db=db,
        user_id=publication.user_id,
        title=title,
        message=message,
        link=publication_link(publication.id),
        actor=actor,
    )


def approve(db: Session, publication_id: int, actor: models.User) -> models.Publication:
    return transition(db, publication_id, "approve", actor)


def reject(db: Session, publication_id: int, actor: models.User) -> models.Publication:
    return transition(db, publication_id, "reject", actor)


def mark_resolved(db: Session, publication_id: int, actor: models.User) -> models.Publication:
    return transition(db, publication_id, "resolve", actor)


def reopen(db: Session, publication_id: int, actor: models.User) -> models.Publication:
    return transition(db, publication_id, "reopen", actor)


def hide(db: Session, publication_id: int, actor: models.User) -> models.Publication:
    return transition(db, publication_id, "hide", actor)


def unhide(db: Session, publication_id: int, actor: models.User) -> models.Publication:
    return transition(db, publication_id, "unhide", actor)


def delete_publication(db: Session, publication_id: int, actor: models.User) -> None:
    """
    Delete a publication with its comments and every reaction on either.

    Owner or moderator only. Irreversible.
    """
    publication = get_publication(db, publication_id)
    tenancy.require_writable_city(db, publication.city_id)
    tenancy.require_owner_or_moderator(db, publication.user_id, publication.city_id, actor)

    comment_ids = [
        row.id
        for row in db.query(models.Comment.id)
        .filter(models.Comment.publication_id == publication.id)
        .all()
    ]

    if comment_ids:
        db.query(models.Reaction).filter(
            models.Reaction.target_type == "comment",
            models.Reaction.target_id.in_(comment_ids),
        ).delete(synchronize_session=False)
    db.query(models.Reaction).filter(
        models.Reaction.target_type == "publication",
        models.Reaction.target_id == publication.id,
    ).delete(synchronize_session=False)
    # Replies first so parent foreign keys never dangle
    db.query(models.Comment).filter(
        models.Comment.publication_id == publication.id,
        models.Comment.parent_id.isnot(None),
    ).delete(synchronize_session=False)
    db.query(models.Comment).filter(
        models.Comment.publication_id == publication.id,
    ).delete(synchronize_session=False)

    if not tenancy.is_owner(publication.user_id, actor.id):
        log_moderation_action(
            db=db,
            actor_id=actor.id,
            action="delete_publication",
            city_id=publication.city_id,
            target_type="publication",
            target_id=publication.id,
            note=publication.title,
        )

    db.delete(publication)
    db.commit()

    logger.info(
        f"Publication {publication_id} deleted by user {actor.id} "
        f"({len(comment_ids)} comments removed)"
    )


def list_city_publications(
    db: Session,
    city: models.City,
    category: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[models.Publication]:
    """Active feed of a city, newest first."""
    tenancy.require_valid_subscription(city)
    if category is not None and category not in models.PUBLICATION_CATEGORIES:
        raise ValidationError(f"Categoria inválida: {category}")

    query = db.query(models.Publication).filter(
        models.Publication.city_id == city.id,
        models.Publication.status == "ativo",
    )
    if category:
        query = query.filter(models.Publication.category == category)

    return (
        query.order_by(models.Publication.created_at.desc(), models.Publication.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def list_pending(
    db: Session, city: models.City, actor: models.User, limit: int = 50
) -> list[models.Publication]:
    """Moderation queue of a city, oldest first."""
    tenancy.require_moderator(db, city.id, actor)
    return (
        db.query(models.Publication)
        .filter(
            models.Publication.city_id == city.id,
            models.Publication.status == "pending",
        )
        .order_by(models.Publication.created_at.asc(), models.Publication.id.asc())
        .limit(limit)
        .all()
    )
