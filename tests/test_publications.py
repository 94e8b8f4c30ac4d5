"""Test the publication lifecycle."""

import pytest

from comunidade import models
from comunidade.errors import (
    Forbidden,
    InvalidTransition,
    NotFound,
    TenantUnavailable,
    ValidationError,
)
from comunidade.services import publications, reactions
from comunidade.services.comments import create_comment


def _create(db, author, city, **overrides):
    fields = {
        "title": "Doacao de roupas",
        "description": "Roupas infantis em bom estado",
        "category": "doacao",
        "city_id": city.id if city else None,
    }
    fields.update(overrides)
    return publications.create_publication(db, author=author, **fields)


def test_create_publication_starts_active(db, alice, city):
    publication = _create(db, alice, city)

    assert publication.status == "ativo"
    assert publication.comments_count == 0
    assert publication.reactions_count == 0
    assert publication.user_id == alice.id


def test_create_publication_pending_when_city_moderates(db, make_city, make_user):
    city = make_city(requires_moderation=True)
    author = make_user(city=city)

    publication = _create(db, author, city)

    assert publication.status == "pending"


def test_create_publication_strips_and_validates(db, alice, city):
    with pytest.raises(ValidationError):
        _create(db, alice, city, title="   ")
    with pytest.raises(ValidationError):
        _create(db, alice, city, description="")
    with pytest.raises(ValidationError):
        _create(db, alice, city, title="x" * 201)
    with pytest.raises(ValidationError):
        _create(db, alice, city, category="festa")


def test_create_publication_in_unavailable_city(db, make_city, alice):
    expired = make_city(subscription_status="expired")

    with pytest.raises(TenantUnavailable):
        _create(db, alice, expired)

    assert db.query(models.Publication).count() == 0


def test_approval_flow(db, make_city, make_user, make_city_admin):
    """pending -> ativo -> resolvido -> ativo, with rights checked at each step."""
    city = make_city(requires_moderation=True)
    author = make_user(city=city)
    mod = make_user(city=city)
    make_city_admin(city, mod)

    publication = _create(db, author, city)
    assert publication.status == "pending"

    with pytest.raises(Forbidden):
        publications.approve(db, publication.id, author)

    assert publications.approve(db, publication.id, mod).status == "ativo"

    with pytest.raises(Forbidden):
        publications.mark_resolved(db, publication.id, mod)

    assert publications.mark_resolved(db, publication.id, author).status == "resolvido"

    with pytest.raises(InvalidTransition):
        publications.mark_resolved(db, publication.id, author)

    assert publications.reopen(db, publication.id, author).status == "ativo"


def test_approving_active_publication_is_invalid(db, alice, moderator, city):
    publication = _create(db, alice, city)
    assert publication.status == "ativo"

    with pytest.raises(InvalidTransition):
        publications.approve(db, publication.id, moderator)

    with pytest.raises(InvalidTransition):
        publications.reject(db, publication.id, moderator)

    db.refresh(publication)
    assert publication.status == "ativo"
    assert db.query(models.AuditLog).count() == 0


def test_reject_is_terminal(db, make_city, make_user, make_city_admin):
    city = make_city(requires_moderation=True)
    author = make_user(city=city)
    mod = make_user(city=city)
    make_city_admin(city, mod)

    publication = _create(db, author, city)
    assert publications.reject(db, publication.id, mod).status == "inativo"

    for action in ("approve", "resolve", "reopen", "hide", "unhide"):
        actor = author if action in ("resolve", "reopen") else mod
        with pytest.raises(InvalidTransition):
            publications.transition(db, publication.id, action, actor)


def test_authorization_checked_before_state(db, alice, bob, city):
    """A stranger resolving an already resolved publication gets Forbidden, not InvalidTransition."""
    publication = _create(db, alice, city)
    publications.mark_resolved(db, publication.id, alice)

    with pytest.raises(Forbidden):
        publications.mark_resolved(db, publication.id, bob)


def test_hide_and_unhide(db, alice, moderator, city):
    publication = _create(db, alice, city)

    assert publications.hide(db, publication.id, moderator).status == "oculto"
    with pytest.raises(InvalidTransition):
        publications.hide(db, publication.id, moderator)
    assert publications.unhide(db, publication.id, moderator).status == "ativo"


def test_moderator_actions_are_audited(db, alice, moderator, city):
    publication = _create(db, alice, city)
    publications.hide(db, publication.id, moderator)

    entry = db.query(models.AuditLog).one()
    assert entry.action == "hide_publication"
    assert entry.actor_id == moderator.id
    assert entry.city_id == city.id
    assert entry.target_id == publication.id
    assert entry.note == "ativo -> oculto"


def test_approval_notifies_author(db, make_city, make_user, make_city_admin):
    city = make_city(requires_moderation=True)
    author = make_user(city=city)
    mod = make_user(city=city)
    make_city_admin(city, mod)

    publication = _create(db, author, city)
    publications.approve(db, publication.id, mod)

    notification = db.query(models.Notification).filter_by(user_id=author.id).one()
    assert notification.type == "system"
    assert notification.link == f"/publicacao/{publication.id}"


def test_unknown_action(db, alice, city):
    publication = _create(db, alice, city)

    with pytest.raises(ValidationError):
        publications.transition(db, publication.id, "archive", alice)


def test_transition_missing_publication(db, alice):
    with pytest.raises(NotFound):
        publications.mark_resolved(db, 9999, alice)


def test_writes_blocked_when_subscription_lapses(db, alice, city):
    publication = _create(db, alice, city)
    city.subscription_status = "expired"
    db.commit()

    with pytest.raises(TenantUnavailable):
        publications.mark_resolved(db, publication.id, alice)
    db.refresh(publication)
    assert publication.status == "ativo"


def test_hidden_publication_invisible_to_others(db, alice, bob, moderator, city):
    publication = _create(db, alice, city)
    publications.hide(db, publication.id, moderator)

    with pytest.raises(NotFound):
        publications.get_visible_publication(db, publication.id, bob)
    with pytest.raises(NotFound):
        publications.get_visible_publication(db, publication.id, None)

    assert publications.get_visible_publication(db, publication.id, alice).id == publication.id
    assert publications.get_visible_publication(db, publication.id, moderator).id == publication.id


def test_delete_cascades_comments_and_reactions(db, alice, bob, city):
    publication = _create(db, alice, city)
    comment = create_comment(db, publication.id, "Tenho interesse", bob)
    create_comment(db, publication.id, "Pode vir buscar", alice, parent_id=comment.id)
    reactions.toggle(db, "publication", publication.id, bob)
    reactions.toggle(db, "comment", comment.id, alice)

    publications.delete_publication(db, publication.id, alice)

    assert db.query(models.Publication).count() == 0
    assert db.query(models.Comment).count() == 0
    assert db.query(models.Reaction).count() == 0


def test_delete_by_stranger_is_forbidden(db, alice, bob, city):
    publication = _create(db, alice, city)

    with pytest.raises(Forbidden):
        publications.delete_publication(db, publication.id, bob)


def test_delete_by_moderator_is_audited(db, alice, moderator, city):
    publication = _create(db, alice, city)

    publications.delete_publication(db, publication.id, moderator)

    entry = db.query(models.AuditLog).one()
    assert entry.action == "delete_publication"
    assert entry.target_id == publication.id


def test_city_feed_only_lists_active(db, alice, city, make_city, make_publication):
    other_city = make_city(slug="jundiai")
    visible = make_publication(alice, city)
    make_publication(alice, city, status="resolvido")
    make_publication(alice, city, status="oculto")
    make_publication(alice, other_city)

    feed = publications.list_city_publications(db, city)

    assert [p.id for p in feed] == [visible.id]


def test_pending_queue_requires_moderator(db, make_city, make_user, make_city_admin, make_publication):
    city = make_city(requires_moderation=True)
    author = make_user(city=city)
    mod = make_user(city=city)
    make_city_admin(city, mod)
    first = make_publication(author, city, status="pending")
    second = make_publication(author, city, status="pending")

    with pytest.raises(Forbidden):
        publications.list_pending(db, city, author)

    assert [p.id for p in publications.list_pending(db, city, mod)] == [first.id, second.id]
