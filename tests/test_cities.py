"""Test platform administration of cities."""

import pytest

from comunidade import models
from comunidade.errors import Conflict, Forbidden, NotFound, TenantUnavailable, ValidationError
from comunidade.services import cities, publications, tenancy


@pytest.fixture
def admin(make_user):
    return make_user(name="Admin", role="admin")


def test_create_city(db, admin):
    city = cities.create_city(db, admin, slug="valinhos", name="Valinhos", state="SP")

    assert city.subscription_status == "trial"
    assert city.is_active is True
    assert tenancy.resolve_city(db, "valinhos").id == city.id
    assert db.query(models.AuditLog).filter_by(action="create_city").count() == 1


def test_create_city_duplicate_slug(db, admin, city):
    with pytest.raises(Conflict):
        cities.create_city(db, admin, slug=city.slug, name="Outra")


def test_create_city_invalid_status(db, admin):
    with pytest.raises(ValidationError):
        cities.create_city(db, admin, slug="x1", name="X", subscription_status="gold")


def test_subscription_change_takes_effect_immediately(db, admin, alice, city):
    publication = publications.create_publication(
        db, alice, "Aviso", "Rua fechada", "aviso", city_id=city.id
    )

    cities.update_subscription(db, admin, city.slug, "cancelled")

    with pytest.raises(TenantUnavailable):
        publications.mark_resolved(db, publication.id, alice)

    cities.update_subscription(db, admin, city.slug, "active")
    assert publications.mark_resolved(db, publication.id, alice).status == "resolvido"


def test_add_city_admin_grants_moderation(db, admin, alice, city):
    cities.add_city_admin(db, admin, city.id, alice.id)

    assert tenancy.can_moderate(db, city.id, alice) is True


def test_add_city_admin_twice(db, admin, alice, city):
    cities.add_city_admin(db, admin, city.id, alice.id)

    with pytest.raises(Conflict):
        cities.add_city_admin(db, admin, city.id, alice.id, role="admin")


def test_add_city_admin_unknown_user(db, admin, city):
    with pytest.raises(NotFound):
        cities.add_city_admin(db, admin, city.id, 9999)


def test_add_city_admin_invalid_role(db, admin, alice, city):
    with pytest.raises(ValidationError):
        cities.add_city_admin(db, admin, city.id, alice.id, role="superuser")


def _named(db, make_city, name, state="SP", **kwargs):
    city = make_city(**kwargs)
    city.name = name
    city.state = state
    db.commit()
    return city


def test_list_cities_by_name_active_only(db, make_city):
    _named(db, make_city, "Valinhos")
    _named(db, make_city, "Americana")
    closed = _named(db, make_city, "Bragança")
    closed.is_active = False
    db.commit()
    # Cities with a lapsed subscription stay listed
    _named(db, make_city, "Jundiaí", subscription_status="expired")

    names = [c.name for c in cities.list_cities(db)]

    assert names == ["Americana", "Jundiaí", "Valinhos"]


def test_search_cities_matches_name_or_state(db, make_city):
    _named(db, make_city, "Campinas")
    _named(db, make_city, "Curitiba", state="PR")
    _named(db, make_city, "Maringá", state="PR")

    assert [c.name for c in cities.search_cities(db, "camp")] == ["Campinas"]
    assert [c.name for c in cities.search_cities(db, "pr")] == ["Curitiba", "Maringá"]
    assert cities.search_cities(db, "100%") == []


def test_search_cities_is_limited(db, make_city):
    for n in range(12):
        _named(db, make_city, f"Vila {n:02d}")

    found = cities.search_cities(db, "vila")

    assert len(found) == cities.CITY_SEARCH_LIMIT
    assert found[0].name == "Vila 00"


def test_blank_city_search_lists_directory(db, make_city):
    _named(db, make_city, "Sorocaba")

    assert [c.name for c in cities.search_cities(db, "  ")] == ["Sorocaba"]


def test_moderator_updates_city_settings(db, moderator, city):
    updated = cities.update_city_settings(
        db,
        moderator,
        city,
        {"primary_color": "#112233", "requires_moderation": True, "logo_url": None},
    )

    assert updated.primary_color == "#112233"
    assert updated.requires_moderation is True
    entry = db.query(models.AuditLog).filter_by(action="update_city_settings").one()
    assert entry.note == "primary_color, requires_moderation"
    assert entry.city_id == city.id


def test_unchanged_settings_are_not_audited(db, moderator, city):
    cities.update_city_settings(db, moderator, city, {"requires_moderation": False})

    assert db.query(models.AuditLog).filter_by(action="update_city_settings").count() == 0


def test_regular_user_cannot_update_settings(db, alice, city):
    with pytest.raises(Forbidden):
        cities.update_city_settings(db, alice, city, {"primary_color": "#000000"})

    db.refresh(city)
    assert city.primary_color != "#000000"


def test_other_city_admin_cannot_update_settings(db, make_city, make_user, make_city_admin, city):
    other = make_city(slug="jundiai")
    outsider = make_user(city=other)
    make_city_admin(other, outsider)

    with pytest.raises(Forbidden):
        cities.update_city_settings(db, outsider, city, {"description": "Nossa cidade"})


def test_settings_locked_while_subscription_invalid(db, moderator, city):
    city.subscription_status = "expired"
    db.commit()

    with pytest.raises(TenantUnavailable):
        cities.update_city_settings(db, moderator, city, {"description": "Nossa cidade"})


def test_unknown_setting_rejected(db, moderator, city):
    with pytest.raises(ValidationError):
        cities.update_city_settings(db, moderator, city, {"slug": "outra"})
