"""Test tenant resolution, subscription gating and authorization checks."""

from datetime import datetime, timedelta, timezone

import pytest

from comunidade.errors import Forbidden, NotFound, TenantUnavailable
from comunidade.services import tenancy

from conftest import future, past


def test_resolve_city_by_slug(db, city):
    """An active city resolves by slug."""
    assert tenancy.resolve_city(db, "campinas").id == city.id


def test_resolve_unknown_city_is_not_found(db):
    with pytest.raises(NotFound):
        tenancy.resolve_city(db, "nao-existe")


def test_resolve_inactive_city_is_not_found(db, city):
    city.is_active = False
    db.commit()

    with pytest.raises(NotFound):
        tenancy.resolve_city(db, "campinas")


def test_expired_city_still_resolves(db, make_city):
    """Resolution does not check the subscription; callers render the unavailable page."""
    make_city(slug="sorocaba", subscription_status="expired")

    city = tenancy.resolve_city(db, "sorocaba")
    assert tenancy.is_subscription_valid(city) is False


@pytest.mark.parametrize(
    "status, valid",
    [("active", True), ("trial", True), ("expired", False), ("cancelled", False), ("none", False)],
)
def test_subscription_validity_by_status(make_city, status, valid):
    city = make_city(subscription_status=status)
    assert tenancy.is_subscription_valid(city) is valid


def test_trial_with_past_end_date_is_invalid(make_city):
    city = make_city(subscription_status="trial", trial_ends_at=past(days=1))
    assert tenancy.is_subscription_valid(city) is False


def test_trial_with_future_end_date_is_valid(make_city):
    city = make_city(subscription_status="trial", trial_ends_at=future(days=7))
    assert tenancy.is_subscription_valid(city) is True


def test_trial_days_left_rounds_up(make_city):
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    city = make_city(
        subscription_status="trial", trial_ends_at=now + timedelta(days=2, hours=3)
    )

    info = tenancy.subscription_info(city, now=now)

    assert info.is_valid is True
    assert info.is_trial is True
    assert info.trial_days_left == 3


def test_expired_trial_has_zero_days_left(make_city):
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    city = make_city(subscription_status="trial", trial_ends_at=now - timedelta(days=4))

    info = tenancy.subscription_info(city, now=now)

    assert info.is_valid is False
    assert info.trial_days_left == 0


def test_active_city_has_no_trial_info(make_city):
    info = tenancy.subscription_info(make_city(subscription_status="active"))

    assert info.is_trial is False
    assert info.trial_days_left is None


def test_require_writable_city_raises_for_invalid_subscription(db, make_city):
    city = make_city(subscription_status="cancelled")

    with pytest.raises(TenantUnavailable):
        tenancy.require_writable_city(db, city.id)


def test_require_writable_city_passes_unscoped(db):
    """Legacy publications without a city have no tenant to check."""
    assert tenancy.require_writable_city(db, None) is None


def test_city_admin_moderates_only_own_city(db, make_city, moderator, city):
    other = make_city(slug="jundiai")

    assert tenancy.can_moderate(db, city.id, moderator) is True
    assert tenancy.can_moderate(db, other.id, moderator) is False


def test_platform_admin_moderates_everywhere(db, make_user, make_city):
    admin = make_user(role="admin")
    other = make_city(slug="jundiai")

    assert tenancy.can_moderate(db, other.id, admin) is True
    assert tenancy.can_moderate(db, None, admin) is True


def test_regular_user_cannot_moderate(db, alice, city):
    with pytest.raises(Forbidden):
        tenancy.require_moderator(db, city.id, alice)


def test_unscoped_content_only_moderated_by_platform_admin(db, moderator):
    assert tenancy.can_moderate(db, None, moderator) is False


def test_owner_or_moderator(db, alice, bob, moderator, city):
    tenancy.require_owner_or_moderator(db, alice.id, city.id, alice)
    tenancy.require_owner_or_moderator(db, alice.id, city.id, moderator)

    with pytest.raises(Forbidden):
        tenancy.require_owner_or_moderator(db, alice.id, city.id, bob)
