"""Test notification fan-out and read state."""

import pytest

from comunidade import models
from comunidade.errors import NotFound
from comunidade.services import notifications as notifications_module
from comunidade.services import reactions
from comunidade.services.notifications import NotificationService

from conftest import future, past


def _notify(db, recipient, sender, title="Novo comentário"):
    return NotificationService.create_notification(
        db=db,
        user_id=recipient.id,
        notification_type="comment",
        title=title,
        message="mensagem",
        link="/publicacao/1",
        sender=sender,
    )


def test_create_notification_snapshots_sender(db, alice, bob):
    notification = _notify(db, alice, bob)

    assert notification.sender_id == bob.id
    assert notification.sender_name == "Bob"
    assert notification.read is False


def test_self_notification_skipped(db, alice):
    assert _notify(db, alice, alice) is None
    assert db.query(models.Notification).count() == 0


def test_rate_limited_notification_skipped(db, alice, bob, monkeypatch):
    monkeypatch.setattr(notifications_module, "rate_limit_check", lambda *args, **kwargs: False)

    assert _notify(db, alice, bob) is None
    assert db.query(models.Notification).count() == 0


def test_rate_limit_keyed_per_pair_with_configured_cap(db, alice, bob, monkeypatch):
    seen = []

    def _check(key, limit, window_seconds=3600):
        seen.append((key, limit))
        return True

    monkeypatch.setattr(notifications_module, "rate_limit_check", _check)

    _notify(db, alice, bob)
    _notify(db, bob, alice)

    assert seen == [
        (f"notif:rate:{bob.id}:{alice.id}", notifications_module.NOTIFICATION_RATE_LIMIT_PER_HOUR),
        (f"notif:rate:{alice.id}:{bob.id}", notifications_module.NOTIFICATION_RATE_LIMIT_PER_HOUR),
    ]


def test_rate_limited_reaction_still_applies(db, make_publication, alice, bob, city, monkeypatch):
    """Hitting the cap drops the notification, never the reaction."""
    monkeypatch.setattr(notifications_module, "rate_limit_check", lambda *args, **kwargs: False)
    publication = make_publication(alice, city)

    assert reactions.toggle(db, "publication", publication.id, bob).reacted is True

    db.refresh(publication)
    assert publication.reactions_count == 1
    assert db.query(models.Notification).count() == 0


def test_system_notification_without_sender(db, alice):
    notification = NotificationService.create_system_notification(
        db, alice.id, "Aviso", "Manutencao programada"
    )

    assert notification.type == "system"
    assert notification.sender_id is None


def test_unread_count(db, alice, bob):
    for _ in range(3):
        _notify(db, alice, bob)

    assert NotificationService.get_unread_count(db, alice.id) == 3
    assert NotificationService.get_unread_count(db, bob.id) == 0


def test_mark_read_is_idempotent(db, alice, bob):
    notification = _notify(db, alice, bob)
    _notify(db, alice, bob)

    NotificationService.mark_read(db, notification.id, alice.id)
    NotificationService.mark_read(db, notification.id, alice.id)

    assert NotificationService.get_unread_count(db, alice.id) == 1
    db.refresh(notification)
    assert notification.read is True
    assert notification.read_at is not None


def test_mark_read_of_other_users_notification(db, alice, bob):
    notification = _notify(db, alice, bob)

    with pytest.raises(NotFound):
        NotificationService.mark_read(db, notification.id, bob.id)


def test_mark_as_read_ignores_foreign_ids(db, alice, bob):
    mine = _notify(db, alice, bob)
    theirs = _notify(db, bob, alice)

    updated = NotificationService.mark_as_read(db, [mine.id, theirs.id], alice.id)

    assert updated == 1
    assert NotificationService.get_unread_count(db, bob.id) == 1


def test_mark_all_as_read(db, alice, bob):
    for _ in range(4):
        _notify(db, alice, bob)

    assert NotificationService.mark_all_as_read(db, alice.id) == 4
    assert NotificationService.mark_all_as_read(db, alice.id) == 0
    assert NotificationService.get_unread_count(db, alice.id) == 0


def test_list_notifications_pagination(db, alice, bob):
    created = [_notify(db, alice, bob, title=f"n{i}") for i in range(5)]

    page, cursor = NotificationService.list_notifications(db, alice.id, limit=2)
    assert [n.id for n in page] == [created[4].id, created[3].id]
    assert cursor == created[3].id

    page, cursor = NotificationService.list_notifications(db, alice.id, limit=2, cursor=cursor)
    assert [n.id for n in page] == [created[2].id, created[1].id]

    page, cursor = NotificationService.list_notifications(db, alice.id, limit=2, cursor=cursor)
    assert [n.id for n in page] == [created[0].id]
    assert cursor is None


def test_list_unread_only(db, alice, bob):
    first = _notify(db, alice, bob)
    second = _notify(db, alice, bob)
    NotificationService.mark_read(db, first.id, alice.id)

    page, _ = NotificationService.list_notifications(db, alice.id, unread_only=True)

    assert [n.id for n in page] == [second.id]


def test_list_since(db, alice, bob):
    _notify(db, alice, bob)

    recent, _ = NotificationService.list_notifications(db, alice.id, since=past(hours=1))
    assert len(recent) == 1

    none_yet, _ = NotificationService.list_notifications(db, alice.id, since=future(hours=1))
    assert none_yet == []
