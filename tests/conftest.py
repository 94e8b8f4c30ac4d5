from __future__ import annotations

import os

# Settings are read at import time: configure the environment before any
# comunidade module is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["COMUNIDADE_RUN_MIGRATIONS"] = "false"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-for-pytest-only-" + "x" * 40)

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from comunidade import models  # noqa: E402
from comunidade.auth import create_access_token  # noqa: E402
from comunidade.db import Base  # noqa: E402
from comunidade.deps import get_db  # noqa: E402
from comunidade.main import app  # noqa: E402


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Fresh in-memory database per test, shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    def _get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_city(db: Session) -> Callable[..., models.City]:
    counter = {"n": 0}

    def _make(
        slug: str | None = None,
        subscription_status: str = "active",
        trial_ends_at: datetime | None = None,
        requires_moderation: bool = False,
    ) -> models.City:
        counter["n"] += 1
        city = models.City(
            slug=slug or f"cidade-{counter['n']}",
            name=f"Cidade {counter['n']}",
            state="SP",
            subscription_status=subscription_status,
            trial_ends_at=trial_ends_at,
            requires_moderation=requires_moderation,
        )
        db.add(city)
        db.commit()
        db.refresh(city)
        return city

    return _make


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    counter = {"n": 0}

    def _make(
        name: str | None = None,
        city: models.City | None = None,
        role: str = "user",
    ) -> models.User:
        counter["n"] += 1
        user = models.User(
            name=name or f"Morador {counter['n']}",
            email=f"morador{counter['n']}@example.com",
            role=role,
            city_id=city.id if city else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_city_admin(db: Session) -> Callable[..., models.CityAdmin]:
    def _make(city: models.City, user: models.User, role: str = "moderator") -> models.CityAdmin:
        city_admin = models.CityAdmin(city_id=city.id, user_id=user.id, role=role)
        db.add(city_admin)
        db.commit()
        return city_admin

    return _make


@pytest.fixture()
def make_publication(db: Session) -> Callable[..., models.Publication]:
    """Insert a publication directly, bypassing the lifecycle rules."""

    def _make(
        owner: models.User,
        city: models.City | None,
        title: str = "Preciso de ajuda com mudanca",
        description: str = "Alguem pode ajudar no sabado?",
        category: str = "ajuda",
        status: str = "ativo",
        created_at: datetime | None = None,
    ) -> models.Publication:
        publication = models.Publication(
            user_id=owner.id,
            city_id=city.id if city else None,
            title=title,
            description=description,
            category=category,
            status=status,
            comments_count=0,
            reactions_count=0,
        )
        if created_at is not None:
            publication.created_at = created_at
        db.add(publication)
        db.commit()
        db.refresh(publication)
        return publication

    return _make


@pytest.fixture()
def city(make_city) -> models.City:
    return make_city(slug="campinas")


@pytest.fixture()
def alice(make_user, city) -> models.User:
    return make_user(name="Alice", city=city)


@pytest.fixture()
def bob(make_user, city) -> models.User:
    return make_user(name="Bob", city=city)


@pytest.fixture()
def moderator(make_user, make_city_admin, city) -> models.User:
    user = make_user(name="Moderadora", city=city)
    make_city_admin(city, user)
    return user


def auth_headers(user: models.User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def past(**kwargs) -> datetime:
    return datetime.now(timezone.utc) - timedelta(**kwargs)


def future(**kwargs) -> datetime:
    return datetime.now(timezone.utc) + timedelta(**kwargs)
