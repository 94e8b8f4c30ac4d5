from __future__ import annotations

import logging
import os
import time
from typing import Callable, Generator, TypeVar
from urllib.parse import quote_plus

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .errors import ServiceUnavailable
from .settings import DB_RETRY_BACKOFF_MS

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_database_url() -> str:
    """Get the database URL for API operations."""
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit

    # Construct from components
    db_user = os.getenv("DB_USER")
    db_pass = os.getenv("DB_PASSWORD")
    db_name = os.getenv("DB_DATABASE")
    db_host = os.getenv("DB_HOST", "db")
    db_port = os.getenv("DB_PORT", "5432")

    if db_user and db_pass and db_name:
        # URL-encode the password in case it contains special characters
        encoded_pass = quote_plus(db_pass)
        return f"postgresql+psycopg://{db_user}:{encoded_pass}@{db_host}:{db_port}/{db_name}"

    raise RuntimeError(
        "DATABASE_URL must be set, or DB_USER, DB_PASSWORD, and DB_DATABASE must all be set."
    )


DATABASE_URL = get_database_url()


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


engine = create_engine(
    DATABASE_URL,
    future=True,
    echo=os.getenv("LOG_LEVEL", "INFO").upper() == "DEBUG",
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

# Number of commits a session has made; run_with_retry never replays work
# once part of it is durable.
_COMMIT_COUNT_KEY = "commit_count"


@event.listens_for(Session, "after_commit")
def _count_commit(session: Session) -> None:
    session.info[_COMMIT_COUNT_KEY] = session.info.get(_COMMIT_COUNT_KEY, 0) + 1


def get_session() -> Generator[Session, None, None]:
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def run_with_retry(db: Session, operation: Callable[[], T]) -> T:
    """
    Run a database operation, retrying once on a transient connection failure.

    The session is rolled back between attempts. Only an attempt that has not
    committed anything is replayed: a failure after a commit, or a second
    failure, surfaces as ServiceUnavailable. Domain errors raised by the
    operation pass through untouched.
    """
    commits_before = db.info.get(_COMMIT_COUNT_KEY, 0)
    try:
        return operation()
    except OperationalError as e:
        db.rollback()
        if db.info.get(_COMMIT_COUNT_KEY, 0) != commits_before:
            logger.error(f"Database error after a partial commit, not retrying: {e}")
            raise ServiceUnavailable() from e
        logger.warning(f"Transient database error, retrying once: {e}")
        time.sleep(DB_RETRY_BACKOFF_MS / 1000.0)

    try:
        return operation()
    except OperationalError as e:
        logger.error(f"Database unavailable after retry: {e}")
        db.rollback()
        raise ServiceUnavailable() from e
