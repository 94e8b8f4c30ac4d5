"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Maximum length of a comment body (characters, after stripping whitespace).
COMMENT_MAX_LENGTH: int = _int_env("COMUNIDADE_COMMENT_MAX_LENGTH", 1000)

# Maximum length of a publication title.
PUBLICATION_TITLE_MAX_LENGTH: int = _int_env("COMUNIDADE_TITLE_MAX_LENGTH", 200)

# Search limits
SEARCH_DEFAULT_LIMIT: int = _int_env("COMUNIDADE_SEARCH_DEFAULT_LIMIT", 20)
SEARCH_MAX_LIMIT: int = _int_env("COMUNIDADE_SEARCH_MAX_LIMIT", 50)

# Number of recent active publications sampled for popular-category suggestions.
SUGGESTION_WINDOW: int = _int_env("COMUNIDADE_SUGGESTION_WINDOW", 200)
SUGGESTION_DEFAULT_LIMIT: int = _int_env("COMUNIDADE_SUGGESTION_LIMIT", 5)

# Notification fan-out: max notifications per hour from one sender to one recipient.
NOTIFICATION_RATE_LIMIT_PER_HOUR: int = _int_env("COMUNIDADE_NOTIFICATION_RATE_LIMIT", 720)

# Backoff before retrying a transient database failure (milliseconds).
DB_RETRY_BACKOFF_MS: int = _int_env("COMUNIDADE_DB_RETRY_BACKOFF_MS", 200)

# Run Alembic migrations when the API process starts.
RUN_MIGRATIONS_ON_STARTUP: bool = _bool_env("COMUNIDADE_RUN_MIGRATIONS", True)
