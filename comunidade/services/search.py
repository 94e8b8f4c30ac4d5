"""Search and suggestions over a city's active publications."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models
from ..errors import ValidationError
from ..settings import (
    SEARCH_DEFAULT_LIMIT,
    SEARCH_MAX_LIMIT,
    SUGGESTION_DEFAULT_LIMIT,
    SUGGESTION_WINDOW,
)
from . import tenancy

CATEGORY_LABELS: dict[str, str] = {
    "ajuda": "Pedidos de Ajuda",
    "servico": "Serviços",
    "vaga": "Vagas",
    "doacao": "Doações",
    "aviso": "Avisos",
}


@dataclass(frozen=True)
class Suggestion:
    id: str
    text: str
    type: str  # "category" or "popular"
    count: int | None = None


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _clamp_limit(limit: int | None) -> int:
    if limit is None:
        return SEARCH_DEFAULT_LIMIT
    return max(1, min(limit, SEARCH_MAX_LIMIT))


def search_publications(
    db: Session,
    city: models.City,
    query: str | None = None,
    category: str | None = None,
    limit: int | None = None,
) -> list[models.Publication]:
    """
    Case-insensitive substring search over title OR description.

    Always scoped to the city and to status "ativo"; newest first.
    """
    tenancy.require_valid_subscription(city)
    if category and category not in models.PUBLICATION_CATEGORIES:
        raise ValidationError(f"Categoria inválida: {category}")

    q = db.query(models.Publication).filter(
        models.Publication.city_id == city.id,
        models.Publication.status == "ativo",
    )

    if category:
        q = q.filter(models.Publication.category == category)

    text = (query or "").strip().lower()
    if text:
        pattern = f"%{escape_like(text)}%"
        q = q.filter(
            or_(
                func.lower(models.Publication.title).like(pattern, escape="\\"),
                func.lower(models.Publication.description).like(pattern, escape="\\"),
            )
        )

    return (
        q.order_by(models.Publication.created_at.desc(), models.Publication.id.desc())
        .limit(_clamp_limit(limit))
        .all()
    )


def popular_categories(db: Session, city: models.City, limit: int) -> list[tuple[str, int]]:
    """
    Categories ranked by count over the city's most recent active publications.

    Ties keep category declaration order.
    """
    rows = (
        db.query(models.Publication.category)
        .filter(
            models.Publication.city_id == city.id,
            models.Publication.status == "ativo",
        )
        .order_by(models.Publication.created_at.desc(), models.Publication.id.desc())
        .limit(SUGGESTION_WINDOW)
        .all()
    )
    counts = Counter(row.category for row in rows)
    order = {category: i for i, category in enumerate(models.PUBLICATION_CATEGORIES)}
    ranked = sorted(
        (item for item in counts.items() if item[0] in order),
        key=lambda item: (-item[1], order[item[0]]),
    )
    return ranked[:limit]


def suggest(
    db: Session,
    city: models.City,
    query: str | None = None,
    limit: int | None = None,
) -> list[Suggestion]:
    """
    Category suggestions for a partial query.

    Categories whose label matches the query come first (label prefix matches
    before other substring matches), followed by popular categories.
    """
    tenancy.require_valid_subscription(city)
    limit = limit or SUGGESTION_DEFAULT_LIMIT
    text = (query or "").strip().lower()

    suggestions: list[Suggestion] = []
    if text:
        prefix, contains = [], []
        for category in models.PUBLICATION_CATEGORIES:
            label = CATEGORY_LABELS[category]
            lowered = label.lower()
            if lowered.startswith(text) or category.startswith(text):
                prefix.append(Suggestion(id=category, text=label, type="category"))
            elif text in lowered:
                contains.append(Suggestion(id=category, text=label, type="category"))
        suggestions = prefix + contains

    seen = {s.id for s in suggestions}
    for category, count in popular_categories(db, city, limit):
        if category in seen:
            continue
        suggestions.append(
            Suggestion(id=category, text=CATEGORY_LABELS[category], type="popular", count=count)
        )

    return suggestions[:limit]
