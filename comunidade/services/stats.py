"""
Dashboard statistics.

City-level totals for the city admin dashboard and per-user activity totals
for profiles. Computed on demand from the underlying rows.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFound
from . import tenancy

logger = logging.getLogger(__name__)

# Points earned per contribution
POINTS_PER_PUBLICATION = 10
POINTS_PER_COMMENT = 5
POINTS_PER_REACTION_RECEIVED = 2


def level_for_points(points: int) -> str:
    level = models.USER_LEVELS[0][0]
    for name, threshold in models.USER_LEVELS:
        if points >= threshold:
            level = name
    return level


@dataclass
class CityStats:
    """Statistics for a city dashboard."""

    total_users: int
    total_publications: int
    publications_this_month: int
    publications_by_status: dict[str, int]
    publications_by_category: dict[str, int]
    total_comments: int
    total_reactions: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class UserStats:
    """Activity statistics for a user profile."""

    publications_count: int
    comments_count: int
    reactions_received: int
    points: int
    level: str

    def to_dict(self) -> dict:
        return asdict(self)


class StatsService:
    """Computes dashboard statistics for cities and users."""

    def __init__(self, db: Session):
        self.db = db

    def get_city_stats(self, city: models.City, actor: models.User) -> CityStats:
        """
        Statistics for one city. City admins and platform admins only.
        """
        tenancy.require_moderator(self.db, city.id, actor)

        by_status = dict(
            self.db.query(models.Publication.status, func.count(models.Publication.id))
            .filter(models.Publication.city_id == city.id)
            .group_by(models.Publication.status)
            .all()
        )
        by_category = dict(
            self.db.query(models.Publication.category, func.count(models.Publication.id))
            .filter(models.Publication.city_id == city.id)
            .group_by(models.Publication.category)
            .all()
        )

        now = datetime.now(timezone.utc)
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        publications_this_month = (
            self.db.query(func.count(models.Publication.id))
            .filter(
                models.Publication.city_id == city.id,
                models.Publication.created_at >= month_start,
            )
            .scalar()
            or 0
        )

        # Counters are denormalized on the publication rows
        totals = (
            self.db.query(
                func.coalesce(func.sum(models.Publication.comments_count), 0),
                func.coalesce(func.sum(models.Publication.reactions_count), 0),
            )
            .filter(models.Publication.city_id == city.id)
            .one()
        )

        total_users = (
            self.db.query(func.count(models.User.id))
            .filter(models.User.city_id == city.id)
            .scalar()
            or 0
        )

        return CityStats(
            total_users=total_users,
            total_publications=sum(by_status.values()),
            publications_this_month=publications_this_month,
            publications_by_status={s: by_status.get(s, 0) for s in models.PUBLICATION_STATUSES},
            publications_by_category={
                c: by_category.get(c, 0) for c in models.PUBLICATION_CATEGORIES
            },
            total_comments=int(totals[0]),
            total_reactions=int(totals[1]),
        )

    def get_user_stats(self, user_id: int) -> UserStats:
        """
        Profile totals. Points and level are derived from the user's
        contributions on every call, so they never drift from the rows.
        """
        user = self.db.query(models.User).filter(models.User.id == user_id).first()
        if not user:
            raise NotFound("Usuário não encontrado")

        publications_count = (
            self.db.query(func.count(models.Publication.id))
            .filter(models.Publication.user_id == user_id)
            .scalar()
            or 0
        )
        comments_count = (
            self.db.query(func.count(models.Comment.id))
            .filter(models.Comment.user_id == user_id)
            .scalar()
            or 0
        )

        own_publications = select(models.Publication.id).where(
            models.Publication.user_id == user_id
        )
        own_comments = select(models.Comment.id).where(
            models.Comment.user_id == user_id
        )
        reactions_received = (
            self.db.query(func.count(models.Reaction.id))
            .filter(
                or_(
                    (models.Reaction.target_type == "publication")
                    & models.Reaction.target_id.in_(own_publications),
                    (models.Reaction.target_type == "comment")
                    & models.Reaction.target_id.in_(own_comments),
                )
            )
            .scalar()
            or 0
        )

        points = (
            publications_count * POINTS_PER_PUBLICATION
            + comments_count * POINTS_PER_COMMENT
            + reactions_received * POINTS_PER_REACTION_RECEIVED
        )

        return UserStats(
            publications_count=publications_count,
            comments_count=comments_count,
            reactions_received=reactions_received,
            points=points,
            level=level_for_points(points),
        )
