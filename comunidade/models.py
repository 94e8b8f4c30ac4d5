from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


# ============================================================================
# ENUMERATIONS
# ============================================================================

SUBSCRIPTION_STATUSES = ("active", "trial", "expired", "cancelled", "none")
VALID_SUBSCRIPTION_STATUSES = ("active", "trial")

USER_ROLES = ("user", "admin")
# Profile levels and the points each one starts at
USER_LEVELS = (
    ("iniciante", 0),
    ("intermediario", 100),
    ("avancado", 300),
    ("expert", 500),
)

CITY_ADMIN_ROLES = ("owner", "admin", "moderator")

# Declaration order matters: suggestion ties are broken by it.
PUBLICATION_CATEGORIES = ("ajuda", "servico", "vaga", "doacao", "aviso")
PUBLICATION_STATUSES = ("pending", "ativo", "resolvido", "inativo", "oculto")

REACTION_TARGET_TYPES = ("publication", "comment")

NOTIFICATION_TYPES = ("comment", "reply", "reaction", "mention", "system")


# ============================================================================
# TENANCY
# ============================================================================


class City(Base):
    """A tenant: one community sharing the schema, scoped by city_id."""

    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    state = Column(String(2), nullable=True)

    # Subscription (billing lives elsewhere, only its output is stored here)
    subscription_status = Column(String(20), nullable=False, default="trial")
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # When set, new publications start in "pending" and wait for a city admin.
    requires_moderation = Column(Boolean, nullable=False, default=False)

    # Branding
    primary_color = Column(String(20), nullable=False, default="#2563eb")
    secondary_color = Column(String(20), nullable=False, default="#1e40af")
    logo_url = Column(String(500), nullable=True)
    banner_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    admins = relationship("CityAdmin", back_populates="city", cascade="all, delete-orphan")


class User(Base):
    """User profile. One per authenticated identity."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    avatar_url = Column(String(500), nullable=True)
    bairro = Column(String(100), nullable=True)

    # Platform-wide role; city administration is granted through CityAdmin.
    role = Column(String(20), nullable=False, default="user")
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    city = relationship("City", foreign_keys=[city_id])


class CityAdmin(Base):
    """Per-city administrative capability, distinct from the platform admin role."""

    __tablename__ = "city_admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="moderator")

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    city = relationship("City", back_populates="admins")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("city_id", "user_id", name="uq_city_admins_city_user"),
    )


# ============================================================================
# CONTENT
# ============================================================================


class Publication(Base):
    """Classified post in one of the fixed categories."""

    __tablename__ = "publications"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Nullable for legacy un-scoped posts
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="CASCADE"), nullable=True, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(20), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="ativo", index=True)
    location = Column(String(200), nullable=True)
    contact_info = Column(String(200), nullable=True)

    # Denormalized counters, maintained by the services
    comments_count = Column(Integer, nullable=False, default=0)
    reactions_count = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    owner = relationship("User", foreign_keys=[user_id])
    city = relationship("City", foreign_keys=[city_id])

    __table_args__ = (
        Index("ix_publications_city_status_created", city_id, status, created_at.desc()),
        Index("ix_publications_owner_created", user_id, created_at.desc()),
    )


class Comment(Base):
    """Comment on a publication, supporting one level of replies."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    publication_id = Column(
        Integer, ForeignKey("publications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True
    )  # NULL = top-level

    content = Column(Text, nullable=False)
    reactions_count = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # Relationships
    author = relationship("User", foreign_keys=[user_id])

    __table_args__ = (Index("ix_comments_publication_created", publication_id, created_at),)


class Reaction(Base):
    """A "like" from a user on a publication or a comment."""

    __tablename__ = "reactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_type = Column(String(20), nullable=False)
    target_id = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="like")

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        # At most one reaction per (target, user); the toggle relies on it
        UniqueConstraint("target_type", "target_id", "user_id", name="uq_reactions_target_user"),
        Index("ix_reactions_target", target_type, target_id),
    )


# ============================================================================
# NOTIFICATIONS & AUDIT
# ============================================================================


class Notification(Base):
    """Notification for a user, denormalized so it renders without joins."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(20), nullable=False)

    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)

    # Sender snapshot
    sender_name = Column(String(100), nullable=True)
    sender_avatar_url = Column(String(500), nullable=True)

    read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        Index("ix_notifications_user_read", user_id, read),
        Index("ix_notifications_user_created", user_id, created_at.desc()),
    )


class AuditLog(Base):
    """Audit log for moderator actions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(String(100), nullable=False, index=True)
    target_type = Column(String(20), nullable=True)
    target_id = Column(Integer, nullable=True)
    note = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
