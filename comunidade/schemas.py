from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# BASE SCHEMAS
# ============================================================================


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    next_cursor: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


Category = Literal["ajuda", "servico", "vaga", "doacao", "aviso"]
PublicationStatus = Literal["pending", "ativo", "resolvido", "inativo", "oculto"]
SubscriptionStatus = Literal["active", "trial", "expired", "cancelled", "none"]


# ============================================================================
# CITY SCHEMAS
# ============================================================================


class City(BaseModel):
    """Public view of a tenant."""

    id: int
    slug: str
    name: str
    state: str | None = None
    subscription_status: SubscriptionStatus
    subscription_valid: bool = False
    is_trial: bool = False
    trial_days_left: int | None = None
    requires_moderation: bool
    primary_color: str
    secondary_color: str
    logo_url: str | None = None
    banner_url: str | None = None
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


class CityCreate(BaseModel):
    slug: str = Field(..., min_length=2, max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    name: str = Field(..., min_length=1, max_length=200)
    state: str | None = Field(None, max_length=2)
    subscription_status: SubscriptionStatus = "trial"
    trial_ends_at: datetime | None = None
    requires_moderation: bool = False


class CitySettingsUpdate(BaseModel):
    """City admin settings page. Only the fields sent are changed."""

    primary_color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    secondary_color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    logo_url: str | None = Field(None, max_length=500)
    banner_url: str | None = Field(None, max_length=500)
    description: str | None = Field(None, max_length=2000)
    requires_moderation: bool | None = None


class CitySubscriptionUpdate(BaseModel):
    subscription_status: SubscriptionStatus
    trial_ends_at: datetime | None = None


class CityAdminCreate(BaseModel):
    user_id: int
    role: Literal["owner", "admin", "moderator"] = "moderator"


class CityAdmin(BaseModel):
    id: int
    city_id: int
    user_id: int
    role: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CityStats(BaseModel):
    total_users: int
    total_publications: int
    publications_this_month: int
    publications_by_status: dict[str, int]
    publications_by_category: dict[str, int]
    total_comments: int
    total_reactions: int


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserPublic(BaseModel):
    id: int
    name: str
    avatar_url: str | None = None
    bairro: str | None = None
    level: str

    model_config = ConfigDict(from_attributes=True)


class UserStats(BaseModel):
    publications_count: int
    comments_count: int
    reactions_received: int
    points: int
    level: str


# ============================================================================
# PUBLICATION SCHEMAS
# ============================================================================


class Publication(BaseModel):
    """Publication in a city feed."""

    id: int
    user_id: int
    city_id: int | None = None
    title: str
    description: str
    category: Category
    status: PublicationStatus
    location: str | None = None
    contact_info: str | None = None
    comments_count: int
    reactions_count: int
    created_at: datetime
    updated_at: datetime | None = None
    owner: UserPublic | None = None

    model_config = ConfigDict(from_attributes=True)


class PublicationCreate(BaseModel):
    """Create publication request.

    Length and emptiness rules are enforced by the lifecycle service so they
    report as ValidationError like every other input problem.
    """

    title: str
    description: str
    category: str
    location: str | None = Field(None, max_length=200)
    contact_info: str | None = Field(None, max_length=200)


class PublicationTransition(BaseModel):
    action: Literal["approve", "reject", "resolve", "reopen", "hide", "unhide"]


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class Comment(BaseModel):
    """Comment on a publication."""

    id: int
    publication_id: int
    user_id: int
    parent_id: int | None = None
    content: str
    reactions_count: int
    created_at: datetime
    author: UserPublic | None = None

    model_config = ConfigDict(from_attributes=True)


class CommentNode(Comment):
    """Comment annotated for the viewer, with replies (one level)."""

    user_reacted: bool = False
    replies: list["CommentNode"] = Field(default_factory=list)


class CommentCreate(BaseModel):
    """Create comment request."""

    content: str
    parent_id: int | None = None


# ============================================================================
# REACTION SCHEMAS
# ============================================================================


class ReactionToggle(BaseModel):
    reacted: bool


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class Notification(BaseModel):
    id: int
    type: Literal["comment", "reply", "reaction", "mention", "system"]
    title: str
    message: str
    link: str | None = None
    sender_id: int | None = None
    sender_name: str | None = None
    sender_avatar_url: str | None = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationUnreadCount(BaseModel):
    unread_count: int


class NotificationMarkRead(BaseModel):
    notification_ids: list[int] = Field(..., max_length=200)


# ============================================================================
# SEARCH SCHEMAS
# ============================================================================


class Suggestion(BaseModel):
    id: str
    text: str
    type: Literal["category", "popular"]
    count: int | None = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# AUDIT SCHEMAS
# ============================================================================


class AuditLogEntry(BaseModel):
    id: int
    actor_id: int | None = None
    action: str
    target_type: str | None = None
    target_id: int | None = None
    note: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


CommentNode.model_rebuild()
