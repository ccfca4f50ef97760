"""
guildhall.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- members              — Contributor profiles, credentials, and counters
- forum_categories     — Top-level discussion areas
- forum_topics         — Threads started inside a category
- forum_replies        — Replies to a topic (optionally nested via parent)
- activities           — Append-only journal feeding the activity feed
- quests               — Admin-defined tasks worth points
- quest_completions    — Per-member quest progress
- post_rate_limit_events — Sliding-window state for the posting throttle
- revoked_tokens       — Sessions ended before their token expired
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Guildhall ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActivityType(enum.StrEnum):
    """Every activity tag an action handler can write to the journal."""
    NEW_CONTRIBUTOR = "new_contributor"
    TIER_UP = "tier_up"
    QUEST_COMPLETED = "quest_completed"
    REFERRAL_MILESTONE = "referral_milestone"
    EVENT_ORGANIZED = "event_organized"
    NEW_TOPIC = "new_topic"
    NEW_REPLY = "new_reply"
    PROFILE_UPDATE = "profile_update"


class Role(enum.StrEnum):
    ADMIN = "admin"
    CONTRIBUTOR = "contributor"
    AMBASSADOR = "ambassador"


class Tier(enum.StrEnum):
    """Program tiers, lowest first."""
    CONTRIBUTOR = "contributor"
    AMBASSADOR = "ambassador"
    FELLOW = "fellow"


class QuestStatus(enum.StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Members: one row per registered contributor
# ---------------------------------------------------------------------------
class Member(Base):
    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # Email members carry email + password_hash; wallet members carry wallet_address
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(100), nullable=True)
    wallet_address: Mapped[str | None] = mapped_column(String(42), nullable=True, unique=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    bio: Mapped[str] = mapped_column(Text, default="")
    avatar_url: Mapped[str] = mapped_column(String(500), default="")
    skill_tags: Mapped[list | None] = mapped_column(JSONB, default=list)

    # Social handles
    x_handle: Mapped[str] = mapped_column(String(100), default="")
    telegram_handle: Mapped[str] = mapped_column(String(100), default="")
    lens_handle: Mapped[str] = mapped_column(String(100), default="")
    farcaster_handle: Mapped[str] = mapped_column(String(100), default="")

    # Location / affiliation
    college: Mapped[str] = mapped_column(String(200), default="")
    city: Mapped[str] = mapped_column(String(100), default="")
    region: Mapped[str] = mapped_column(String(100), default="")

    # Program standing
    tier: Mapped[str] = mapped_column(String(20), nullable=False, default=Tier.CONTRIBUTOR.value)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.CONTRIBUTOR.value)
    referral_code: Mapped[str] = mapped_column(String(50), default="")
    referrals_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quests_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    activities: Mapped[list[Activity]] = relationship(
        back_populates="member", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_members_total_points", "total_points"),
        Index("ix_members_joined_at", "joined_at"),
    )

    def __repr__(self) -> str:
        return f"<Member id={self.id} username={self.username!r} tier={self.tier}>"


# ---------------------------------------------------------------------------
# Forum
# ---------------------------------------------------------------------------
class ForumCategory(Base):
    __tablename__ = "forum_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, default="")
    icon: Mapped[str] = mapped_column(String(50), default="MessageSquare")
    topic_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    topics: Mapped[list[ForumTopic]] = relationship(
        back_populates="category", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<ForumCategory id={self.id} slug={self.slug!r}>"


class ForumTopic(Base):
    __tablename__ = "forum_topics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("forum_categories.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str] = mapped_column(String(500), default="")
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reply_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reply_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    category: Mapped[ForumCategory] = relationship(back_populates="topics")
    author: Mapped[Member] = relationship()
    replies: Mapped[list[ForumReply]] = relationship(
        back_populates="topic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_forum_topics_category_created", "category_id", "created_at"),
        Index("ix_forum_topics_author", "author_id"),
    )

    def __repr__(self) -> str:
        return f"<ForumTopic id={self.id} title={self.title[:30]!r}>"


class ForumReply(Base):
    __tablename__ = "forum_replies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    topic_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Not a foreign key: a parent may be pruned while its children remain.
    parent_reply_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    topic: Mapped[ForumTopic] = relationship(back_populates="replies")
    author: Mapped[Member] = relationship()

    __table_args__ = (
        Index("ix_forum_replies_topic_created", "topic_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ForumReply id={self.id} topic={self.topic_id} parent={self.parent_reply_id}>"


# ---------------------------------------------------------------------------
# Activities: append-only journal
# ---------------------------------------------------------------------------
class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    member: Mapped[Member] = relationship(back_populates="activities")

    __table_args__ = (
        Index("ix_activities_created_at", "created_at"),
        Index("ix_activities_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Activity id={self.id} user={self.user_id} type={self.type}>"


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------
class Quest(Base):
    __tablename__ = "quests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    target_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="easy")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    completions: Mapped[list[QuestCompletion]] = relationship(
        back_populates="quest", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Quest id={self.id} title={self.title!r} points={self.points}>"


class QuestCompletion(Base):
    __tablename__ = "quest_completions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    quest_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quests.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuestStatus.IN_PROGRESS.value
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    quest: Mapped[Quest] = relationship(back_populates="completions")

    __table_args__ = (
        UniqueConstraint("quest_id", "user_id", name="uq_quest_completions_quest_user"),
    )

    def __repr__(self) -> str:
        return f"<QuestCompletion quest={self.quest_id} user={self.user_id} status={self.status}>"


# ---------------------------------------------------------------------------
# PostRateLimitEvent: durable events for the forum posting throttle
# ---------------------------------------------------------------------------
class PostRateLimitEvent(Base):
    __tablename__ = "post_rate_limit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[str] = mapped_column(String(36), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_post_rate_limit_member_ts", "member_id", timestamp.desc()),
    )

    def __repr__(self) -> str:
        return f"<PostRateLimitEvent member={self.member_id!r} ts={self.timestamp}>"


# ---------------------------------------------------------------------------
# RevokedToken: sessions ended before their JWT expired
# ---------------------------------------------------------------------------
class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_revoked_tokens_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<RevokedToken jti={self.jti[:8]!r}... expires={self.expires_at}>"
