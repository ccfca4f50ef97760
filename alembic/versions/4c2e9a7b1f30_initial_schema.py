"""Initial schema: members, forum, activities, quests, posting throttle

Revision ID: 4c2e9a7b1f30
Revises:
Create Date: 2026-10-18 10:12:41.118204

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4c2e9a7b1f30'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    # --- members ---
    op.create_table(
        "members",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(100), nullable=False),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("bio", sa.Text),
        sa.Column("avatar_url", sa.String(500)),
        sa.Column("skill_tags", postgresql.JSONB),
        sa.Column("x_handle", sa.String(100)),
        sa.Column("telegram_handle", sa.String(100)),
        sa.Column("lens_handle", sa.String(100)),
        sa.Column("farcaster_handle", sa.String(100)),
        sa.Column("college", sa.String(200)),
        sa.Column("city", sa.String(100)),
        sa.Column("region", sa.String(100)),
        sa.Column("tier", sa.String(20), nullable=False, server_default="contributor"),
        sa.Column("role", sa.String(20), nullable=False, server_default="contributor"),
        sa.Column("referral_code", sa.String(50)),
        sa.Column("referrals_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("content_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("events_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("quests_completed", sa.Integer, nullable=False, server_default="0"),
        _created_at("joined_at"),
    )
    op.create_index("ix_members_total_points", "members", ["total_points"])
    op.create_index("ix_members_joined_at", "members", ["joined_at"])

    # --- forum ---
    op.create_table(
        "forum_categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text),
        sa.Column("icon", sa.String(50)),
        sa.Column("topic_count", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table(
        "forum_topics",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "category_id", sa.String(36),
            sa.ForeignKey("forum_categories.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "author_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("image_url", sa.String(500)),
        sa.Column("is_pinned", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("reply_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_reply_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_forum_topics_category_created", "forum_topics", ["category_id", "created_at"]
    )
    op.create_index("ix_forum_topics_author", "forum_topics", ["author_id"])

    op.create_table(
        "forum_replies",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "topic_id", sa.String(36),
            sa.ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "author_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("parent_reply_id", sa.String(36), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_forum_replies_topic_created", "forum_replies", ["topic_id", "created_at"]
    )

    # --- activities ---
    op.create_table(
        "activities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("metadata", postgresql.JSONB, server_default="{}"),
        _created_at(),
    )
    op.create_index("ix_activities_created_at", "activities", ["created_at"])
    op.create_index("ix_activities_user_time", "activities", ["user_id", "created_at"])

    # --- quests ---
    op.create_table(
        "quests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("target_count", sa.Integer, nullable=False, server_default="1"),
        sa.Column("difficulty", sa.String(20), nullable=False, server_default="easy"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        "quest_completions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "quest_id", sa.String(36),
            sa.ForeignKey("quests.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="in_progress"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        _created_at("started_at"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("quest_id", "user_id", name="uq_quest_completions_quest_user"),
    )

    # --- posting throttle ---
    op.create_table(
        "post_rate_limit_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("member_id", sa.String(36), nullable=False),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True),
            nullable=False, server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_post_rate_limit_member_ts", "post_rate_limit_events",
        ["member_id", sa.text("timestamp DESC")],
    )


def downgrade() -> None:
    op.drop_table("post_rate_limit_events")
    op.drop_table("quest_completions")
    op.drop_table("quests")
    op.drop_table("activities")
    op.drop_table("forum_replies")
    op.drop_table("forum_topics")
    op.drop_table("forum_categories")
    op.drop_table("members")
