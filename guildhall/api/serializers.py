"""
guildhall.api.serializers — ORM rows and feed items → JSON dicts
=================================================================

Routes return plain dicts.  Member dicts never carry the password hash;
the email address is only included for the member's own session.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from guildhall.constants import TIER_LABELS, avatar_url
from guildhall.database.models import (
    ForumCategory,
    ForumReply,
    ForumTopic,
    Member,
    Quest,
    QuestCompletion,
)
from guildhall.engine.activity_types import ambient_label, describe, detail
from guildhall.engine.feed import AmbientGroup, FeedActivity, FeedItem, TimeSection
from guildhall.engine.threads import ReplyNode
from guildhall.engine.tiers import tier_progress


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------
def author_dict(m: Member | None) -> dict | None:
    if m is None:
        return None
    return {
        "id": m.id,
        "username": m.username,
        "tier": m.tier,
        "avatar_url": avatar_url(m.username, m.avatar_url),
    }


def member_dict(m: Member, *, private: bool = False) -> dict:
    progress = tier_progress(m.tier, m.referrals_count, m.events_count)
    data = {
        **author_dict(m),
        "bio": m.bio,
        "skill_tags": list(m.skill_tags or []),
        "x_handle": m.x_handle,
        "telegram_handle": m.telegram_handle,
        "lens_handle": m.lens_handle,
        "farcaster_handle": m.farcaster_handle,
        "college": m.college,
        "city": m.city,
        "region": m.region,
        "tier_label": TIER_LABELS.get(m.tier, m.tier),
        "role": m.role,
        "referrals_count": m.referrals_count,
        "content_count": m.content_count,
        "events_count": m.events_count,
        "total_points": m.total_points,
        "quests_completed": m.quests_completed,
        "next_tier": progress.next_tier,
        "tier_progress": progress.percent,
        "joined_at": _iso(m.joined_at),
    }
    if private:
        data["email"] = m.email
        data["wallet_address"] = m.wallet_address
        data["referral_code"] = m.referral_code
    return data


# ---------------------------------------------------------------------------
# Forum
# ---------------------------------------------------------------------------
def category_dict(c: ForumCategory) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "icon": c.icon,
        "topic_count": c.topic_count,
    }


def topic_dict(t: ForumTopic) -> dict:
    return {
        "id": t.id,
        "category_id": t.category_id,
        "category": category_dict(t.category) if t.category else None,
        "author": author_dict(t.author),
        "title": t.title,
        "content": t.content,
        "image_url": t.image_url or None,
        "is_pinned": t.is_pinned,
        "reply_count": t.reply_count,
        "last_reply_at": _iso(t.last_reply_at),
        "created_at": _iso(t.created_at),
    }


def reply_dict(r: ForumReply) -> dict:
    return {
        "id": r.id,
        "topic_id": r.topic_id,
        "author": author_dict(r.author),
        "content": r.content,
        "parent_reply_id": r.parent_reply_id,
        "created_at": _iso(r.created_at),
    }


def reply_node_dict(node: ReplyNode[ForumReply]) -> dict:
    return {
        **reply_dict(node.reply),
        "children": [reply_node_dict(child) for child in node.children],
    }


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------
def quest_dict(q: Quest) -> dict:
    return {
        "id": q.id,
        "title": q.title,
        "description": q.description,
        "category": q.category,
        "points": q.points,
        "target_count": q.target_count,
        "difficulty": q.difficulty,
        "is_active": q.is_active,
        "created_at": _iso(q.created_at),
    }


def completion_dict(c: QuestCompletion) -> dict:
    return {
        "id": c.id,
        "quest_id": c.quest_id,
        "user_id": c.user_id,
        "status": c.status,
        "progress": c.progress,
        "started_at": _iso(c.started_at),
        "completed_at": _iso(c.completed_at),
        "quest": quest_dict(c.quest) if c.quest else None,
    }


# ---------------------------------------------------------------------------
# Activity feed
# ---------------------------------------------------------------------------
def activity_dict(a: FeedActivity) -> dict:
    username = a.user.username if a.user else None
    return {
        "id": a.id,
        "type": a.type,
        "user_id": a.user_id,
        "metadata": dict(a.metadata),
        "created_at": _iso(a.created_at),
        "user": {
            "id": a.user.id,
            "username": a.user.username,
            "tier": a.user.tier,
            "avatar_url": a.user.avatar_url,
        } if a.user else None,
        "description": describe(a.type, a.metadata, username),
    }


def feed_item_dict(item: FeedItem) -> dict[str, Any]:
    if isinstance(item, AmbientGroup):
        return {
            "kind": item.kind,
            "type": item.type,
            "count": item.count,
            "label": ambient_label(item.type, item.count),
            "activities": [activity_dict(a) for a in item.activities],
        }
    return {
        "kind": item.kind,
        "type": item.activity.type,
        "count": 1,
        "detail": detail(item.activity.metadata),
        "activities": [activity_dict(item.activity)],
    }


def section_dict(section: TimeSection) -> dict:
    return {
        "bucket": section.bucket.value,
        "label": section.label,
        "items": [feed_item_dict(item) for item in section.items],
    }
