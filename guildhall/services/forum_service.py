"""
guildhall.services.forum_service — Categories, Topics & Replies
================================================================

Forum reads eager-load authors (and categories for topics) because the
session is gone by the time routes serialize the rows.

Posting a topic or reply bumps the denormalized counters on its parent
and writes a ``new_topic`` / ``new_reply`` activity in the same
transaction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from guildhall.constants import MIN_SEARCH_LENGTH
from guildhall.database.engine import get_session
from guildhall.database.models import ForumCategory, ForumReply, ForumTopic, _utcnow
from guildhall.engine.activity_types import NewReply, NewTopic
from guildhall.engine.threads import ReplyNode, build_reply_tree
from guildhall.services.activity_service import record_activity
from guildhall.services.errors import ConflictError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_CATEGORY_FIELDS = ("name", "slug", "description", "icon")


def _require_text(value: str, what: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{what} cannot be empty")
    return value


def _topic_query():
    return select(ForumTopic).options(
        joinedload(ForumTopic.author), joinedload(ForumTopic.category)
    )


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
def list_categories(engine: Engine) -> list[ForumCategory]:
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(select(ForumCategory).order_by(ForumCategory.name)).all())


def get_category(engine: Engine, category_id: str) -> ForumCategory | None:
    with Session(engine, expire_on_commit=False) as session:
        return session.get(ForumCategory, category_id)


def create_category(
    engine: Engine,
    *,
    name: str,
    slug: str,
    description: str = "",
    icon: str = "MessageSquare",
) -> ForumCategory:
    """Create a category.  Raises :class:`ConflictError` on a taken slug."""
    name = _require_text(name, "Name")
    slug = _require_text(slug, "Slug").lower()
    with get_session(engine) as session:
        if session.scalar(select(ForumCategory.id).where(ForumCategory.slug == slug)):
            raise ConflictError(f"Category slug {slug!r} already exists")
        category = ForumCategory(name=name, slug=slug, description=description, icon=icon)
        session.add(category)
    logger.info("Forum category created: %s", slug)
    return category


def update_category(engine: Engine, category_id: str, **changes: Any) -> ForumCategory | None:
    changes = {k: v for k, v in changes.items() if k in _CATEGORY_FIELDS and v is not None}
    with get_session(engine) as session:
        category = session.get(ForumCategory, category_id)
        if category is None:
            return None
        if "slug" in changes:
            changes["slug"] = _require_text(changes["slug"], "Slug").lower()
            clash = session.scalar(
                select(ForumCategory.id).where(
                    ForumCategory.slug == changes["slug"], ForumCategory.id != category_id
                )
            )
            if clash:
                raise ConflictError(f"Category slug {changes['slug']!r} already exists")
        if "name" in changes:
            changes["name"] = _require_text(changes["name"], "Name")
        for key, value in changes.items():
            setattr(category, key, value)
    return category


def delete_category(engine: Engine, category_id: str) -> bool:
    """Delete a category with all its topics and their replies."""
    with get_session(engine) as session:
        category = session.get(ForumCategory, category_id)
        if category is None:
            return False
        session.delete(category)
    logger.info("Forum category deleted: %s", category_id)
    return True


# ---------------------------------------------------------------------------
# Topics
# ---------------------------------------------------------------------------
def topics_by_category(engine: Engine, category_id: str) -> list[ForumTopic]:
    """Pinned topics first, then newest first."""
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            _topic_query()
            .where(ForumTopic.category_id == category_id)
            .order_by(ForumTopic.is_pinned.desc(), ForumTopic.created_at.desc())
        ).all())


def topics_by_author(engine: Engine, author_id: str) -> list[ForumTopic]:
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            _topic_query()
            .where(ForumTopic.author_id == author_id)
            .order_by(ForumTopic.created_at.desc())
        ).all())


def recent_topics(engine: Engine, limit: int = 10) -> list[ForumTopic]:
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            _topic_query().order_by(ForumTopic.created_at.desc()).limit(limit)
        ).all())


def get_topic(engine: Engine, topic_id: str) -> ForumTopic | None:
    with Session(engine, expire_on_commit=False) as session:
        return session.scalar(_topic_query().where(ForumTopic.id == topic_id))


def search_topics(engine: Engine, query: str, limit: int = 20) -> list[ForumTopic]:
    query = query.strip()
    if len(query) < MIN_SEARCH_LENGTH:
        return []
    pattern = f"%{query}%"
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            _topic_query()
            .where(or_(ForumTopic.title.ilike(pattern), ForumTopic.content.ilike(pattern)))
            .order_by(ForumTopic.created_at.desc())
            .limit(limit)
        ).all())


def create_topic(
    engine: Engine,
    *,
    author_id: str,
    category_id: str,
    title: str,
    content: str,
    image_url: str = "",
    is_pinned: bool = False,
) -> ForumTopic | None:
    """Post a topic; ``None`` if the category doesn't exist."""
    title = _require_text(title, "Title")
    content = _require_text(content, "Content")

    with get_session(engine) as session:
        category = session.get(ForumCategory, category_id)
        if category is None:
            return None
        topic = ForumTopic(
            category_id=category_id,
            author_id=author_id,
            title=title,
            content=content,
            image_url=image_url or "",
            is_pinned=is_pinned,
        )
        session.add(topic)
        session.flush()
        category.topic_count += 1
        record_activity(session, author_id, NewTopic(topic_id=topic.id, topic_title=title))
        topic_id = topic.id

    logger.info("Topic %s posted in %s by %s", topic_id, category.slug, author_id)
    return get_topic(engine, topic_id)


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------
def replies_by_topic(engine: Engine, topic_id: str) -> list[ForumReply]:
    """All replies of a topic, oldest first."""
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            select(ForumReply)
            .options(joinedload(ForumReply.author))
            .where(ForumReply.topic_id == topic_id)
            .order_by(ForumReply.created_at.asc())
        ).all())


def get_reply_tree(engine: Engine, topic_id: str) -> list[ReplyNode[ForumReply]] | None:
    """Nested replies for a topic; ``None`` if the topic doesn't exist."""
    if get_topic(engine, topic_id) is None:
        return None
    return build_reply_tree(replies_by_topic(engine, topic_id))


def create_reply(
    engine: Engine,
    *,
    author_id: str,
    topic_id: str,
    content: str,
    parent_reply_id: str | None = None,
) -> ForumReply | None:
    """Reply to a topic; ``None`` if the topic doesn't exist.

    Raises
    ------
    ValueError
        If *parent_reply_id* is not a reply of the same topic.
    """
    content = _require_text(content, "Content")

    with get_session(engine) as session:
        topic = session.get(ForumTopic, topic_id)
        if topic is None:
            return None
        if parent_reply_id is not None:
            parent = session.get(ForumReply, parent_reply_id)
            if parent is None or parent.topic_id != topic_id:
                raise ValueError("Parent reply does not belong to this topic")

        reply = ForumReply(
            topic_id=topic_id,
            author_id=author_id,
            content=content,
            parent_reply_id=parent_reply_id,
        )
        session.add(reply)
        session.flush()
        topic.reply_count += 1
        topic.last_reply_at = reply.created_at or _utcnow()
        record_activity(session, author_id, NewReply(
            reply_id=reply.id, topic_id=topic_id, topic_title=topic.title,
        ))
        reply_id = reply.id

    logger.info("Reply %s posted on topic %s by %s", reply_id, topic_id, author_id)
    with Session(engine, expire_on_commit=False) as session:
        return session.scalar(
            select(ForumReply)
            .options(joinedload(ForumReply.author))
            .where(ForumReply.id == reply_id)
        )
