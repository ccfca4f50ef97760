"""
guildhall.api.routes.forum — Forum categories, topics & replies
================================================================

Reads are public.  Posting requires a member token and counts against
the posting throttle; category management is admin-only.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from guildhall.api.deps import get_engine, http_error, require_admin
from guildhall.api.rate_limit import rate_limited_member
from guildhall.api.serializers import category_dict, reply_dict, reply_node_dict, topic_dict
from guildhall.database.models import Member, Role
from guildhall.services import forum_service

router = APIRouter(prefix="/forum", tags=["forum"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    slug: str = Field(min_length=1, max_length=100)
    description: str = ""
    icon: str = "MessageSquare"


class CategoryUpdate(BaseModel):
    name: str | None = None
    slug: str | None = None
    description: str | None = None
    icon: str | None = None


class TopicCreate(BaseModel):
    category_id: str
    title: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1)
    image_url: str | None = None
    is_pinned: bool = False


class ReplyCreate(BaseModel):
    topic_id: str
    content: str = Field(min_length=1)
    parent_reply_id: str | None = None


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
@router.get("/categories")
def list_categories(engine=Depends(get_engine)):
    return {"categories": [category_dict(c) for c in forum_service.list_categories(engine)]}


@router.post("/categories", status_code=201)
def create_category(
    body: CategoryCreate,
    admin: Member = Depends(require_admin),
    engine=Depends(get_engine),
):
    try:
        category = forum_service.create_category(engine, **body.model_dump())
    except ValueError as exc:
        raise http_error(exc)
    return category_dict(category)


@router.patch("/categories/{category_id}")
def update_category(
    category_id: str,
    body: CategoryUpdate,
    admin: Member = Depends(require_admin),
    engine=Depends(get_engine),
):
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(400, "No fields to update")
    try:
        category = forum_service.update_category(engine, category_id, **changes)
    except ValueError as exc:
        raise http_error(exc)
    if category is None:
        raise HTTPException(404, "Category not found")
    return category_dict(category)


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(
    category_id: str,
    admin: Member = Depends(require_admin),
    engine=Depends(get_engine),
):
    if not forum_service.delete_category(engine, category_id):
        raise HTTPException(404, "Category not found")


@router.get("/categories/{category_id}/topics")
def category_topics(category_id: str, engine=Depends(get_engine)):
    category = forum_service.get_category(engine, category_id)
    if category is None:
        raise HTTPException(404, "Category not found")
    return {
        "category": category_dict(category),
        "topics": [topic_dict(t) for t in forum_service.topics_by_category(engine, category_id)],
    }


# ---------------------------------------------------------------------------
# Topics
# ---------------------------------------------------------------------------
@router.get("/recent-topics")
def recent_topics(limit: int = Query(10, ge=1, le=50), engine=Depends(get_engine)):
    return {"topics": [topic_dict(t) for t in forum_service.recent_topics(engine, limit)]}


@router.post("/topics", status_code=201)
def create_topic(
    body: TopicCreate,
    member: Member = Depends(rate_limited_member),
    engine=Depends(get_engine),
):
    """Start a discussion.  Only admins can pin."""
    if body.is_pinned and member.role != Role.ADMIN:
        raise HTTPException(403, "Only admins can pin topics")
    try:
        topic = forum_service.create_topic(
            engine,
            author_id=member.id,
            category_id=body.category_id,
            title=body.title,
            content=body.content,
            image_url=body.image_url or "",
            is_pinned=body.is_pinned,
        )
    except ValueError as exc:
        raise http_error(exc)
    if topic is None:
        raise HTTPException(404, "Category not found")
    return topic_dict(topic)


@router.get("/topics/{topic_id}")
def get_topic(topic_id: str, engine=Depends(get_engine)):
    topic = forum_service.get_topic(engine, topic_id)
    if topic is None:
        raise HTTPException(404, "Topic not found")
    return topic_dict(topic)


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------
@router.get("/topics/{topic_id}/replies")
def topic_replies(topic_id: str, engine=Depends(get_engine)):
    """Replies in posting order, without nesting."""
    if forum_service.get_topic(engine, topic_id) is None:
        raise HTTPException(404, "Topic not found")
    return {"replies": [reply_dict(r) for r in forum_service.replies_by_topic(engine, topic_id)]}


@router.get("/topics/{topic_id}/thread")
def topic_thread(topic_id: str, engine=Depends(get_engine)):
    """Replies nested under their parents."""
    tree = forum_service.get_reply_tree(engine, topic_id)
    if tree is None:
        raise HTTPException(404, "Topic not found")
    return {"replies": [reply_node_dict(node) for node in tree]}


@router.post("/replies", status_code=201)
def create_reply(
    body: ReplyCreate,
    member: Member = Depends(rate_limited_member),
    engine=Depends(get_engine),
):
    try:
        reply = forum_service.create_reply(
            engine,
            author_id=member.id,
            topic_id=body.topic_id,
            content=body.content,
            parent_reply_id=body.parent_reply_id,
        )
    except ValueError as exc:
        raise http_error(exc)
    if reply is None:
        raise HTTPException(404, "Topic not found")
    return reply_dict(reply)
