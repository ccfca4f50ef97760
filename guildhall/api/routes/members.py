"""
guildhall.api.routes.members — Members, leaderboard, search & stats
====================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from guildhall.api.deps import get_config, get_current_member, get_engine, http_error, require_admin
from guildhall.api.serializers import member_dict, topic_dict
from guildhall.config import GuildhallConfig
from guildhall.constants import LEADERBOARD_SORTS, MIN_SEARCH_LENGTH
from guildhall.database.models import Member
from guildhall.services import forum_service, member_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["members"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProfileUpdateBody(BaseModel):
    username: str | None = None
    bio: str | None = None
    skill_tags: list[str] | None = None
    x_handle: str | None = None
    telegram_handle: str | None = None
    lens_handle: str | None = None
    farcaster_handle: str | None = None
    college: str | None = None
    city: str | None = None
    region: str | None = None


class ContributionBody(BaseModel):
    user_id: str
    referrals: int = Field(0, ge=0)
    events: int = Field(0, ge=0)
    content: int = Field(0, ge=0)
    points: int = Field(0, ge=0)
    event_name: str | None = None


# ---------------------------------------------------------------------------
# Dashboard & leaderboard
# ---------------------------------------------------------------------------
@router.get("/dashboard/stats")
def dashboard_stats(engine=Depends(get_engine)):
    return member_service.get_dashboard_stats(engine)


@router.get("/leaderboard")
def leaderboard(
    sort_by: str = Query("total_points"),
    cfg: GuildhallConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Top members by points, referrals, events or content."""
    if sort_by not in LEADERBOARD_SORTS:
        raise HTTPException(
            400, f"sort_by must be one of: {', '.join(LEADERBOARD_SORTS)}"
        )
    rows = member_service.get_leaderboard(engine, sort_by, cfg.leaderboard_limit)
    return {
        "sort_by": sort_by,
        "members": [{**member_dict(m), "rank": i + 1} for i, m in enumerate(rows)],
    }


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------
@router.get("/members")
def list_members(engine=Depends(get_engine)):
    return {"members": [member_dict(m) for m in member_service.list_members(engine)]}


@router.get("/members/{member_id}")
def get_member(member_id: str, engine=Depends(get_engine)):
    member = member_service.get_member(engine, member_id)
    if member is None:
        raise HTTPException(404, "Member not found")
    return member_dict(member)


@router.get("/members/{member_id}/topics")
def member_topics(member_id: str, engine=Depends(get_engine)):
    if member_service.get_member(engine, member_id) is None:
        raise HTTPException(404, "Member not found")
    return {"topics": [topic_dict(t) for t in forum_service.topics_by_author(engine, member_id)]}


@router.patch("/members/{member_id}")
def update_member(
    member_id: str,
    body: ProfileUpdateBody,
    member: Member = Depends(get_current_member),
    engine=Depends(get_engine),
):
    """Edit your own profile.  Only the fields sent are changed."""
    if member.id != member_id:
        raise HTTPException(403, "You can only edit your own profile")
    try:
        updated = member_service.update_profile(
            engine, member_id, body.model_dump(exclude_unset=True, exclude_none=True)
        )
    except ValueError as exc:
        raise http_error(exc)
    if updated is None:
        raise HTTPException(404, "Member not found")
    return member_dict(updated, private=True)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
@router.get("/search")
def search(q: str = Query(""), engine=Depends(get_engine)):
    """Members and topics matching *q* (at least two characters)."""
    if len(q.strip()) < MIN_SEARCH_LENGTH:
        return {"members": [], "topics": []}
    return {
        "members": [member_dict(m) for m in member_service.search_members(engine, q)],
        "topics": [topic_dict(t) for t in forum_service.search_topics(engine, q)],
    }


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
@router.post("/admin/contributions")
def record_contribution(
    body: ContributionBody,
    admin: Member = Depends(require_admin),
    engine=Depends(get_engine),
):
    """Credit verified referrals, events and content to a member."""
    try:
        member = member_service.record_contribution(
            engine,
            body.user_id,
            referrals=body.referrals,
            events=body.events,
            content=body.content,
            points=body.points,
            event_name=body.event_name,
        )
    except ValueError as exc:
        raise http_error(exc)
    if member is None:
        raise HTTPException(404, "Member not found")
    logger.info("Admin %s recorded contributions for %s", admin.username, member.username)
    return member_dict(member)
