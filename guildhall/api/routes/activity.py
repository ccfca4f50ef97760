"""
guildhall.api.routes.activity — Activity feed endpoints
========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from guildhall.api.deps import get_config, get_engine
from guildhall.api.serializers import activity_dict, section_dict
from guildhall.config import GuildhallConfig
from guildhall.services import activity_service

router = APIRouter(prefix="/activities", tags=["activity"])


@router.get("")
def list_activities(
    limit: int | None = Query(None, ge=1, le=200),
    cfg: GuildhallConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Newest activities as a flat list."""
    rows = activity_service.recent_activities(engine, limit or cfg.feed_limit)
    return {"activities": [activity_dict(a) for a in rows]}


@router.get("/feed")
def activity_feed(
    cfg: GuildhallConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Newest activities sectioned by recency and grouped for display."""
    sections = activity_service.activity_feed(
        engine, limit=cfg.feed_limit, week_start=cfg.week_start
    )
    return {"sections": [section_dict(s) for s in sections]}
