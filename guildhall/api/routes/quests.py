"""
guildhall.api.routes.quests — Quest catalogue & member progress
================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from guildhall.api.deps import get_current_member, get_engine, http_error, require_admin
from guildhall.api.serializers import completion_dict, quest_dict
from guildhall.database.models import Member
from guildhall.services import quest_service

router = APIRouter(prefix="/quests", tags=["quests"])


class QuestCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=50)
    description: str = ""
    points: int = Field(0, ge=0)
    target_count: int = Field(1, ge=1)
    difficulty: str = "easy"
    is_active: bool = True


class QuestUpdate(BaseModel):
    title: str | None = None
    category: str | None = None
    description: str | None = None
    points: int | None = Field(None, ge=0)
    target_count: int | None = Field(None, ge=1)
    difficulty: str | None = None
    is_active: bool | None = None


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
@router.get("")
def list_quests(
    include_inactive: bool = Query(False),
    engine=Depends(get_engine),
):
    quests = quest_service.list_quests(engine, include_inactive=include_inactive)
    return {"quests": [quest_dict(q) for q in quests]}


@router.post("", status_code=201)
def create_quest(
    body: QuestCreate,
    admin: Member = Depends(require_admin),
    engine=Depends(get_engine),
):
    try:
        quest = quest_service.create_quest(engine, **body.model_dump())
    except ValueError as exc:
        raise http_error(exc)
    return quest_dict(quest)


# Declared before /{quest_id} routes so "my" isn't taken for an ID
@router.get("/my")
def my_quests(member: Member = Depends(get_current_member), engine=Depends(get_engine)):
    completions = quest_service.list_member_quests(engine, member.id)
    return {"quests": [completion_dict(c) for c in completions]}


@router.patch("/{quest_id}")
def update_quest(
    quest_id: str,
    body: QuestUpdate,
    admin: Member = Depends(require_admin),
    engine=Depends(get_engine),
):
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(400, "No fields to update")
    try:
        quest = quest_service.update_quest(engine, quest_id, **changes)
    except ValueError as exc:
        raise http_error(exc)
    if quest is None:
        raise HTTPException(404, "Quest not found")
    return quest_dict(quest)


@router.delete("/{quest_id}", status_code=204)
def delete_quest(
    quest_id: str,
    admin: Member = Depends(require_admin),
    engine=Depends(get_engine),
):
    if not quest_service.delete_quest(engine, quest_id):
        raise HTTPException(404, "Quest not found")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
@router.post("/{quest_id}/start", status_code=201)
def start_quest(
    quest_id: str,
    member: Member = Depends(get_current_member),
    engine=Depends(get_engine),
):
    try:
        completion = quest_service.start_quest(engine, quest_id, member.id)
    except ValueError as exc:
        raise http_error(exc)
    if completion is None:
        raise HTTPException(404, "Quest not found")
    return completion_dict(completion)


@router.post("/{quest_id}/complete")
def complete_quest(
    quest_id: str,
    member: Member = Depends(get_current_member),
    engine=Depends(get_engine),
):
    try:
        completion = quest_service.complete_quest(engine, quest_id, member.id)
    except ValueError as exc:
        raise http_error(exc)
    if completion is None:
        raise HTTPException(404, "Quest not found")
    return completion_dict(completion)
