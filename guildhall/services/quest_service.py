"""
guildhall.services.quest_service — Quest Catalogue & Progress
==============================================================

Admins define quests; members start them and mark them complete.  A
member holds at most one completion row per quest (``in_progress`` →
``completed``).  Completing credits the quest's points to the member and
writes a ``quest_completed`` activity.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from guildhall.database.engine import get_session
from guildhall.database.models import Member, Quest, QuestCompletion, QuestStatus, _utcnow
from guildhall.engine.activity_types import QuestCompleted
from guildhall.services.activity_service import record_activity
from guildhall.services.errors import ConflictError, PreconditionError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DIFFICULTIES = ("easy", "medium", "hard")
_QUEST_FIELDS = (
    "title", "description", "category", "points", "target_count", "difficulty", "is_active",
)


def _validate(fields: dict[str, Any]) -> None:
    if "title" in fields and not (fields["title"] or "").strip():
        raise ValueError("Title cannot be empty")
    if "category" in fields and not (fields["category"] or "").strip():
        raise ValueError("Category cannot be empty")
    if fields.get("points", 0) < 0:
        raise ValueError("Points cannot be negative")
    if fields.get("target_count", 1) < 1:
        raise ValueError("target_count must be at least 1")
    if "difficulty" in fields and fields["difficulty"] not in DIFFICULTIES:
        raise ValueError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
def list_quests(engine: Engine, *, include_inactive: bool = False) -> list[Quest]:
    """Quests, newest first.  Only active ones unless *include_inactive*."""
    stmt = select(Quest).order_by(Quest.created_at.desc())
    if not include_inactive:
        stmt = stmt.where(Quest.is_active.is_(True))
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(stmt).all())


def get_quest(engine: Engine, quest_id: str) -> Quest | None:
    with Session(engine, expire_on_commit=False) as session:
        return session.get(Quest, quest_id)


def create_quest(
    engine: Engine,
    *,
    title: str,
    category: str,
    description: str = "",
    points: int = 0,
    target_count: int = 1,
    difficulty: str = "easy",
    is_active: bool = True,
) -> Quest:
    fields = {
        "title": title,
        "category": category,
        "description": description,
        "points": points,
        "target_count": target_count,
        "difficulty": difficulty,
        "is_active": is_active,
    }
    _validate(fields)
    with get_session(engine) as session:
        quest = Quest(**fields)
        session.add(quest)
    logger.info("Quest created: %s (%d pts)", quest.title, quest.points)
    return quest


def update_quest(engine: Engine, quest_id: str, **changes: Any) -> Quest | None:
    changes = {k: v for k, v in changes.items() if k in _QUEST_FIELDS and v is not None}
    _validate(changes)
    with get_session(engine) as session:
        quest = session.get(Quest, quest_id)
        if quest is None:
            return None
        for key, value in changes.items():
            setattr(quest, key, value)
    return quest


def delete_quest(engine: Engine, quest_id: str) -> bool:
    """Delete a quest and every member's progress on it."""
    with get_session(engine) as session:
        quest = session.get(Quest, quest_id)
        if quest is None:
            return False
        session.delete(quest)
    logger.info("Quest deleted: %s", quest_id)
    return True


# ---------------------------------------------------------------------------
# Member progress
# ---------------------------------------------------------------------------
def _completion(session: Session, quest_id: str, member_id: str) -> QuestCompletion | None:
    return session.scalar(
        select(QuestCompletion).where(
            QuestCompletion.quest_id == quest_id, QuestCompletion.user_id == member_id
        )
    )


def start_quest(engine: Engine, quest_id: str, member_id: str) -> QuestCompletion | None:
    """Begin a quest for a member.  ``None`` if the quest doesn't exist.

    Raises
    ------
    ValueError
        If the quest is inactive.
    ConflictError
        If the member already started (or finished) it.
    """
    with get_session(engine) as session:
        quest = session.get(Quest, quest_id)
        if quest is None:
            return None
        if not quest.is_active:
            raise ValueError("Quest is not active")
        if _completion(session, quest_id, member_id) is not None:
            raise ConflictError("Quest already started")
        completion = QuestCompletion(quest_id=quest_id, user_id=member_id)
        session.add(completion)
        session.flush()
        completion.quest = quest
    logger.info("Member %s started quest %s", member_id, quest_id)
    return completion


def complete_quest(engine: Engine, quest_id: str, member_id: str) -> QuestCompletion | None:
    """Finish a started quest and credit its points.

    Returns ``None`` if the quest doesn't exist.

    Raises
    ------
    PreconditionError
        If the member never started the quest.
    ConflictError
        If it is already completed.
    """
    with get_session(engine) as session:
        quest = session.get(Quest, quest_id)
        if quest is None:
            return None
        completion = _completion(session, quest_id, member_id)
        if completion is None:
            raise PreconditionError("Quest not started")
        if completion.status == QuestStatus.COMPLETED:
            raise ConflictError("Quest already completed")

        completion.status = QuestStatus.COMPLETED.value
        completion.progress = 100
        completion.completed_at = _utcnow()

        member = session.get(Member, member_id)
        if member is None:
            raise PreconditionError("Member not found")
        member.total_points += quest.points
        member.quests_completed += 1

        record_activity(session, member_id, QuestCompleted(
            quest_id=quest.id, quest_title=quest.title, points=quest.points,
        ))
        completion.quest = quest

    logger.info(
        "Member %s completed quest %s (+%d pts)", member.username, quest.title, quest.points
    )
    return completion


def list_member_quests(engine: Engine, member_id: str) -> list[QuestCompletion]:
    """A member's quest progress, most recently started first."""
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            select(QuestCompletion)
            .options(joinedload(QuestCompletion.quest))
            .where(QuestCompletion.user_id == member_id)
            .order_by(QuestCompletion.started_at.desc())
        ).all())
