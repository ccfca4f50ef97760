"""
tests/test_quest_service.py — Quest Service Tests
==================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from guildhall.database.models import Activity, QuestCompletion
from guildhall.services import member_service, quest_service
from guildhall.services.errors import ConflictError, PreconditionError


@pytest.fixture
def quest(db_engine):
    return quest_service.create_quest(
        db_engine, title="Write a blog post", category="content", points=50, difficulty="medium"
    )


class TestCatalogue:
    def test_list_hides_inactive(self, db_engine, quest):
        hidden = quest_service.create_quest(db_engine, title="Old", category="misc", is_active=False)

        active = [q.id for q in quest_service.list_quests(db_engine)]
        everything = [q.id for q in quest_service.list_quests(db_engine, include_inactive=True)]
        assert active == [quest.id]
        assert set(everything) == {quest.id, hidden.id}

    @pytest.mark.parametrize("kwargs", [
        {"title": "", "category": "c"},
        {"title": "t", "category": "c", "points": -5},
        {"title": "t", "category": "c", "target_count": 0},
        {"title": "t", "category": "c", "difficulty": "legendary"},
    ])
    def test_validation(self, db_engine, kwargs):
        with pytest.raises(ValueError):
            quest_service.create_quest(db_engine, **kwargs)

    def test_update(self, db_engine, quest):
        updated = quest_service.update_quest(db_engine, quest.id, points=75, is_active=False)
        assert updated.points == 75
        assert updated.is_active is False
        assert quest_service.update_quest(db_engine, "nope", points=1) is None

    def test_delete_cascades_progress(self, db_engine, quest, member):
        quest_service.start_quest(db_engine, quest.id, member.id)

        assert quest_service.delete_quest(db_engine, quest.id) is True
        assert quest_service.get_quest(db_engine, quest.id) is None
        with Session(db_engine) as session:
            assert session.scalars(select(QuestCompletion)).all() == []
        assert quest_service.delete_quest(db_engine, quest.id) is False


class TestProgress:
    def test_start(self, db_engine, quest, member):
        completion = quest_service.start_quest(db_engine, quest.id, member.id)
        assert completion.status == "in_progress"
        assert completion.progress == 0
        assert completion.quest.title == "Write a blog post"

    def test_start_twice(self, db_engine, quest, member):
        quest_service.start_quest(db_engine, quest.id, member.id)
        with pytest.raises(ConflictError):
            quest_service.start_quest(db_engine, quest.id, member.id)

    def test_start_missing_or_inactive(self, db_engine, member):
        assert quest_service.start_quest(db_engine, "nope", member.id) is None
        inactive = quest_service.create_quest(db_engine, title="x", category="y", is_active=False)
        with pytest.raises(ValueError):
            quest_service.start_quest(db_engine, inactive.id, member.id)

    def test_complete_credits_member(self, db_engine, quest, member):
        quest_service.start_quest(db_engine, quest.id, member.id)
        completion = quest_service.complete_quest(db_engine, quest.id, member.id)

        assert completion.status == "completed"
        assert completion.progress == 100
        assert completion.completed_at is not None

        refreshed = member_service.get_member(db_engine, member.id)
        assert refreshed.total_points == 50
        assert refreshed.quests_completed == 1

        with Session(db_engine) as session:
            activity = session.scalar(select(Activity).where(Activity.type == "quest_completed"))
        assert activity.metadata_ == {
            "quest_id": quest.id, "quest_title": "Write a blog post", "points": 50,
        }

    def test_complete_without_start(self, db_engine, quest, member):
        with pytest.raises(PreconditionError):
            quest_service.complete_quest(db_engine, quest.id, member.id)

    def test_complete_twice(self, db_engine, quest, member):
        quest_service.start_quest(db_engine, quest.id, member.id)
        quest_service.complete_quest(db_engine, quest.id, member.id)
        with pytest.raises(ConflictError):
            quest_service.complete_quest(db_engine, quest.id, member.id)
        assert member_service.get_member(db_engine, member.id).total_points == 50

    def test_list_member_quests(self, db_engine, quest, member):
        quest_service.start_quest(db_engine, quest.id, member.id)
        (row,) = quest_service.list_member_quests(db_engine, member.id)
        assert row.quest.points == 50
