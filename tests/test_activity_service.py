"""
tests/test_activity_service.py — Activity Journal & Feed Read Tests
====================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import make_member
from guildhall.database.models import Activity
from guildhall.engine.activity_types import NewTopic, TierUp
from guildhall.engine.feed import AmbientGroup, BigItem, TimeBucket
from guildhall.services import activity_service


def _backdate(engine, activity_id: str, when: datetime) -> None:
    with Session(engine) as session:
        session.get(Activity, activity_id).created_at = when
        session.commit()


class TestRecordActivity:
    def test_writes_typed_metadata(self, db_engine, member):
        with Session(db_engine) as session:
            activity = activity_service.record_activity(
                session, member.id, NewTopic(topic_id="t1", topic_title="Hi")
            )
            session.commit()
            assert activity.type == "new_topic"
            assert activity.metadata_ == {"topic_id": "t1", "topic_title": "Hi"}

    def test_rolls_back_with_caller(self, db_engine, member):
        with Session(db_engine) as session:
            activity_service.record_activity(
                session, member.id, NewTopic(topic_id="t1", topic_title="Hi")
            )
            session.rollback()
        with Session(db_engine) as session:
            assert session.scalar(
                select(func.count(Activity.id)).where(Activity.type == "new_topic")
            ) == 0


class TestRecentActivities:
    def test_newest_first_with_member(self, db_engine):
        alice = make_member(db_engine, "alice")
        bob = make_member(db_engine, "bob")

        rows = activity_service.recent_activities(db_engine)

        assert [a.user.username for a in rows] == ["bob", "alice"]
        assert rows[0].user_id == bob.id
        assert rows[1].user.id == alice.id
        assert rows[0].user.avatar_url.startswith("https://")

    def test_limit(self, db_engine):
        for name in ("aaa", "bbb", "ccc"):
            make_member(db_engine, name)
        assert len(activity_service.recent_activities(db_engine, limit=2)) == 2


class TestActivityFeed:
    def test_sections_and_groups(self, db_engine):
        now = datetime(2026, 10, 14, 15, 0, tzinfo=UTC)
        members = [make_member(db_engine, n) for n in ("alice", "bob", "carol")]
        with Session(db_engine) as session:
            promo = activity_service.record_activity(
                session, members[0].id, TierUp(username="alice", new_tier="ambassador")
            )
            session.commit()
            promo_id = promo.id

        # Joins: today; promotion: this week; carol's join: last month
        with Session(db_engine) as session:
            joins = {
                a.user_id: a.id
                for a in session.scalars(select(Activity).where(Activity.type == "new_contributor"))
            }
        _backdate(db_engine, joins[members[0].id], now - timedelta(minutes=10))
        _backdate(db_engine, joins[members[1].id], now - timedelta(minutes=5))
        _backdate(db_engine, promo_id, now - timedelta(days=2))
        _backdate(db_engine, joins[members[2].id], now - timedelta(days=30))

        sections = activity_service.activity_feed(db_engine, now=now)

        assert [s.bucket for s in sections] == [
            TimeBucket.TODAY, TimeBucket.THIS_WEEK, TimeBucket.EARLIER,
        ]
        (today_group,) = sections[0].items
        assert isinstance(today_group, AmbientGroup)
        assert today_group.count == 2
        assert [a.user.username for a in today_group.activities] == ["bob", "alice"]
        assert isinstance(sections[1].items[0], BigItem)

    def test_empty(self, db_engine):
        assert activity_service.activity_feed(db_engine) == []


class TestPrune:
    def test_removes_only_old_rows(self, db_engine, member):
        make_member(db_engine, "bob")
        with Session(db_engine) as session:
            old_id = session.scalar(select(Activity.id).where(Activity.user_id == member.id))
        _backdate(db_engine, old_id, datetime.now(UTC) - timedelta(days=100))

        assert activity_service.prune_activities(db_engine, older_than_days=90) == 1
        assert len(activity_service.recent_activities(db_engine)) == 1

    def test_rejects_non_positive(self, db_engine):
        with pytest.raises(ValueError):
            activity_service.prune_activities(db_engine, 0)
