"""
tests/test_forum_service.py — Forum Service Tests
==================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import make_member
from guildhall.database.models import Activity, ForumReply, ForumTopic
from guildhall.services import forum_service
from guildhall.services.errors import ConflictError


@pytest.fixture
def category(db_engine):
    return forum_service.create_category(db_engine, name="General", slug="general")


def _topic(engine, author, category, title="Hello", **kw):
    return forum_service.create_topic(
        engine, author_id=author.id, category_id=category.id, title=title,
        content=kw.pop("content", "Body text"), **kw,
    )


class TestCategories:
    def test_create_and_list(self, db_engine, category):
        forum_service.create_category(db_engine, name="Events", slug="Events")
        slugs = [c.slug for c in forum_service.list_categories(db_engine)]
        assert slugs == ["events", "general"]

    def test_duplicate_slug(self, db_engine, category):
        with pytest.raises(ConflictError):
            forum_service.create_category(db_engine, name="Other", slug="general")

    def test_blank_name(self, db_engine):
        with pytest.raises(ValueError):
            forum_service.create_category(db_engine, name="  ", slug="x")

    def test_update(self, db_engine, category):
        updated = forum_service.update_category(
            db_engine, category.id, description="Anything goes", id="hijack"
        )
        assert updated.description == "Anything goes"
        assert updated.id == category.id

    def test_update_slug_clash(self, db_engine, category):
        other = forum_service.create_category(db_engine, name="Events", slug="events")
        with pytest.raises(ConflictError):
            forum_service.update_category(db_engine, other.id, slug="general")

    def test_update_missing(self, db_engine):
        assert forum_service.update_category(db_engine, "nope", name="x") is None

    def test_delete_cascades(self, db_engine, category, member):
        topic = _topic(db_engine, member, category)
        forum_service.create_reply(db_engine, author_id=member.id, topic_id=topic.id, content="hi")

        assert forum_service.delete_category(db_engine, category.id) is True
        assert forum_service.delete_category(db_engine, category.id) is False
        with Session(db_engine) as session:
            assert session.scalar(select(func.count(ForumTopic.id))) == 0
            assert session.scalar(select(func.count(ForumReply.id))) == 0


class TestTopics:
    def test_create_bumps_count_and_records_activity(self, db_engine, category, member):
        topic = _topic(db_engine, member, category, title="First post")

        assert topic.author.username == "alice"
        assert topic.category.slug == "general"
        assert forum_service.get_category(db_engine, category.id).topic_count == 1
        with Session(db_engine) as session:
            activity = session.scalar(select(Activity).where(Activity.type == "new_topic"))
        assert activity.metadata_ == {"topic_id": topic.id, "topic_title": "First post"}

    def test_create_in_missing_category(self, db_engine, member):
        assert forum_service.create_topic(
            db_engine, author_id=member.id, category_id="nope", title="t", content="c"
        ) is None

    def test_blank_title(self, db_engine, category, member):
        with pytest.raises(ValueError):
            _topic(db_engine, member, category, title="   ")

    def test_pinned_first_then_newest(self, db_engine, category, member):
        old = _topic(db_engine, member, category, title="old")
        pinned = _topic(db_engine, member, category, title="pinned", is_pinned=True)
        new = _topic(db_engine, member, category, title="new")

        ids = [t.id for t in forum_service.topics_by_category(db_engine, category.id)]
        assert ids == [pinned.id, new.id, old.id]

    def test_by_author_and_recent(self, db_engine, category):
        alice = make_member(db_engine, "alice")
        bob = make_member(db_engine, "bob")
        _topic(db_engine, alice, category, title="a1")
        _topic(db_engine, bob, category, title="b1")
        _topic(db_engine, alice, category, title="a2")

        assert [t.title for t in forum_service.topics_by_author(db_engine, alice.id)] == ["a2", "a1"]
        assert [t.title for t in forum_service.recent_topics(db_engine, 2)] == ["a2", "b1"]

    def test_search(self, db_engine, category, member):
        _topic(db_engine, member, category, title="Solidity tips", content="gas savings")
        _topic(db_engine, member, category, title="Meetup", content="See you at the SOLIDITY talk")
        _topic(db_engine, member, category, title="Other", content="nothing")

        assert len(forum_service.search_topics(db_engine, "solidity")) == 2
        assert forum_service.search_topics(db_engine, "s") == []

    def test_get_missing(self, db_engine):
        assert forum_service.get_topic(db_engine, "nope") is None


class TestReplies:
    def test_create_updates_topic(self, db_engine, category, member):
        topic = _topic(db_engine, member, category)
        reply = forum_service.create_reply(
            db_engine, author_id=member.id, topic_id=topic.id, content="Nice!"
        )

        assert reply.author.username == "alice"
        refreshed = forum_service.get_topic(db_engine, topic.id)
        assert refreshed.reply_count == 1
        assert refreshed.last_reply_at is not None
        with Session(db_engine) as session:
            activity = session.scalar(select(Activity).where(Activity.type == "new_reply"))
        assert activity.metadata_["reply_id"] == reply.id
        assert activity.metadata_["topic_title"] == "Hello"

    def test_missing_topic(self, db_engine, member):
        assert forum_service.create_reply(
            db_engine, author_id=member.id, topic_id="nope", content="x"
        ) is None

    def test_parent_must_be_in_same_topic(self, db_engine, category, member):
        t1 = _topic(db_engine, member, category, title="one")
        t2 = _topic(db_engine, member, category, title="two")
        r1 = forum_service.create_reply(db_engine, author_id=member.id, topic_id=t1.id, content="a")

        with pytest.raises(ValueError):
            forum_service.create_reply(
                db_engine, author_id=member.id, topic_id=t2.id, content="b", parent_reply_id=r1.id
            )
        with pytest.raises(ValueError):
            forum_service.create_reply(
                db_engine, author_id=member.id, topic_id=t1.id, content="b", parent_reply_id="ghost"
            )

    def test_replies_oldest_first(self, db_engine, category, member):
        topic = _topic(db_engine, member, category)
        first = forum_service.create_reply(db_engine, author_id=member.id, topic_id=topic.id, content="1")
        second = forum_service.create_reply(db_engine, author_id=member.id, topic_id=topic.id, content="2")

        assert [r.id for r in forum_service.replies_by_topic(db_engine, topic.id)] == [first.id, second.id]

    def test_reply_tree(self, db_engine, category, member):
        topic = _topic(db_engine, member, category)
        root = forum_service.create_reply(db_engine, author_id=member.id, topic_id=topic.id, content="root")
        child = forum_service.create_reply(
            db_engine, author_id=member.id, topic_id=topic.id, content="child", parent_reply_id=root.id
        )
        other = forum_service.create_reply(db_engine, author_id=member.id, topic_id=topic.id, content="other")

        tree = forum_service.get_reply_tree(db_engine, topic.id)

        assert [n.reply.id for n in tree] == [root.id, other.id]
        assert [n.reply.id for n in tree[0].children] == [child.id]
        assert tree[0].children[0].reply.author.username == "alice"

    def test_reply_tree_missing_topic(self, db_engine):
        assert forum_service.get_reply_tree(db_engine, "nope") is None
