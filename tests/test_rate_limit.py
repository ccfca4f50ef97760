"""
tests/test_rate_limit.py — Posting Throttle Tests
==================================================
Members may post a limited number of topics and replies per sliding
window; over the limit the API answers 429 with ``Retry-After``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import auth, make_token
from guildhall.api.rate_limit import PostRateLimiter, configure_rate_limiter
from guildhall.database.models import PostRateLimitEvent
from guildhall.services import forum_service


# ---------------------------------------------------------------------------
# Limiter core (DB-backed)
# ---------------------------------------------------------------------------
class TestPostRateLimiter:
    @pytest.fixture(autouse=True)
    def _limiter(self, db_engine):
        self.limiter = PostRateLimiter(max_requests=3, window_seconds=60, engine=db_engine)
        self.engine = db_engine

    def test_allows_within_limit(self):
        for _ in range(3):
            allowed, _ = self.limiter.check("m1")
            assert allowed
            self.limiter.record("m1")

    def test_blocks_after_limit(self):
        for _ in range(3):
            self.limiter.record("m1")
        allowed, info = self.limiter.check("m1")
        assert not allowed
        assert info["remaining"] == 0
        assert 1 <= info["reset"] <= 61

    def test_members_are_independent(self):
        for _ in range(3):
            self.limiter.record("m1")
        assert not self.limiter.check("m1")[0]
        assert self.limiter.check("m2")[0]

    def test_remaining_decreases(self):
        assert self.limiter.check("m1")[1]["remaining"] == 3
        info = self.limiter.record("m1")
        assert info["remaining"] == 2
        assert self.limiter.check("m1")[1]["remaining"] == 2

    def test_expired_events_are_pruned(self):
        stale = datetime.now(UTC) - timedelta(seconds=120)
        with Session(self.engine) as session:
            session.add_all(PostRateLimitEvent(member_id="m1", timestamp=stale) for _ in range(3))
            session.commit()

        allowed, _ = self.limiter.check("m1")
        assert allowed
        with Session(self.engine) as session:
            assert session.scalar(select(func.count(PostRateLimitEvent.id))) == 0

    def test_reset(self):
        for _ in range(3):
            self.limiter.record("m1")
            self.limiter.record("m2")
        self.limiter.reset("m1")
        assert self.limiter.check("m1")[0]
        assert not self.limiter.check("m2")[0]
        self.limiter.reset()
        assert self.limiter.check("m2")[0]


# ---------------------------------------------------------------------------
# Through the API
# ---------------------------------------------------------------------------
class TestPostingThrottleAPI:
    def test_429_after_limit(self, client, db_engine, member):
        configure_rate_limiter(engine=db_engine, max_requests=2, window_seconds=60)
        category = forum_service.create_category(db_engine, name="General", slug="general")
        headers = auth(make_token(member))
        body = {"category_id": category.id, "title": "Hi", "content": "Hello"}

        assert client.post("/api/forum/topics", json=body, headers=headers).status_code == 201
        assert client.post("/api/forum/topics", json=body, headers=headers).status_code == 201

        resp = client.post("/api/forum/topics", json=body, headers=headers)
        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) >= 1
        assert resp.json()["detail"]["error"] == "rate_limit_exceeded"

    def test_replies_share_the_window(self, client, db_engine, member):
        configure_rate_limiter(engine=db_engine, max_requests=2, window_seconds=60)
        category = forum_service.create_category(db_engine, name="General", slug="general")
        topic = forum_service.create_topic(
            db_engine, author_id=member.id, category_id=category.id, title="t", content="c"
        )
        headers = auth(make_token(member))
        body = {"topic_id": topic.id, "content": "reply"}

        assert client.post("/api/forum/replies", json=body, headers=headers).status_code == 201
        assert client.post("/api/forum/replies", json=body, headers=headers).status_code == 201
        assert client.post("/api/forum/replies", json=body, headers=headers).status_code == 429

    def test_reads_are_not_throttled(self, client, db_engine):
        configure_rate_limiter(engine=db_engine, max_requests=1, window_seconds=60)
        for _ in range(3):
            assert client.get("/api/forum/categories").status_code == 200
