"""
tests/test_activity_types.py — Typed Activity Payload Tests
============================================================
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from guildhall.engine.activity_types import (
    NewReply,
    QuestCompleted,
    ReferralMilestone,
    TierUp,
    ambient_label,
    describe,
    detail,
    parse_payload,
    payload_metadata,
)


class TestPayloads:
    def test_metadata_excludes_type_tag(self):
        meta = payload_metadata(TierUp(username="alice", new_tier="ambassador"))
        assert meta == {"username": "alice", "new_tier": "ambassador", "previous_tier": None}

    def test_required_fields_enforced(self):
        with pytest.raises(ValidationError):
            QuestCompleted(quest_id="q1")

    def test_referral_count_must_be_positive(self):
        with pytest.raises(ValidationError):
            ReferralMilestone(count=0)

    def test_parse_round_trip(self):
        payload = NewReply(reply_id="r1", topic_id="t1", topic_title="Hello")
        parsed = parse_payload("new_reply", payload_metadata(payload))
        assert parsed == payload

    def test_parse_unknown_type(self):
        assert parse_payload("mystery", {"x": 1}) is None

    def test_parse_legacy_row_missing_fields(self):
        assert parse_payload("quest_completed", {}) is None

    def test_parse_ignores_extra_keys(self):
        parsed = parse_payload("referral_milestone", {"count": 100, "legacy": True})
        assert isinstance(parsed, ReferralMilestone)
        assert parsed.count == 100


class TestDisplayText:
    def test_describe_tier_up(self):
        meta = {"username": "alice", "new_tier": "fellow"}
        assert describe("tier_up", meta, "alice") == "alice was promoted to fellow"

    def test_describe_tier_up_without_metadata(self):
        assert describe("tier_up", None, "alice") == "alice was promoted to a new tier"

    def test_describe_quest(self):
        meta = {"quest_id": "q", "quest_title": "Write a blog post", "points": 50}
        assert describe("quest_completed", meta, "bob") == "bob completed Write a blog post"

    def test_describe_unknown_type_and_user(self):
        assert describe("mystery", {}, None) == "Someone performed an action"

    def test_ambient_label_plurals(self):
        assert ambient_label("new_reply", 1) == "1 reply posted"
        assert ambient_label("new_reply", 3) == "3 replies posted"
        assert ambient_label("mystery", 2) == "2 actions"

    def test_detail_prefers_quest_then_event_then_topic(self):
        assert detail({"quest_title": "Q", "topic_title": "T"}) == "Q"
        assert detail({"event_name": "Meetup"}) == "Meetup"
        assert detail({"topic_title": "T"}) == "T"
        assert detail(None) is None
