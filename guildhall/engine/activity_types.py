"""
guildhall.engine.activity_types — Typed Activity Payloads
==========================================================

Every activity carries a type tag and a metadata map.  Writers never
build that map by hand: they construct one of the closed payload models
below, which validates the fields that type needs, and
:func:`payload_metadata` turns it into the stored JSON.

Readers go the other way with :func:`parse_payload`.  Old rows or tags
this version doesn't know come back as ``None`` so rendering can fall
back to generic text instead of failing.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    "ActivityPayload",
    "AMBIENT_LABELS",
    "NOTABLE_LABELS",
    "ambient_label",
    "describe",
    "detail",
    "parse_payload",
    "payload_metadata",
]


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class NewContributor(_Payload):
    type: Literal["new_contributor"] = "new_contributor"
    username: str


class TierUp(_Payload):
    type: Literal["tier_up"] = "tier_up"
    username: str
    new_tier: str
    previous_tier: str | None = None


class QuestCompleted(_Payload):
    type: Literal["quest_completed"] = "quest_completed"
    quest_id: str
    quest_title: str
    points: int = 0


class ReferralMilestone(_Payload):
    type: Literal["referral_milestone"] = "referral_milestone"
    count: int = Field(ge=1)


class EventOrganized(_Payload):
    type: Literal["event_organized"] = "event_organized"
    event_name: str


class NewTopic(_Payload):
    type: Literal["new_topic"] = "new_topic"
    topic_id: str
    topic_title: str


class NewReply(_Payload):
    type: Literal["new_reply"] = "new_reply"
    reply_id: str
    topic_id: str
    topic_title: str = ""


class ProfileUpdate(_Payload):
    type: Literal["profile_update"] = "profile_update"
    updated_fields: list[str] = Field(default_factory=list)


ActivityPayload = Annotated[
    Union[
        NewContributor,
        TierUp,
        QuestCompleted,
        ReferralMilestone,
        EventOrganized,
        NewTopic,
        NewReply,
        ProfileUpdate,
    ],
    Field(discriminator="type"),
]

_adapter: TypeAdapter[ActivityPayload] = TypeAdapter(ActivityPayload)


def payload_metadata(payload: _Payload) -> dict[str, Any]:
    """JSON-ready metadata for *payload* (the type tag lives in its own column)."""
    return payload.model_dump(mode="json", exclude={"type"})


def parse_payload(activity_type: str, metadata: dict | None) -> _Payload | None:
    """Rebuild the typed payload for a stored activity, or ``None``."""
    try:
        return _adapter.validate_python({**(metadata or {}), "type": activity_type})
    except ValidationError:
        logger.debug("Unparseable %s payload: %r", activity_type, metadata)
        return None


# ---------------------------------------------------------------------------
# Display text
# ---------------------------------------------------------------------------
AMBIENT_LABELS: dict[str, tuple[str, str]] = {
    "new_contributor": ("contributor joined", "contributors joined"),
    "new_topic": ("new discussion started", "new discussions started"),
    "new_reply": ("reply posted", "replies posted"),
    "profile_update": ("profile updated", "profiles updated"),
}

NOTABLE_LABELS: dict[str, str] = {
    "quest_completed": "completed a quest",
    "referral_milestone": "hit a referral milestone",
    "event_organized": "organized an event",
}


def ambient_label(activity_type: str, count: int) -> str:
    """``"3 replies posted"`` style label for an ambient group."""
    singular, plural = AMBIENT_LABELS.get(activity_type, ("action", "actions"))
    return f"{count} {singular if count == 1 else plural}"


def detail(metadata: dict | None) -> str | None:
    """Secondary line for a notable item: the quest, event or topic name."""
    m = metadata or {}
    return m.get("quest_title") or m.get("event_name") or m.get("topic_title") or None


def describe(activity_type: str, metadata: dict | None, username: str | None) -> str:
    """One-line sentence for any activity, tolerant of missing fields."""
    who = username or "Someone"
    payload = parse_payload(activity_type, metadata)

    if isinstance(payload, TierUp):
        return f"{who} was promoted to {payload.new_tier}"
    if activity_type == "tier_up":
        return f"{who} was promoted to a new tier"
    if isinstance(payload, ReferralMilestone):
        return f"{who} hit {payload.count} referrals"
    if isinstance(payload, QuestCompleted):
        return f"{who} completed {payload.quest_title}"
    if activity_type in NOTABLE_LABELS:
        return f"{who} {NOTABLE_LABELS[activity_type]}"
    if activity_type == "new_contributor":
        return f"{who} joined the program"
    if activity_type in AMBIENT_LABELS:
        return f"{who}: {AMBIENT_LABELS[activity_type][0]}"
    return f"{who} performed an action"
