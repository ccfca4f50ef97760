"""
guildhall.engine.feed — Activity Feed Sectioning & Grouping
============================================================

Turns the flat, newest-first activity list into what the activity page
renders:

    activities → time_bucket (Today / This Week / Earlier)
               → classify   (big / notable / ambient)
               → group_bucket (contiguous same-type ambient runs collapse)
               → [TimeSection(label, items)]

This module is pure calculation — no database I/O and no clock reads.
The caller supplies ``now`` and, optionally, the importance policy and
first day of the week.  Input order is preserved everywhere; nothing is
re-sorted.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, timezone
from typing import Any, ClassVar

__all__ = [
    "AmbientGroup",
    "BigItem",
    "DEFAULT_IMPORTANCE",
    "FeedActivity",
    "FeedItem",
    "Importance",
    "MemberSummary",
    "NotableItem",
    "SUNDAY",
    "TimeBucket",
    "TimeSection",
    "build_feed",
    "classify",
    "group_bucket",
    "time_bucket",
]

SUNDAY = 6  # datetime.weekday() index


class Importance(enum.StrEnum):
    BIG = "big"
    NOTABLE = "notable"
    AMBIENT = "ambient"


class TimeBucket(enum.StrEnum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    EARLIER = "earlier"


BUCKET_ORDER: tuple[TimeBucket, ...] = (
    TimeBucket.TODAY,
    TimeBucket.THIS_WEEK,
    TimeBucket.EARLIER,
)

BUCKET_LABELS: dict[TimeBucket, str] = {
    TimeBucket.TODAY: "Today",
    TimeBucket.THIS_WEEK: "This Week",
    TimeBucket.EARLIER: "Earlier",
}

# Type tag → importance.  Tags missing from the policy are NOTABLE so an
# unrecognised activity is always shown on its own, never folded into a group.
DEFAULT_IMPORTANCE: Mapping[str, Importance] = {
    "tier_up": Importance.BIG,
    "quest_completed": Importance.NOTABLE,
    "referral_milestone": Importance.NOTABLE,
    "event_organized": Importance.NOTABLE,
    "new_contributor": Importance.AMBIENT,
    "new_topic": Importance.AMBIENT,
    "new_reply": Importance.AMBIENT,
    "profile_update": Importance.AMBIENT,
}


# ---------------------------------------------------------------------------
# Input / output shapes
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MemberSummary:
    """The acting member, as much of them as the feed needs to display."""

    id: str
    username: str
    tier: str = "contributor"
    avatar_url: str = ""


@dataclass(frozen=True, slots=True)
class FeedActivity:
    """One activity joined with its acting member."""

    id: str
    type: str
    user_id: str
    created_at: datetime
    metadata: Mapping[str, Any] = field(default_factory=dict)
    user: MemberSummary | None = None


@dataclass(frozen=True, slots=True)
class BigItem:
    kind: ClassVar[str] = "big"
    activity: FeedActivity

    @property
    def activities(self) -> tuple[FeedActivity, ...]:
        return (self.activity,)


@dataclass(frozen=True, slots=True)
class NotableItem:
    kind: ClassVar[str] = "notable"
    activity: FeedActivity

    @property
    def activities(self) -> tuple[FeedActivity, ...]:
        return (self.activity,)


@dataclass(frozen=True, slots=True)
class AmbientGroup:
    """A contiguous run of ambient activities sharing one type (never empty)."""

    kind: ClassVar[str] = "ambient_group"
    type: str
    activities: tuple[FeedActivity, ...]

    @property
    def count(self) -> int:
        return len(self.activities)


FeedItem = BigItem | NotableItem | AmbientGroup


@dataclass(frozen=True, slots=True)
class TimeSection:
    bucket: TimeBucket
    items: tuple[FeedItem, ...]

    @property
    def label(self) -> str:
        return BUCKET_LABELS[self.bucket]


# ---------------------------------------------------------------------------
# Stage 1: Time bucketing
# ---------------------------------------------------------------------------
def _as_instant(timestamp: datetime) -> datetime:
    # Naive timestamps coming back from storage are UTC
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp


def _is_local_snapshot(now: datetime) -> bool:
    """True when *now* carries the fixed offset ``datetime.astimezone()``
    gives local time, rather than a real zone chosen by the caller."""
    tz = now.tzinfo
    return isinstance(tz, timezone) and tz is not UTC and tz == now.astimezone().tzinfo


def _boundaries(now: datetime, week_start: int) -> tuple[datetime, datetime]:
    """Start of today and start of the week, as aware instants.

    Midnights are taken on *now*'s wall clock and only then resolved to an
    instant, so a DST change inside the week never shifts them.  A naive
    *now* (or a fixed-offset snapshot of local time) resolves through the
    system timezone; any other aware *now* resolves through its own tzinfo.
    """
    wall = now.replace(tzinfo=None)
    today = wall.replace(hour=0, minute=0, second=0, microsecond=0)
    week = today - timedelta(days=(wall.weekday() - week_start) % 7)
    if now.tzinfo is None or _is_local_snapshot(now):
        return today.astimezone(), week.astimezone()
    return today.replace(tzinfo=now.tzinfo), week.replace(tzinfo=now.tzinfo)


def time_bucket(
    timestamp: datetime,
    now: datetime,
    week_start: int = SUNDAY,
) -> TimeBucket:
    """Which feed section *timestamp* falls into, seen from *now*.

    Boundaries are local midnights on *now*'s calendar: the start of today,
    and the start of the most recent *week_start* day (inclusive).
    """
    ts = _as_instant(timestamp)
    start_of_today, start_of_week = _boundaries(now, week_start)

    if ts >= start_of_today:
        return TimeBucket.TODAY
    if ts >= start_of_week:
        return TimeBucket.THIS_WEEK
    return TimeBucket.EARLIER


# ---------------------------------------------------------------------------
# Stage 2: Importance
# ---------------------------------------------------------------------------
def classify(
    activity_type: str,
    policy: Mapping[str, Importance] = DEFAULT_IMPORTANCE,
) -> Importance:
    """Importance of *activity_type* under *policy*; unknown types are notable."""
    return Importance(policy.get(activity_type, Importance.NOTABLE))


# ---------------------------------------------------------------------------
# Stage 3: Grouping within one bucket
# ---------------------------------------------------------------------------
def group_bucket(
    activities: Sequence[FeedActivity],
    policy: Mapping[str, Importance] = DEFAULT_IMPORTANCE,
) -> list[FeedItem]:
    """Single left-to-right scan producing feed items.

    Ambient activities collapse into a group only while the *next*
    activity is ambient with the identical type; any interruption starts
    a new group.
    """
    items: list[FeedItem] = []
    i = 0
    n = len(activities)
    while i < n:
        current = activities[i]
        importance = classify(current.type, policy)

        if importance == Importance.BIG:
            items.append(BigItem(current))
            i += 1
        elif importance == Importance.AMBIENT:
            j = i + 1
            while (
                j < n
                and activities[j].type == current.type
                and classify(activities[j].type, policy) == Importance.AMBIENT
            ):
                j += 1
            items.append(AmbientGroup(current.type, tuple(activities[i:j])))
            i = j
        else:
            items.append(NotableItem(current))
            i += 1
    return items


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------
def build_feed(
    activities: Sequence[FeedActivity],
    now: datetime,
    *,
    week_start: int = SUNDAY,
    policy: Mapping[str, Importance] = DEFAULT_IMPORTANCE,
) -> list[TimeSection]:
    """Section, classify and group *activities* (newest first).

    Returns sections in Today → This Week → Earlier order, omitting
    empty ones.  Every input activity appears in exactly one item.
    """
    buckets: dict[TimeBucket, list[FeedActivity]] = {b: [] for b in BUCKET_ORDER}
    for activity in activities:
        buckets[time_bucket(activity.created_at, now, week_start)].append(activity)

    return [
        TimeSection(bucket, tuple(group_bucket(buckets[bucket], policy)))
        for bucket in BUCKET_ORDER
        if buckets[bucket]
    ]
