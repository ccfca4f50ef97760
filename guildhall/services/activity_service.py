"""
guildhall.services.activity_service — Activity Journal & Feed
==============================================================

The activity journal is append-only.  Action handlers (signup, posting,
quests, contributions) call :func:`record_activity` inside their own
transaction so the activity commits or rolls back with the action.

Reads join each activity with its member and hand the result to the pure
feed engine.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from guildhall.constants import avatar_url
from guildhall.database.models import Activity, Member
from guildhall.engine.activity_types import payload_metadata
from guildhall.engine.feed import SUNDAY, FeedActivity, MemberSummary, TimeSection, build_feed

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from guildhall.engine.activity_types import ActivityPayload

logger = logging.getLogger(__name__)

DEFAULT_FEED_LIMIT = 50


def record_activity(session: Session, user_id: str, payload: ActivityPayload) -> Activity:
    """Append an activity for *user_id* within the caller's transaction."""
    activity = Activity(
        type=payload.type,
        user_id=user_id,
        metadata_=payload_metadata(payload),
    )
    session.add(activity)
    session.flush()
    return activity


def member_summary(member: Member) -> MemberSummary:
    return MemberSummary(
        id=member.id,
        username=member.username,
        tier=member.tier,
        avatar_url=avatar_url(member.username, member.avatar_url),
    )


def recent_activities(engine: Engine, limit: int = DEFAULT_FEED_LIMIT) -> list[FeedActivity]:
    """The newest *limit* activities, each joined with its member."""
    with Session(engine) as session:
        rows = session.execute(
            select(Activity, Member)
            .join(Member, Activity.user_id == Member.id)
            .order_by(Activity.created_at.desc())
            .limit(limit)
        ).all()

        return [
            FeedActivity(
                id=a.id,
                type=a.type,
                user_id=a.user_id,
                created_at=a.created_at,
                metadata=dict(a.metadata_ or {}),
                user=member_summary(m),
            )
            for a, m in rows
        ]


def activity_feed(
    engine: Engine,
    *,
    now: datetime | None = None,
    limit: int = DEFAULT_FEED_LIMIT,
    week_start: int = SUNDAY,
) -> list[TimeSection]:
    """Sectioned, grouped feed of the newest *limit* activities.

    *now* defaults to the server's local wall-clock time.
    """
    if now is None:
        now = datetime.now()
    return build_feed(recent_activities(engine, limit), now, week_start=week_start)


def prune_activities(engine: Engine, older_than_days: int) -> int:
    """Delete activities older than *older_than_days*.  Returns rows removed.

    Not scheduled anywhere: the journal keeps everything unless an
    operator runs this explicitly.
    """
    if older_than_days < 1:
        raise ValueError("older_than_days must be at least 1")
    cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
    with Session(engine) as session:
        result = session.execute(delete(Activity).where(Activity.created_at < cutoff))
        session.commit()
    logger.info("Pruned %d activities older than %d days", result.rowcount, older_than_days)
    return result.rowcount
