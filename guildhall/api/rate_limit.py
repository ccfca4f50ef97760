"""
guildhall.api.rate_limit — Per-Member Posting Throttle
=======================================================

Caps how many topics and replies one member can post inside a sliding
window (20 per 60 seconds unless ``config.yaml`` says otherwise).

State lives in the ``post_rate_limit_events`` table so limits hold across
restarts and across API workers.  Exceeding the limit returns HTTP 429
with a ``Retry-After`` header.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends, HTTPException, status
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from guildhall.api.deps import get_current_member
from guildhall.database.models import Member, PostRateLimitEvent

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 20
DEFAULT_WINDOW_SECONDS = 60


class PostRateLimiter:
    """Sliding-window counter keyed by member ID."""

    def __init__(
        self,
        max_requests: int = DEFAULT_RATE_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        engine: Engine,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.engine = engine

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        # SQLite hands back naive datetimes
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def _prune(self, session: Session, member_id: str, now: datetime) -> None:
        cutoff = now - timedelta(seconds=self.window_seconds)
        session.execute(
            delete(PostRateLimitEvent).where(
                PostRateLimitEvent.member_id == member_id,
                PostRateLimitEvent.timestamp < cutoff,
            )
        )

    def check(self, member_id: str) -> tuple[bool, dict[str, Any]]:
        """Return ``(allowed, info)``.

        ``info`` holds ``remaining``, ``reset`` (seconds until a slot frees
        up) and ``limit``.
        """
        now = datetime.now(UTC)
        with Session(self.engine) as session:
            self._prune(session, member_id, now)
            timestamps = session.scalars(
                select(PostRateLimitEvent.timestamp)
                .where(PostRateLimitEvent.member_id == member_id)
                .order_by(PostRateLimitEvent.timestamp.asc())
            ).all()
            session.commit()

        count = len(timestamps)
        if count >= self.max_requests:
            oldest = self._as_utc(timestamps[0])
            reset = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
            return False, {
                "remaining": 0,
                "reset": max(1, int(reset) + 1),
                "limit": self.max_requests,
            }

        return True, {
            "remaining": self.max_requests - count,
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def record(self, member_id: str) -> dict[str, Any]:
        """Count one post against the member and return the updated info."""
        now = datetime.now(UTC)
        with Session(self.engine) as session:
            self._prune(session, member_id, now)
            session.add(PostRateLimitEvent(member_id=member_id, timestamp=now))
            session.flush()
            count = session.scalar(
                select(func.count(PostRateLimitEvent.id))
                .where(PostRateLimitEvent.member_id == member_id)
            ) or 0
            session.commit()

        return {
            "remaining": max(0, self.max_requests - count),
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def reset(self, member_id: str | None = None) -> None:
        """Clear throttle state for one member, or everyone."""
        with Session(self.engine) as session:
            stmt = delete(PostRateLimitEvent)
            if member_id is not None:
                stmt = stmt.where(PostRateLimitEvent.member_id == member_id)
            session.execute(stmt)
            session.commit()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_limiter: PostRateLimiter | None = None


def get_rate_limiter() -> PostRateLimiter:
    if _limiter is None:
        raise RuntimeError("Rate limiter not configured — call configure_rate_limiter() first")
    return _limiter


def configure_rate_limiter(
    *,
    engine: Engine,
    max_requests: int = DEFAULT_RATE_LIMIT,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> PostRateLimiter:
    global _limiter
    _limiter = PostRateLimiter(max_requests, window_seconds, engine=engine)
    return _limiter


# ---------------------------------------------------------------------------
# FastAPI dependency: chains after get_current_member
# ---------------------------------------------------------------------------
async def rate_limited_member(member: Member = Depends(get_current_member)) -> Member:
    """Authenticate the member *and* count this post against their window.

    Use on posting endpoints in place of ``Depends(get_current_member)``.
    """
    limiter = get_rate_limiter()
    allowed, info = await asyncio.to_thread(limiter.check, member.id)

    if not allowed:
        logger.warning(
            "Posting limit hit by %s: %d posts per %ds",
            member.username, limiter.max_requests, limiter.window_seconds,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "rate_limit_exceeded",
                "message": (
                    f"Slow down: at most {limiter.max_requests} posts"
                    f" per {limiter.window_seconds} seconds."
                ),
                "retry_after": info["reset"],
            },
            headers={"Retry-After": str(info["reset"])},
        )

    await asyncio.to_thread(limiter.record, member.id)
    return member
