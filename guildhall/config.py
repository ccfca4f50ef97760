"""
guildhall.config — YAML Configuration Loader
=============================================

Reads ``config.yaml`` for community identity and tuning values (feed
size, leaderboard size, week start, session lifetime, posting throttle).
Secrets (``DATABASE_URL``, ``JWT_SECRET``) never live here; they come
from the environment / ``.env``.

Usage::

    from guildhall.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "Guildhall"
    print(cfg.feed_limit)        # 50
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

WEEKDAYS: dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GuildhallConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str = "Guildhall"
    community_motto: str = "Build the community you want to be part of"

    # API
    api_port: int = 8000

    # Feed & leaderboard
    feed_limit: int = 50
    leaderboard_limit: int = 50
    week_starts_on: str = "sunday"

    # Auth
    session_ttl_hours: int = 24

    # Posting throttle (topics + replies per member)
    post_rate_limit: int = 20
    post_rate_window_seconds: int = 60

    @property
    def week_start(self) -> int:
        """``week_starts_on`` as a :meth:`datetime.weekday` index."""
        return WEEKDAYS[self.week_starts_on]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> GuildhallConfig:
    """Read *path* and return a :class:`GuildhallConfig` instance.

    A missing file yields the defaults, as does any missing key.

    Raises
    ------
    ValueError
        If ``week_starts_on`` is not a weekday name.
    """
    config_path = Path(path)
    if not config_path.exists():
        logger.info("No config file at %s — using defaults.", config_path.resolve())
        return GuildhallConfig()

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = GuildhallConfig()
    week_starts_on = str(raw.get("week_starts_on", defaults.week_starts_on)).lower()
    if week_starts_on not in WEEKDAYS:
        raise ValueError(
            f"week_starts_on must be a weekday name, got {week_starts_on!r}"
        )

    return GuildhallConfig(
        community_name=raw.get("community_name", defaults.community_name),
        community_motto=raw.get("community_motto", defaults.community_motto),
        api_port=int(raw.get("api_port", defaults.api_port)),
        feed_limit=int(raw.get("feed_limit", defaults.feed_limit)),
        leaderboard_limit=int(raw.get("leaderboard_limit", defaults.leaderboard_limit)),
        week_starts_on=week_starts_on,
        session_ttl_hours=int(raw.get("session_ttl_hours", defaults.session_ttl_hours)),
        post_rate_limit=int(raw.get("post_rate_limit", defaults.post_rate_limit)),
        post_rate_window_seconds=int(
            raw.get("post_rate_window_seconds", defaults.post_rate_window_seconds)
        ),
    )
