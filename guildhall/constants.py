"""
guildhall.constants — Shared Constants & Helpers
=================================================

Single source of truth for presentation constants and small helpers.
Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

from urllib.parse import quote

# ---------------------------------------------------------------------------
# Tier presentation
# ---------------------------------------------------------------------------
TIER_LABELS: dict[str, str] = {
    "contributor": "Contributor",
    "ambassador": "Ambassador",
    "fellow": "Fellow",
}

# ---------------------------------------------------------------------------
# Points & milestones
# ---------------------------------------------------------------------------
REFERRAL_MILESTONE_STEP = 50  # a referral_milestone fires at every multiple

# Leaderboard sort keys accepted by the API → Member column name
LEADERBOARD_SORTS: dict[str, str] = {
    "total_points": "total_points",
    "referrals": "referrals_count",
    "events": "events_count",
    "content": "content_count",
}

# Profile fields a member may edit on themselves
EDITABLE_PROFILE_FIELDS: frozenset[str] = frozenset({
    "username",
    "bio",
    "skill_tags",
    "lens_handle",
    "farcaster_handle",
    "x_handle",
    "telegram_handle",
    "college",
    "city",
    "region",
})

MIN_SEARCH_LENGTH = 2


# ---------------------------------------------------------------------------
# Avatars
# ---------------------------------------------------------------------------
_AVATAR_BASE = "https://api.dicebear.com/9.x/notionists-neutral/svg"
_AVATAR_BACKGROUNDS = "b6e3f4,c0aede,d1d4f9,ffd5dc,ffdfbf"


def avatar_url(username: str | None, custom_url: str | None = None) -> str:
    """Return the member's uploaded avatar, or a generated one seeded by name."""
    if custom_url:
        return custom_url
    seed = quote(username or "Anonymous", safe="")
    return f"{_AVATAR_BASE}?seed={seed}&backgroundColor={_AVATAR_BACKGROUNDS}"
