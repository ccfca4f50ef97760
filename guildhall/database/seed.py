"""
guildhall.database.seed — Default Forum & Quest Seeder
=======================================================

Baseline forum categories and starter quests seeded on first startup so
the site is immediately usable.

Idempotent — categories are matched by slug and quests by title; rows
created or edited later by admins are never overwritten.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from guildhall.database.models import ForumCategory, Quest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default catalogues
# ---------------------------------------------------------------------------
DEFAULT_CATEGORIES: list[dict] = [
    {
        "slug": "announcements",
        "name": "Announcements",
        "description": "Program news and updates from the core team",
        "icon": "Megaphone",
    },
    {
        "slug": "general",
        "name": "General",
        "description": "Introductions and open discussion",
        "icon": "MessageSquare",
    },
    {
        "slug": "events",
        "name": "Events",
        "description": "Meetups, workshops and hackathons organized by contributors",
        "icon": "Calendar",
    },
    {
        "slug": "content",
        "name": "Content",
        "description": "Share articles, threads and videos you've created",
        "icon": "PenTool",
    },
]

DEFAULT_QUESTS: list[dict] = [
    {
        "title": "Complete your profile",
        "description": "Add a bio, skills and at least one social handle.",
        "category": "onboarding",
        "points": 50,
        "difficulty": "easy",
    },
    {
        "title": "Start your first discussion",
        "description": "Open a topic in any forum category.",
        "category": "community",
        "points": 100,
        "difficulty": "easy",
    },
    {
        "title": "Refer five friends",
        "description": "Bring five new contributors into the program.",
        "category": "referrals",
        "points": 250,
        "target_count": 5,
        "difficulty": "medium",
    },
    {
        "title": "Host a local meetup",
        "description": "Organize an in-person or online event for your city.",
        "category": "events",
        "points": 500,
        "difficulty": "hard",
    },
]


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_defaults(engine: Engine) -> None:
    """Insert default categories and quests that don't yet exist."""
    session = Session(engine)
    inserted = 0
    try:
        existing_slugs = set(session.scalars(select(ForumCategory.slug)).all())
        for cat in DEFAULT_CATEGORIES:
            if cat["slug"] not in existing_slugs:
                session.add(ForumCategory(**cat))
                inserted += 1

        existing_titles = set(session.scalars(select(Quest.title)).all())
        for quest in DEFAULT_QUESTS:
            if quest["title"] not in existing_titles:
                session.add(Quest(**quest))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default forum categories / quests.", inserted)
