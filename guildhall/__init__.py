"""
Guildhall — Contributor Program & Community Forum Backend
==========================================================
Members sign up, earn standing through referrals, events and content,
climb the contributor → ambassador → fellow ladder, complete quests, and
talk in the forum.  Everything they do lands in an activity journal that
the feed engine turns into a sectioned, grouped timeline.

Package layout::

    guildhall/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Labels, sort keys, avatar helper
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session helper, async bridge
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default categories + starter quests
    ├── engine/
    │   ├── feed.py        # Time buckets, importance, ambient grouping
    │   ├── threads.py     # Flat replies → reply tree
    │   ├── tiers.py       # Promotion rules + referral milestones
    │   └── activity_types.py  # Typed activity payloads + display text
    ├── services/
    │   ├── member_service.py   # Accounts, profiles, standings
    │   ├── forum_service.py    # Categories, topics, replies
    │   ├── quest_service.py    # Quest catalogue + progress
    │   └── activity_service.py # Journal writes + feed reads
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Email/password or wallet → JWT
        ├── rate_limit.py  # Posting throttle
        └── routes/        # Activity, members, forum, quests
"""

__version__ = "0.1.0"
