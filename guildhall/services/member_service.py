"""
guildhall.services.member_service — Accounts, Profiles & Standings
===================================================================

Shared service module for everything member-shaped: signup, login and
wallet connection,
profile edits, the leaderboard, dashboard totals, and admin-recorded
contributions (referrals, events, content) with the tier promotions and
milestones they trigger.
"""

from __future__ import annotations

import logging
import re
import secrets
from typing import TYPE_CHECKING, Any

import bcrypt
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from guildhall.constants import EDITABLE_PROFILE_FIELDS, LEADERBOARD_SORTS, MIN_SEARCH_LENGTH
from guildhall.database.engine import get_session
from guildhall.database.models import Member
from guildhall.engine.activity_types import (
    EventOrganized,
    NewContributor,
    ProfileUpdate,
    ReferralMilestone,
    TierUp,
)
from guildhall.engine.tiers import evaluate_tier, referral_milestones_crossed
from guildhall.services.activity_service import record_activity
from guildhall.services.errors import ConflictError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10
MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 3

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_WALLET_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# Signup / login
# ---------------------------------------------------------------------------
def signup(engine: Engine, *, email: str, password: str, username: str) -> Member:
    """Create a member account and announce it in the activity feed.

    Raises
    ------
    ValueError
        If the email, password or username fails validation.
    ConflictError
        If the email or username is already registered.
    """
    email = email.strip().lower()
    username = username.strip()
    if not _EMAIL_RE.match(email):
        raise ValueError("Invalid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValueError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")

    try:
        with get_session(engine) as session:
            if session.scalar(select(Member.id).where(Member.email == email)):
                raise ConflictError("Email already registered")
            if session.scalar(select(Member.id).where(Member.username == username)):
                raise ConflictError("Username already taken")

            member = Member(
                email=email,
                password_hash=hash_password(password),
                username=username,
                referral_code=f"REF_{secrets.token_hex(4).upper()}",
            )
            session.add(member)
            session.flush()
            record_activity(session, member.id, NewContributor(username=username))
    except IntegrityError as exc:
        # Lost a race with a concurrent signup for the same email/username
        raise ConflictError("Username or email already taken") from exc

    logger.info("New member %s (%s)", member.username, member.id)
    return member


def authenticate(engine: Engine, email: str, password: str) -> Member | None:
    """Return the member for these credentials, or ``None``."""
    with Session(engine, expire_on_commit=False) as session:
        member = session.scalar(
            select(Member).where(Member.email == email.strip().lower())
        )
    if (
        member is None
        or member.password_hash is None
        or not verify_password(password, member.password_hash)
    ):
        logger.warning("Failed login for %s", email)
        return None
    return member


def _wallet_username(session: Session, hex_part: str) -> str:
    # user_<first 6 hex>, lengthened until it no longer clashes
    for length in range(6, len(hex_part) + 1, 2):
        candidate = f"user_{hex_part[:length]}"
        if not session.scalar(select(Member.id).where(Member.username == candidate)):
            return candidate
    raise ConflictError("Username already taken")


def connect_wallet(engine: Engine, wallet_address: str) -> tuple[Member, bool]:
    """Find or create the member behind *wallet_address*.

    Addresses are ``0x`` plus 40 hex digits and are matched
    case-insensitively.  A first connection creates the member with a
    ``user_<hex>`` username and ``REF_<HEX>`` referral code and announces
    it in the activity feed.

    Returns ``(member, created)``.

    Raises
    ------
    ValueError
        If the address is malformed.
    """
    wallet_address = wallet_address.strip()
    if not _WALLET_RE.match(wallet_address):
        raise ValueError("Invalid wallet address")
    wallet_address = wallet_address.lower()
    hex_part = wallet_address[2:]

    try:
        with get_session(engine) as session:
            member = session.scalar(
                select(Member).where(Member.wallet_address == wallet_address)
            )
            if member is not None:
                return member, False

            member = Member(
                wallet_address=wallet_address,
                username=_wallet_username(session, hex_part),
                referral_code=f"REF_{hex_part[:8].upper()}",
            )
            session.add(member)
            session.flush()
            record_activity(session, member.id, NewContributor(username=member.username))
    except IntegrityError as exc:
        # Lost a race with a concurrent first connection
        raise ConflictError("Wallet already connecting, try again") from exc

    logger.info("New wallet member %s (%s)", member.username, member.id)
    return member, True


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------
def get_member(engine: Engine, member_id: str) -> Member | None:
    with Session(engine, expire_on_commit=False) as session:
        return session.get(Member, member_id)


def list_members(engine: Engine) -> list[Member]:
    """All members, newest first."""
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(select(Member).order_by(Member.joined_at.desc())).all())


def search_members(engine: Engine, query: str) -> list[Member]:
    """Case-insensitive match on username, email or bio.

    Queries shorter than ``MIN_SEARCH_LENGTH`` match nothing.
    """
    query = query.strip()
    if len(query) < MIN_SEARCH_LENGTH:
        return []
    pattern = f"%{query}%"
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            select(Member)
            .where(or_(
                Member.username.ilike(pattern),
                Member.email.ilike(pattern),
                Member.bio.ilike(pattern),
            ))
            .order_by(Member.joined_at.desc())
        ).all())


def update_profile(engine: Engine, member_id: str, changes: dict[str, Any]) -> Member | None:
    """Apply whitelisted profile *changes*; ``None`` if the member is unknown.

    Records a ``profile_update`` activity naming the fields that were sent.
    """
    changes = {k: v for k, v in changes.items() if k in EDITABLE_PROFILE_FIELDS}

    with get_session(engine) as session:
        member = session.get(Member, member_id)
        if member is None:
            return None
        if not changes:
            return member

        new_name = changes.get("username")
        if new_name is not None and new_name != member.username:
            if len(new_name.strip()) < MIN_USERNAME_LENGTH:
                raise ValueError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
            taken = session.scalar(
                select(Member.id).where(Member.username == new_name, Member.id != member_id)
            )
            if taken:
                raise ConflictError("Username already taken")

        for key, value in changes.items():
            setattr(member, key, value)
        record_activity(session, member.id, ProfileUpdate(updated_fields=list(changes)))
    return member


# ---------------------------------------------------------------------------
# Standings
# ---------------------------------------------------------------------------
def get_leaderboard(engine: Engine, sort_by: str = "total_points", limit: int = 50) -> list[Member]:
    """Top *limit* members by *sort_by* (unknown keys fall back to points)."""
    column = getattr(Member, LEADERBOARD_SORTS.get(sort_by, "total_points"))
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            select(Member).order_by(column.desc(), Member.username).limit(limit)
        ).all())


def get_dashboard_stats(engine: Engine) -> dict[str, int]:
    with Session(engine) as session:
        row = session.execute(
            select(
                func.count(Member.id),
                func.coalesce(func.sum(Member.referrals_count), 0),
                func.coalesce(func.sum(Member.events_count), 0),
                func.coalesce(func.sum(Member.content_count), 0),
            )
        ).one()
    return {
        "total_contributors": row[0] or 0,
        "total_referrals": row[1] or 0,
        "total_events": row[2] or 0,
        "total_content": row[3] or 0,
    }


def record_contribution(
    engine: Engine,
    member_id: str,
    *,
    referrals: int = 0,
    events: int = 0,
    content: int = 0,
    points: int = 0,
    event_name: str | None = None,
) -> Member | None:
    """Credit a member with contributions verified by an admin.

    Writes ``event_organized`` for events, one ``referral_milestone`` per
    milestone crossed, and ``tier_up`` when the new counters earn a
    promotion.  Returns ``None`` if the member is unknown.
    """
    if min(referrals, events, content, points) < 0:
        raise ValueError("Contribution amounts cannot be negative")
    if events and not event_name:
        raise ValueError("event_name is required when recording events")

    with get_session(engine) as session:
        member = session.get(Member, member_id)
        if member is None:
            return None

        before_referrals = member.referrals_count
        member.referrals_count += referrals
        member.events_count += events
        member.content_count += content
        member.total_points += points

        if events:
            record_activity(session, member.id, EventOrganized(event_name=event_name))

        for milestone in referral_milestones_crossed(before_referrals, member.referrals_count):
            record_activity(session, member.id, ReferralMilestone(count=milestone))

        new_tier = evaluate_tier(member.tier, member.referrals_count, member.events_count)
        if new_tier != member.tier:
            record_activity(session, member.id, TierUp(
                username=member.username,
                new_tier=new_tier,
                previous_tier=member.tier,
            ))
            logger.info("Member %s promoted %s → %s", member.username, member.tier, new_tier)
            member.tier = str(new_tier)
    return member
