"""
guildhall.engine.tiers — Tier Progression Rules
================================================

Contributors move up the program ladder by referring new members and
organizing events:

    contributor ──(150 referrals, 1 event)──▶ ambassador
    ambassador  ──(700 referrals, 6 events)──▶ fellow

Pure calculation — the member service applies the result and writes the
``tier_up`` / ``referral_milestone`` activities.
"""

from __future__ import annotations

from dataclasses import dataclass

from guildhall.constants import REFERRAL_MILESTONE_STEP
from guildhall.database.models import Tier


@dataclass(frozen=True, slots=True)
class Promotion:
    """What a member of some tier needs to reach ``to_tier``."""

    to_tier: str
    referrals: int
    events: int


PROMOTIONS: dict[str, Promotion] = {
    Tier.CONTRIBUTOR: Promotion(Tier.AMBASSADOR, referrals=150, events=1),
    Tier.AMBASSADOR: Promotion(Tier.FELLOW, referrals=700, events=6),
}


@dataclass(frozen=True, slots=True)
class TierProgress:
    tier: str
    next_tier: str | None
    referrals: int
    events: int
    referrals_required: int | None
    events_required: int | None

    @property
    def percent(self) -> float:
        """Progress to the next tier, limited by the weaker requirement."""
        if self.next_tier is None:
            return 100.0
        ref = min(self.referrals / max(self.referrals_required or 1, 1), 1.0)
        evt = min(self.events / max(self.events_required or 1, 1), 1.0)
        return round(min(ref, evt) * 100, 1)


def next_tier(tier: str) -> str | None:
    promo = PROMOTIONS.get(tier)
    return promo.to_tier if promo else None


def evaluate_tier(tier: str, referrals: int, events: int) -> str:
    """Highest tier reachable from *tier* with these counters.

    Several promotions can apply at once.  Members are never demoted, and
    a tier this module doesn't know stays as it is.
    """
    current = tier
    while (promo := PROMOTIONS.get(current)) is not None:
        if referrals < promo.referrals or events < promo.events:
            break
        current = promo.to_tier
    return current


def tier_progress(tier: str, referrals: int, events: int) -> TierProgress:
    promo = PROMOTIONS.get(tier)
    return TierProgress(
        tier=tier,
        next_tier=promo.to_tier if promo else None,
        referrals=referrals,
        events=events,
        referrals_required=promo.referrals if promo else None,
        events_required=promo.events if promo else None,
    )


def referral_milestones_crossed(
    before: int, after: int, step: int = REFERRAL_MILESTONE_STEP
) -> list[int]:
    """Multiples of *step* in ``(before, after]``, lowest first."""
    if after <= before:
        return []
    first = (before // step + 1) * step
    return list(range(first, after + 1, step))
