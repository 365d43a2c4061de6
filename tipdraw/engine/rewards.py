"""
tipdraw.engine.rewards — Donor Tiers & Donation Streaks
========================================================

Pure calculation — no Discord I/O.  The tier check tells the caller which
role to grant and which to revoke; applying it to the member is the bot's
job.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from tipdraw.engine.state import DonorRole, Streak

logger = logging.getLogger(__name__)

__all__ = [
    "RoleTransition",
    "STREAK_GRACE",
    "STREAK_WINDOW",
    "current_tier",
    "resolve_tier_change",
    "target_tier",
    "update_streak",
]

STREAK_WINDOW = timedelta(hours=24)
STREAK_GRACE = timedelta(hours=48)


# ---------------------------------------------------------------------------
# Donor tiers
# ---------------------------------------------------------------------------
@dataclass
class RoleTransition:
    """A tier upgrade: grant one role, revoke the other tier roles held."""

    grant_role_id: str
    role_name: str
    old_total: float
    new_total: float
    revoke_role_ids: list[str] = field(default_factory=list)


def current_tier(
    donor_roles: Mapping[str, DonorRole], held_role_ids: Collection[str]
) -> DonorRole | None:
    """The configured tier the member holds with the highest minimum."""
    held = [r for r in donor_roles.values() if r.role_id in held_role_ids]
    return max(held, key=lambda r: r.min_amount, default=None)


def target_tier(donor_roles: Mapping[str, DonorRole], total: float) -> DonorRole | None:
    """The highest tier whose range contains *total*."""
    matching = [r for r in donor_roles.values() if r.contains(total)]
    return max(matching, key=lambda r: r.min_amount, default=None)


def resolve_tier_change(
    donor_roles: Mapping[str, DonorRole],
    old_total: float,
    new_total: float,
    held_role_ids: Collection[str],
) -> RoleTransition | None:
    """Return the upgrade for *new_total*, or ``None``.  Never downgrades."""
    if not donor_roles:
        return None

    new_role = target_tier(donor_roles, new_total)
    if new_role is None:
        return None

    held = current_tier(donor_roles, held_role_ids)
    if held is not None and new_role.min_amount <= held.min_amount:
        if new_role.min_amount < held.min_amount:
            logger.info(
                "Member already holds higher tier %s, not downgrading to %s",
                held.name, new_role.name,
            )
        return None

    revoke = [
        r.role_id for r in donor_roles.values()
        if r.role_id != new_role.role_id and r.role_id in held_role_ids
    ]
    return RoleTransition(
        grant_role_id=new_role.role_id,
        role_name=new_role.name,
        old_total=old_total,
        new_total=new_total,
        revoke_role_ids=revoke,
    )


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------
def update_streak(streak: Streak, now: datetime) -> Streak:
    """Advance *streak* for a donation made at *now* (mutates and returns it).

    Within 24 h of the previous donation the streak grows; between 24 h and
    48 h it holds; beyond 48 h it restarts at 1.
    """
    if streak.last_donation is None:
        streak.current = 1
    else:
        elapsed = now - streak.last_donation
        if elapsed <= STREAK_WINDOW:
            streak.current += 1
        elif elapsed <= STREAK_GRACE:
            pass
        else:
            streak.current = 1

    streak.longest = max(streak.longest, streak.current)
    streak.last_donation = now
    return streak
