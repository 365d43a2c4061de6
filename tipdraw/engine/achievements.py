"""
tipdraw.engine.achievements — Achievement Check Pipeline
=========================================================

Handler-registry evaluation of a fixed achievement catalog.  Each
:class:`TriggerType` maps to a pure handler receiving the achievement's
threshold and an :class:`AchievementContext`.

Granting is idempotent: an earned key is never re-appended, so checks can be
re-run at any time.  :func:`repair_achievements` does exactly that for a
whole guild.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass

from tipdraw.engine.state import GuildState, User

logger = logging.getLogger(__name__)


class TriggerType(enum.StrEnum):
    """What an achievement measures."""
    FIRST_DONATION = "first_donation"
    TOTAL_DONATED = "total_donated"
    STREAK = "streak"
    REFERRALS = "referrals"
    WINS = "wins"


@dataclass(frozen=True, slots=True)
class Achievement:
    key: str
    name: str
    description: str
    trigger: TriggerType
    value: float = 0


ACHIEVEMENTS: dict[str, Achievement] = {
    a.key: a
    for a in (
        Achievement("first_steps", "First Steps", "Make your first donation",
                    TriggerType.FIRST_DONATION),
        Achievement("generous_donor", "Generous Donor", "Donate a total of $100",
                    TriggerType.TOTAL_DONATED, 100),
        Achievement("big_spender", "Big Spender", "Donate a total of $500",
                    TriggerType.TOTAL_DONATED, 500),
        Achievement("whale", "Whale", "Donate a total of $1,000",
                    TriggerType.TOTAL_DONATED, 1000),
        Achievement("streak_master", "Streak Master", "Keep a 7-donation streak",
                    TriggerType.STREAK, 7),
        Achievement("community_pillar", "Community Pillar", "Refer 3 donors",
                    TriggerType.REFERRALS, 3),
        Achievement("lucky_winner", "Lucky Winner", "Win a draw",
                    TriggerType.WINS, 1),
    )
}


# ---------------------------------------------------------------------------
# Achievement Context — passed to every trigger handler
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementContext:
    """Snapshot of a user's standing.

    Parameters
    ----------
    total_donated : Lifetime USD total (after this donation).
    current_streak : Current donation streak.
    referral_count : Users in the guild whose ``referred_by`` is this user.
    wins : Draws won.
    """

    total_donated: float = 0.0
    current_streak: int = 0
    referral_count: int = 0
    wins: int = 0


# ---------------------------------------------------------------------------
# Trigger handlers — pure functions (value, ctx) → bool
# ---------------------------------------------------------------------------
def _check_first_donation(value: float, ctx: AchievementContext) -> bool:
    return ctx.total_donated > 0


def _check_total_donated(value: float, ctx: AchievementContext) -> bool:
    return ctx.total_donated >= value


def _check_streak(value: float, ctx: AchievementContext) -> bool:
    return ctx.current_streak >= value


def _check_referrals(value: float, ctx: AchievementContext) -> bool:
    return ctx.referral_count >= value


def _check_wins(value: float, ctx: AchievementContext) -> bool:
    return ctx.wins >= value


TRIGGER_HANDLERS: dict[str, Callable[[float, AchievementContext], bool]] = {
    TriggerType.FIRST_DONATION: _check_first_donation,
    TriggerType.TOTAL_DONATED: _check_total_donated,
    TriggerType.STREAK: _check_streak,
    TriggerType.REFERRALS: _check_referrals,
    TriggerType.WINS: _check_wins,
}


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------
def check_achievements(
    ctx: AchievementContext,
    already_earned: Collection[str],
    catalog: dict[str, Achievement] = ACHIEVEMENTS,
) -> list[str]:
    """Keys of achievements newly satisfied by *ctx*, in catalog order."""
    newly_earned: list[str] = []
    for key, achievement in catalog.items():
        if key in already_earned:
            continue
        handler = TRIGGER_HANDLERS.get(achievement.trigger)
        if handler is None:
            continue
        if handler(achievement.value, ctx):
            newly_earned.append(key)
    return newly_earned


def referral_count(state: GuildState, user_id: str) -> int:
    return sum(1 for u in state.users.values() if u.referred_by == user_id)


def build_context(user: User, state: GuildState) -> AchievementContext:
    return AchievementContext(
        total_donated=user.total_donated,
        current_streak=user.streak.current,
        referral_count=referral_count(state, user.id),
        wins=user.wins,
    )


def award_achievements(user: User, state: GuildState) -> list[str]:
    """Append newly earned keys to ``user.achievements``; return them."""
    earned = check_achievements(build_context(user, state), set(user.achievements))
    for key in earned:
        user.achievements.append(key)
        logger.info("Achievement earned: %s by user %s", ACHIEVEMENTS[key].name, user.id)
    return earned


def repair_achievements(state: GuildState, user_id: str | None = None) -> dict[str, int]:
    """Re-evaluate achievements from scratch.

    With *user_id*, only that user is checked; otherwise every user with
    donation history.  Returns ``{user_id: newly_granted_count}`` for each
    user processed.
    """
    if user_id is not None:
        user = state.users.get(str(user_id))
        targets = [user] if user is not None else []
    else:
        targets = [u for u in state.users.values() if u.total_donated > 0]

    return {user.id: len(award_achievements(user, state)) for user in targets}
