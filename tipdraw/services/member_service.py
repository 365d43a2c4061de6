"""
tipdraw.services.member_service — Member Self-Service
======================================================

Read and write paths a regular member can reach: choosing which draw their
donations go to, naming a referrer, and read-only views of entries and the
donor leaderboard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tipdraw.constants import AUTO_DRAW
from tipdraw.engine.draws import win_chance
from tipdraw.engine.state import GuildState, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DrawStanding:
    """One line of a member's entry summary."""

    draw_id: str
    draw_name: str
    entries: int
    active: bool
    win_chance: float


def select_draw(state: GuildState, user_id: str, draw_id: str) -> tuple[bool, str]:
    """Target future donations at *draw_id*, or at every draw with ``"auto"``."""
    user = state.get_or_create_user(user_id)
    if draw_id == AUTO_DRAW:
        user.selected_draw = AUTO_DRAW
        return True, "Your donations will now enter every eligible draw."

    draw = state.draws.get(draw_id)
    if draw is None:
        return False, "Draw not found."
    if not draw.active:
        return False, f"{draw.name} is no longer active."

    user.selected_draw = draw_id
    logger.info("User %s selected draw %s", user_id, draw_id)
    return True, f"Your donations will now go to {draw.name}."


def set_referrer(state: GuildState, user_id: str, referrer_id: str) -> tuple[bool, str]:
    if str(user_id) == str(referrer_id):
        return False, "You cannot refer yourself."
    user = state.get_or_create_user(user_id)
    if user.referred_by is not None:
        return False, "You have already set a referrer."
    user.referred_by = str(referrer_id)
    logger.info("User %s referred by %s", user_id, referrer_id)
    return True, "Referrer saved. Thanks for letting us know!"


def entries_summary(state: GuildState, user_id: str) -> list[DrawStanding]:
    """The member's entries per draw, active draws first."""
    user = state.users.get(str(user_id))
    if user is None:
        return []

    standings = [
        DrawStanding(
            draw_id=draw_id,
            draw_name=draw.name,
            entries=count,
            active=draw.active,
            win_chance=win_chance(draw, user.id),
        )
        for draw_id, count in user.entries.items()
        if count > 0 and (draw := state.draws.get(draw_id)) is not None
    ]
    standings.sort(key=lambda s: (not s.active, s.draw_name))
    return standings


def top_donors(state: GuildState, limit: int = 10) -> list[User]:
    """Users with donations, highest lifetime total first."""
    donors = [u for u in state.users.values() if u.total_donated > 0]
    donors.sort(key=lambda u: u.total_donated, reverse=True)
    return donors[:max(limit, 0)]
