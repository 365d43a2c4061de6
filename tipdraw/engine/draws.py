"""
tipdraw.engine.draws — Draw Closure & Winner Selection
=======================================================

Each entry is one ticket: a user with 3 entries appears three times in the
population, so their chance is ``entries / total``.  Closing a draw is
one-way (active → inactive with a winner).
"""

from __future__ import annotations

import logging
import random
from collections.abc import MutableMapping
from datetime import UTC, datetime

from tipdraw.engine.allocation import DrawError
from tipdraw.engine.state import Draw, User

logger = logging.getLogger(__name__)

__all__ = ["NoEntriesError", "build_population", "select_winner", "win_chance"]


class NoEntriesError(DrawError):
    """The draw has no entries to pick from."""


def build_population(draw: Draw) -> list[str]:
    """One user id per entry."""
    population: list[str] = []
    for user_id, count in draw.entries.items():
        population.extend([user_id] * max(count, 0))
    return population


def win_chance(draw: Draw, user_id: str) -> float:
    total = sum(draw.entries.values())
    if total == 0:
        return 0.0
    return draw.entries.get(user_id, 0) / total


def select_winner(
    draw: Draw,
    users: MutableMapping[str, User],
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> str:
    """Pick a weighted-random winner and close *draw*.

    Raises
    ------
    DrawError
        If the draw is already closed.
    NoEntriesError
        If the draw has no entries.
    """
    if not draw.active:
        raise DrawError("This draw is not active.")

    population = build_population(draw)
    if not population:
        raise NoEntriesError("No entries found for this draw.")

    winner_id = (rng or random.SystemRandom()).choice(population)

    draw.active = False
    draw.winner = winner_id
    draw.winner_selected_at = now or datetime.now(UTC)

    winner = users.get(winner_id)
    if winner is None:
        winner = User(id=winner_id)
        users[winner_id] = winner
    winner.wins += 1

    logger.info(
        "Winner selected for draw %s: %s (%d of %d entries)",
        draw.id, winner_id, draw.entries.get(winner_id, 0), len(population),
    )
    return winner_id
