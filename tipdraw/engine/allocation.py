"""
tipdraw.engine.allocation — Draw Entry Allocation
==================================================

Turns a USD-valued donation into entries across the guild's draws.

For each draw the eligibility checks run in a fixed order and stop at the
first failure:

  inactive → invalid_min_amount → below_min → above_max → manual_only
  → not_selected → vip_only

An eligible draw grants ``floor(usd / min_amount)`` entries, clamped to the
draw's remaining capacity.  The draw ledger and the user's per-draw counter
are always updated together.  One donation can land in several draws at
once unless the user has targeted a single draw.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import ROUND_FLOOR, Decimal

from tipdraw.constants import AUTO_DRAW
from tipdraw.engine.state import Draw, User

logger = logging.getLogger(__name__)

__all__ = [
    "DrawError",
    "allocate_entries",
    "assign_manual_entries",
    "entries_for_amount",
    "ineligibility_reason",
    "remaining_capacity",
    "total_entries",
]


class DrawError(ValueError):
    """A draw rule was violated (inactive draw, capacity, bad amounts…)."""


def total_entries(draw: Draw) -> int:
    return sum(draw.entries.values())


def remaining_capacity(draw: Draw) -> int | None:
    """Entries still available, or ``None`` for an unbounded draw."""
    if draw.max_entries is None:
        return None
    return max(draw.max_entries - total_entries(draw), 0)


def entries_for_amount(usd_value: float, min_amount: float) -> int:
    """``floor(usd_value / min_amount)`` without binary-float drift."""
    if min_amount <= 0:
        return 0
    units = Decimal(str(usd_value)) / Decimal(str(min_amount))
    return max(int(units.to_integral_value(rounding=ROUND_FLOOR)), 0)


def ineligibility_reason(
    draw: Draw,
    usd_value: float,
    *,
    selected_draw: str | None = None,
    is_vip: bool = False,
) -> str | None:
    """Name of the first failed check, or ``None`` when *draw* is eligible."""
    if not draw.active:
        return "inactive"
    if draw.min_amount <= 0:
        return "invalid_min_amount"
    if usd_value < draw.min_amount:
        return "below_min"
    if draw.max_amount is not None and usd_value > draw.max_amount:
        return "above_max"
    if draw.manual_entries_only:
        return "manual_only"
    if selected_draw and selected_draw != AUTO_DRAW and draw.id != selected_draw:
        return "not_selected"
    if draw.vip_only and not is_vip:
        return "vip_only"
    return None


def _credit(draw: Draw, user: User, count: int) -> None:
    draw.entries[user.id] = draw.entries.get(user.id, 0) + count
    user.entries[draw.id] = user.entries.get(draw.id, 0) + count


def allocate_entries(
    user: User,
    usd_value: float,
    draws: Mapping[str, Draw],
    *,
    is_vip: bool = False,
    vip_draws_enabled: bool = True,
) -> dict[str, int]:
    """Grant entries for one donation; return ``{draw_id: granted}`` (> 0 only).

    Parameters
    ----------
    user : the donor; ``user.selected_draw`` restricts allocation to one draw.
    usd_value : the donation's USD value.
    draws : every draw in the guild, mutated in place.
    is_vip : whether the donor holds the guild's VIP role.
    vip_draws_enabled : when False, VIP-only draws take no automatic entries.
    """
    granted: dict[str, int] = {}

    for draw_id, draw in draws.items():
        reason = ineligibility_reason(
            draw, usd_value, selected_draw=user.selected_draw, is_vip=is_vip,
        )
        if reason is None and draw.vip_only and not vip_draws_enabled:
            reason = "vip_draws_disabled"
        if reason is not None:
            logger.debug("Draw %s skipped for user %s: %s", draw_id, user.id, reason)
            continue

        count = entries_for_amount(usd_value, draw.min_amount)
        capacity = remaining_capacity(draw)
        if capacity is not None:
            count = min(count, capacity)
        if count <= 0:
            logger.debug("Draw %s skipped for user %s: full", draw_id, user.id)
            continue

        _credit(draw, user, count)
        granted[draw_id] = count
        logger.info("Added %d entries to draw %s for user %s", count, draw.name, user.id)

    return granted


def assign_manual_entries(draw: Draw, users: Iterable[User], count: int) -> int:
    """Give each of *users* ``count`` entries in *draw* (all-or-nothing).

    Manual assignment ignores ``manual_entries_only`` and amount bounds but
    still respects ``active`` and ``max_entries``.  Returns the total added.
    """
    targets = list(users)
    if not draw.active:
        raise DrawError("Cannot assign entries to an inactive draw.")
    if count <= 0:
        raise DrawError("Number of entries must be positive.")
    if not targets:
        raise DrawError("No users found to assign entries to.")

    total_new = count * len(targets)
    capacity = remaining_capacity(draw)
    if capacity is not None and total_new > capacity:
        raise DrawError(
            f"Cannot assign {total_new} entries. Draw only has {capacity} slots remaining."
        )

    for user in targets:
        _credit(draw, user, count)
    return total_new
