"""
tipdraw.services.admin_service — Admin Mutation Service Layer
==============================================================

Every admin mutation is a plain function over a :class:`GuildState` that
the caller loaded inside ``store.transaction(guild_id)``.  Rule violations
come back as ``(False, message)`` so the cog can relay them verbatim;
success is ``(True, message)``.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from tipdraw.constants import DEFAULT_FEATURE_TOGGLES, DONOR_ROLE_PRESETS, FEATURE_NAMES
from tipdraw.engine.achievements import award_achievements, repair_achievements
from tipdraw.engine.allocation import DrawError, assign_manual_entries, total_entries
from tipdraw.engine.draws import select_winner
from tipdraw.engine.policy import clean_identifier, valid_recipients
from tipdraw.engine.state import DonorRole, Draw, GuildState

logger = logging.getLogger(__name__)

EDITABLE_DRAW_FIELDS: set[str] = {
    "name", "reward", "min_amount", "max_amount", "max_entries",
    "active", "manual_entries_only", "vip_only",
}
# Limits that edit_draw(clear=...) can reset to unbounded
CLEARABLE_DRAW_FIELDS: set[str] = {"max_amount", "max_entries"}

ANALYTICS_KINDS: tuple[str, ...] = ("overview", "donations", "draws", "users")


# ---------------------------------------------------------------------------
# Guild setup
# ---------------------------------------------------------------------------
def configure_guild(
    state: GuildState,
    *,
    admin_role_id: str,
    vip_role_id: str | None = None,
    notification_channel_id: str | None = None,
) -> tuple[bool, str]:
    config = state.config
    config.admin_role_id = admin_role_id
    if vip_role_id is not None:
        config.vip_role_id = vip_role_id
    if notification_channel_id is not None:
        config.notification_channel_id = notification_channel_id
    logger.info("Guild %d configured: admin role %s", state.guild_id, admin_role_id)
    return True, "Bot configuration saved."


# ---------------------------------------------------------------------------
# Draws
# ---------------------------------------------------------------------------
def _validate_bounds(
    min_amount: float, max_amount: float | None, max_entries: int | None
) -> None:
    if min_amount <= 0:
        raise DrawError("Minimum amount must be greater than zero.")
    if max_amount is not None and max_amount < min_amount:
        raise DrawError("Maximum amount cannot be below the minimum amount.")
    if max_entries is not None and max_entries <= 0:
        raise DrawError("Maximum entries must be positive.")


def _new_draw_id(state: GuildState, now: datetime) -> str:
    stamp = int(now.timestamp() * 1000)
    draw_id = f"draw_{stamp}"
    while draw_id in state.draws:
        stamp += 1
        draw_id = f"draw_{stamp}"
    return draw_id


def create_draw(
    state: GuildState,
    *,
    name: str,
    reward: str,
    min_amount: float,
    max_entries: int | None = None,
    max_amount: float | None = None,
    vip_only: bool = False,
    manual_entries_only: bool = False,
    created_by: str | None = None,
    now: datetime | None = None,
) -> Draw:
    """Create an active draw.  Raises :class:`DrawError` on invalid bounds."""
    _validate_bounds(min_amount, max_amount, max_entries)
    now = now or datetime.now(UTC)
    draw = Draw(
        id=_new_draw_id(state, now),
        name=name,
        reward=reward,
        min_amount=min_amount,
        max_amount=max_amount,
        max_entries=max_entries,
        vip_only=vip_only,
        manual_entries_only=manual_entries_only,
        active=True,
        created_by=created_by,
        created_at=now,
    )
    state.draws[draw.id] = draw
    logger.info("Draw created: %s (%s)", draw.id, name)
    return draw


def edit_draw(
    state: GuildState, draw_id: str, *, clear: Iterable[str] = (), **changes
) -> tuple[bool, str]:
    """Apply the non-``None`` *changes* to a draw.

    ``None`` means "leave unchanged", so the optional limits are reset to
    unbounded by naming them in *clear* instead.  A closed draw (one with a
    winner) cannot be reactivated, and ``max_entries`` cannot drop below the
    entries the draw already holds.
    """
    draw = state.draws.get(draw_id)
    if draw is None:
        return False, "Draw not found."

    unknown = set(changes) - EDITABLE_DRAW_FIELDS
    if unknown:
        return False, f"Unknown draw fields: {', '.join(sorted(unknown))}"

    updates = {k: v for k, v in changes.items() if v is not None}
    cleared = set(clear)
    not_clearable = cleared - CLEARABLE_DRAW_FIELDS
    if not_clearable:
        return False, f"Cannot clear: {', '.join(sorted(not_clearable))}"
    if cleared & updates.keys():
        return False, "A field cannot be both set and cleared."
    updates.update(dict.fromkeys(cleared))

    if updates.get("active") and draw.winner is not None:
        return False, "A draw with a winner cannot be reactivated."

    try:
        _validate_bounds(
            updates.get("min_amount", draw.min_amount),
            updates.get("max_amount", draw.max_amount),
            updates.get("max_entries", draw.max_entries),
        )
    except DrawError as exc:
        return False, str(exc)

    allocated = total_entries(draw)
    new_cap = updates.get("max_entries")
    if new_cap is not None and new_cap < allocated:
        return False, f"Maximum entries cannot be below the {allocated} entries already allocated."

    for key, value in updates.items():
        setattr(draw, key, value)
    logger.info("Draw edited: %s (%s)", draw_id, ", ".join(sorted(updates)) or "no changes")
    return True, f"{draw.name} has been updated."


def pick_winner(
    state: GuildState, draw_id: str, *, rng: random.Random | None = None
) -> tuple[bool, str, str | None]:
    """Close a draw and pick its winner.  Returns ``(ok, message, winner_id)``."""
    draw = state.draws.get(draw_id)
    if draw is None:
        return False, "Draw not found.", None
    try:
        winner_id = select_winner(draw, state.users, rng=rng)
    except DrawError as exc:
        return False, str(exc), None

    if state.config.feature_enabled("achievementSystem"):
        award_achievements(state.users[winner_id], state)
    return True, f"{draw.name} has a winner!", winner_id


def assign_entries(
    state: GuildState, draw_id: str, user_ids: Iterable[str], count: int
) -> tuple[bool, str]:
    draw = state.draws.get(draw_id)
    if draw is None:
        return False, "Draw not found."
    users = [state.get_or_create_user(uid) for uid in dict.fromkeys(user_ids)]
    try:
        added = assign_manual_entries(draw, users, count)
    except DrawError as exc:
        return False, str(exc)
    logger.info(
        "Manual entries assigned: %d each to %d users for draw %s", count, len(users), draw_id,
    )
    return True, f"Assigned {count} entries each to {len(users)} user(s) ({added} total)."


# ---------------------------------------------------------------------------
# Allowed recipients
# ---------------------------------------------------------------------------
def add_recipient(state: GuildState, recipient: str) -> tuple[bool, str]:
    recipient = recipient.strip()
    if not recipient:
        return False, "Recipient cannot be empty."
    recipients = state.config.allowed_recipients
    if recipient in recipients:
        return False, f"{recipient} is already an allowed recipient."
    recipients.append(recipient)
    return True, f"{recipient} added to allowed recipients."


def remove_recipient(state: GuildState, recipient: str) -> tuple[bool, str]:
    recipients = state.config.allowed_recipients
    if recipient not in recipients:
        return False, f"{recipient} is not in the allowed recipients list."
    recipients.remove(recipient)
    return True, f"{recipient} removed from allowed recipients."


def clean_recipients(state: GuildState) -> tuple[int, int]:
    """Drop malformed allow-list entries.  Returns ``(before, removed)``."""
    before = len(state.config.allowed_recipients)
    state.config.allowed_recipients = list(valid_recipients(state.config.allowed_recipients))
    removed = before - len(state.config.allowed_recipients)
    logger.info("Recipients cleaned: removed %d invalid entries", removed)
    return before, removed


# ---------------------------------------------------------------------------
# Accepted cryptocurrencies
# ---------------------------------------------------------------------------
def add_currency(state: GuildState, symbol: str) -> tuple[bool, str]:
    symbol = symbol.strip().upper()
    if not symbol:
        return False, "Please specify a currency symbol to add."
    current = state.config.currencies
    if symbol in current:
        return False, f"{symbol} is already in the accepted list."
    state.config.accepted_cryptocurrencies = [*current, symbol]
    return True, f"{symbol} has been added to the accepted cryptocurrencies list."


def remove_currency(state: GuildState, symbol: str) -> tuple[bool, str]:
    symbol = symbol.strip().upper()
    current = state.config.currencies
    if symbol not in current:
        return False, f"{symbol} is not in the accepted list."
    state.config.accepted_cryptocurrencies = [c for c in current if c != symbol]
    return True, f"{symbol} has been removed from the accepted cryptocurrencies list."


def reset_currencies(state: GuildState) -> list[str]:
    state.config.accepted_cryptocurrencies = None
    return state.config.currencies


# ---------------------------------------------------------------------------
# Feature toggles
# ---------------------------------------------------------------------------
def set_feature(state: GuildState, feature: str, enabled: bool) -> tuple[bool, str]:
    if feature not in DEFAULT_FEATURE_TOGGLES:
        return False, f"Unknown feature: {feature}"
    state.config.feature_toggles[feature] = enabled
    label = FEATURE_NAMES.get(feature, feature)
    return True, f"{label} has been {'enabled' if enabled else 'disabled'}."


# ---------------------------------------------------------------------------
# Donor roles
# ---------------------------------------------------------------------------
def add_donor_role(
    state: GuildState,
    *,
    role_id: str,
    name: str,
    min_amount: float,
    max_amount: float | None = None,
) -> tuple[bool, str]:
    if min_amount < 0:
        return False, "Minimum amount cannot be negative."
    if max_amount is not None and max_amount < min_amount:
        return False, "Maximum amount cannot be below the minimum amount."
    state.config.donor_roles[role_id] = DonorRole(
        role_id=role_id, name=name, min_amount=min_amount, max_amount=max_amount,
    )
    upper = f" - ${max_amount:g}" if max_amount is not None else "+"
    return True, f"Added donor role: {name} - ${min_amount:g}{upper}"


def remove_donor_role(state: GuildState, role_id: str) -> tuple[bool, str]:
    role = state.config.donor_roles.pop(role_id, None)
    if role is None:
        return False, "That role was not configured as a donor role."
    return True, f"Removed donor role: {role.name}"


def reset_donor_roles(state: GuildState) -> None:
    state.config.donor_roles = {}


def auto_setup_donor_roles(
    state: GuildState, guild_roles: Iterable[tuple[str, str]]
) -> list[DonorRole]:
    """Bind the preset tier ladder to existing roles by name.

    Best-effort: a role matches a preset when its name contains the preset's
    name (``"Gold Donor 🥇"`` matches ``gold donor``), case-insensitively.
    Renamed or translated roles will simply not be found.
    """
    roles = list(guild_roles)
    configured: list[DonorRole] = []
    for fragment, min_amount, max_amount in DONOR_ROLE_PRESETS:
        found = next(
            ((rid, rname) for rid, rname in roles if fragment in rname.lower()),
            None,
        )
        if found is None:
            continue
        role = DonorRole(
            role_id=found[0], name=found[1], min_amount=min_amount, max_amount=max_amount,
        )
        state.config.donor_roles[role.role_id] = role
        configured.append(role)
    logger.info("Auto-configured %d donor roles for guild %d", len(configured), state.guild_id)
    return configured


# ---------------------------------------------------------------------------
# Achievement repair
# ---------------------------------------------------------------------------
def fix_achievements(state: GuildState, user_id: str | None = None) -> tuple[int, int]:
    """Re-run achievement checks.  Returns ``(users_processed, achievements_fixed)``."""
    fixed = repair_achievements(state, user_id)
    total = sum(fixed.values())
    logger.info("Achievement fix completed: %d achievements for %d users", total, len(fixed))
    return len(fixed), total


def find_recipient_conflicts(state: GuildState) -> list[tuple[str, str]]:
    """Pairs of allow-list entries where one cleaned form contains the other.

    Containment matching means ``bob`` already admits ``bobby``; this helps
    admins spot entries that are broader than intended.
    """
    entries = list(valid_recipients(state.config.allowed_recipients))
    conflicts: list[tuple[str, str]] = []
    for i, a in enumerate(entries):
        for b in entries[i + 1:]:
            ca, cb = clean_identifier(a), clean_identifier(b)
            if ca and cb and (ca in cb or cb in ca):
                conflicts.append((a, b))
    return conflicts


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AnalyticsReport:
    """Read-only guild figures for one analytics view.

    ``figures`` keeps insertion order so the cog can render it as-is;
    keys ending in ``_usd`` are dollar amounts, everything else is a count.
    """

    kind: str
    figures: dict[str, float | int]


def _average(total: float, count: int) -> float:
    return total / count if count else 0.0


def analytics(state: GuildState, kind: str = "overview") -> AnalyticsReport:
    """Aggregate the guild's users and draws for the *kind* view.

    Raises
    ------
    ValueError
        *kind* is not one of :data:`ANALYTICS_KINDS`.
    """
    users = list(state.users.values())
    draws = list(state.draws.values())
    active_draws = sum(1 for d in draws if d.active)

    if kind == "overview":
        donated = sum(u.total_donated for u in users)
        figures: dict[str, float | int] = {
            "total_donated_usd": donated,
            "average_per_user_usd": _average(donated, len(users)),
            "total_draws": len(draws),
            "active_draws": active_draws,
            "users": len(users),
        }
    elif kind == "donations":
        amounts = [d.amount for u in users for d in u.donations]
        figures = {
            "donations": len(amounts),
            "total_amount_usd": sum(amounts),
            "average_donation_usd": _average(sum(amounts), len(amounts)),
        }
    elif kind == "draws":
        figures = {
            "total_draws": len(draws),
            "active_draws": active_draws,
            "completed_draws": sum(1 for d in draws if not d.active and d.winner is not None),
            "total_entries": sum(total_entries(d) for d in draws),
        }
    elif kind == "users":
        figures = {
            "users": len(users),
            "donors": sum(1 for u in users if u.total_donated > 0),
            "total_wins": sum(u.wins for u in users),
        }
    else:
        raise ValueError(f"Unknown analytics type: {kind}")

    return AnalyticsReport(kind=kind, figures=figures)
