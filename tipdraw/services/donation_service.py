"""
tipdraw.services.donation_service — Tip Message → Persisted Donation
=====================================================================

Shared service callable from the tip listener (and tests) that runs the
full pipeline for one tip.cc message:

  1. Parse the message (no match → drop)
  2. Under the guild lock: load state
  3. Recipient / currency policy (ineligible → drop)
  4. Resolve the USD value (unavailable → abort)
  5. Resolve the sender to a guild member (unknown → abort)
  6. Apply the donation to a copy of the state
  7. Save

Aborted tips never reach step 7, so a failure leaves the stored document
exactly as it was.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from tipdraw.database.engine import run_db
from tipdraw.engine.achievements import award_achievements
from tipdraw.engine.allocation import allocate_entries
from tipdraw.engine.parser import ParsedTip, parse_donation
from tipdraw.engine.policy import is_accepted_currency, is_allowed_recipient
from tipdraw.engine.rewards import RoleTransition, resolve_tier_change, update_streak
from tipdraw.engine.state import Donation, GuildState

if TYPE_CHECKING:
    from tipdraw.engine.pricing import PriceResolver
    from tipdraw.services.store import GuildStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DonorMember:
    """The guild member a tip's sender resolved to."""

    id: str
    role_ids: frozenset[str] = frozenset()


MemberLookup = Callable[[str], Awaitable[DonorMember | None]]


@dataclass
class DonationOutcome:
    """Everything the caller needs to notify about one processed donation."""

    sender_id: str
    usd_value: float
    currency: str
    original_amount: float
    recipient: str
    total_donated: float
    grants: dict[str, int] = field(default_factory=dict)
    draw_names: dict[str, str] = field(default_factory=dict)
    role_change: RoleTransition | None = None
    achievements: list[str] = field(default_factory=list)

    @property
    def entries_added(self) -> int:
        return sum(self.grants.values())


def apply_donation(
    state: GuildState,
    tip: ParsedTip,
    usd_value: float,
    *,
    sender_id: str,
    held_role_ids: Collection[str] = (),
    now: datetime | None = None,
) -> tuple[GuildState, DonationOutcome]:
    """Apply one valued donation and return ``(new_state, outcome)``.

    *state* itself is not modified; the returned state is a deep copy with
    the user's totals, streak, achievements and draw entries updated.
    """
    now = now or datetime.now(UTC)
    new_state = copy.deepcopy(state)
    config = new_state.config
    user = new_state.get_or_create_user(sender_id)

    old_total = user.total_donated
    user.total_donated += usd_value
    user.donations.append(Donation(
        amount=usd_value,
        currency=tip.currency,
        original_amount=float(tip.amount),
        timestamp=now,
        recipient=tip.recipient,
    ))
    update_streak(user.streak, now)

    role_change = resolve_tier_change(
        config.donor_roles, old_total, user.total_donated, set(held_role_ids),
    )

    achievements: list[str] = []
    if config.feature_enabled("achievementSystem"):
        achievements = award_achievements(user, new_state)

    is_vip = config.vip_role_id is not None and config.vip_role_id in held_role_ids
    grants = allocate_entries(
        user,
        usd_value,
        new_state.draws,
        is_vip=is_vip,
        vip_draws_enabled=config.feature_enabled("vipDraws"),
    )

    outcome = DonationOutcome(
        sender_id=user.id,
        usd_value=usd_value,
        currency=tip.currency,
        original_amount=float(tip.amount),
        recipient=tip.recipient,
        total_donated=user.total_donated,
        grants=grants,
        draw_names={d: new_state.draws[d].name for d in grants},
        role_change=role_change,
        achievements=achievements,
    )
    return new_state, outcome


async def process_tip_message(
    store: GuildStore,
    resolver: PriceResolver,
    guild_id: int,
    content: str,
    find_member: MemberLookup,
    *,
    now: datetime | None = None,
) -> DonationOutcome | None:
    """Run the full pipeline for one tip.cc message.

    Returns the :class:`DonationOutcome`, or ``None`` when the message was
    dropped or the donation was abandoned.
    """
    logger.info("Processing tip.cc message: %r", content)

    tip = parse_donation(content)
    if tip is None:
        logger.info("No tip match found in message: %r", content)
        return None

    logger.info(
        "Detected tip: %s sent %s %s to %s", tip.sender, tip.amount, tip.currency, tip.recipient,
    )

    async with store.lock(guild_id):
        state = await run_db(store.load, guild_id)
        config = state.config

        if not is_allowed_recipient(tip.recipient, config):
            logger.info("Recipient %s is not an allowed recipient", tip.recipient)
            return None
        if not is_accepted_currency(tip.currency, config):
            logger.info("Currency %s not accepted", tip.currency)
            return None

        usd_value = await resolver.resolve_usd_value(content, tip.currency, float(tip.amount))
        if usd_value is None:
            logger.error("Could not get USD value for %s %s", tip.amount, tip.currency)
            return None

        member = await find_member(tip.sender)
        if member is None:
            logger.error("Could not find sender %s in guild %d", tip.sender, guild_id)
            return None

        logger.info("Processing donation: $%.2f USD from %s", usd_value, member.id)
        new_state, outcome = apply_donation(
            state,
            tip,
            usd_value,
            sender_id=member.id,
            held_role_ids=member.role_ids,
            now=now,
        )
        await run_db(store.save, new_state)

    logger.info(
        "Processed donation: %s -> $%.2f (%d entries)",
        member.id, usd_value, outcome.entries_added,
    )
    return outcome
