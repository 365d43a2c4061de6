"""
tests/test_donation_service.py — Donation Pipeline Tests
=========================================================

End-to-end runs of :func:`process_tip_message` against an in-memory SQLite
store, with the price resolver and member lookup stubbed.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import NOW, make_draw, run_async

from tipdraw.engine.parser import parse_donation
from tipdraw.engine.pricing import PriceResolver
from tipdraw.engine.state import DonorRole, GuildState
from tipdraw.services.donation_service import (
    DonorMember,
    apply_donation,
    process_tip_message,
)
from tipdraw.services.store import GuildStore

GUILD = 100
TIP = "<:LTC:123> <@111> sent <@222> **0.5 LTC** (≈ $10.00)."


@pytest.fixture
def store(db_engine) -> GuildStore:
    store = GuildStore(db_engine)
    state = GuildState(guild_id=GUILD)
    state.config.allowed_recipients = ["222"]
    state.draws["draw_1"] = make_draw(min_amount=5)
    store.save(state)
    return store


def _resolver(value: float | None = 10.0) -> MagicMock:
    resolver = MagicMock(spec=PriceResolver)
    resolver.resolve_usd_value = AsyncMock(return_value=value)
    return resolver


def _lookup(member: DonorMember | None = DonorMember(id="111")) -> AsyncMock:
    return AsyncMock(return_value=member)


class TestProcessTipMessage:
    def test_end_to_end(self, store):
        outcome = run_async(process_tip_message(
            store, _resolver(), GUILD, TIP, _lookup(), now=NOW,
        ))
        assert outcome is not None
        assert outcome.grants == {"draw_1": 2}
        assert outcome.entries_added == 2
        assert outcome.total_donated == pytest.approx(10.0)
        assert outcome.achievements == ["first_steps"]

        saved = store.load(GUILD)
        user = saved.users["111"]
        assert user.total_donated == pytest.approx(10.0)
        assert user.entries == {"draw_1": 2}
        assert saved.draws["draw_1"].entries == {"111": 2}
        assert user.donations[0].currency == "LTC"
        assert user.donations[0].recipient == "222"
        assert user.streak.current == 1

    def test_lookup_receives_sender_token(self, store):
        lookup = _lookup()
        run_async(process_tip_message(store, _resolver(), GUILD, TIP, lookup))
        lookup.assert_awaited_once_with("111")

    def test_non_tip_is_dropped(self, store):
        resolver = _resolver()
        assert run_async(process_tip_message(
            store, resolver, GUILD, "balance: 1 LTC", _lookup(),
        )) is None
        resolver.resolve_usd_value.assert_not_awaited()

    def test_ineligible_recipient_is_dropped(self, store):
        text = "<:LTC:123> <@111> sent <@333> **0.5 LTC** (≈ $10.00)."
        resolver = _resolver()
        assert run_async(process_tip_message(store, resolver, GUILD, text, _lookup())) is None
        resolver.resolve_usd_value.assert_not_awaited()
        assert store.load(GUILD).users == {}

    def test_unaccepted_currency_is_dropped(self, store):
        text = "<:X:1> <@111> sent <@222> **5 PEPE** (≈ $10.00)."
        assert run_async(process_tip_message(store, _resolver(), GUILD, text, _lookup())) is None

    def test_price_unavailable_leaves_state_untouched(self, store):
        before = store.load(GUILD)
        assert run_async(process_tip_message(
            store, _resolver(None), GUILD, TIP, _lookup(),
        )) is None
        assert store.load(GUILD) == before

    def test_unknown_sender_leaves_state_untouched(self, store):
        before = store.load(GUILD)
        assert run_async(process_tip_message(
            store, _resolver(), GUILD, TIP, _lookup(None),
        )) is None
        assert store.load(GUILD) == before

    def test_containment_match_on_usernames(self, db_engine):
        store = GuildStore(db_engine)
        state = GuildState(guild_id=7)
        state.config.allowed_recipients = ["bob"]
        store.save(state)
        outcome = run_async(process_tip_message(
            store, _resolver(3.0), 7, "💰 @alice sent @bobby 1 DOGE (≈ $3.00).",
            _lookup(DonorMember(id="555")),
        ))
        assert outcome is not None
        assert outcome.recipient == "bobby"
        assert store.load(7).users["555"].total_donated == pytest.approx(3.0)


class TestApplyDonation:
    def _tip(self):
        return parse_donation(TIP)

    def test_input_state_is_not_mutated(self):
        state = GuildState(guild_id=1)
        state.draws["draw_1"] = make_draw(min_amount=5)
        new_state, _ = apply_donation(state, self._tip(), 10.0, sender_id="111", now=NOW)
        assert state.users == {}
        assert state.draws["draw_1"].entries == {}
        assert new_state.users["111"].entries == {"draw_1": 2}

    def test_vip_role_unlocks_vip_draws(self):
        state = GuildState(guild_id=1)
        state.config.vip_role_id = "900"
        state.draws["draw_vip"] = make_draw("draw_vip", min_amount=5, vip_only=True)
        _, plain = apply_donation(state, self._tip(), 10.0, sender_id="111", now=NOW)
        _, vip = apply_donation(
            state, self._tip(), 10.0, sender_id="111", held_role_ids={"900"}, now=NOW,
        )
        assert plain.grants == {}
        assert vip.grants == {"draw_vip": 2}

    def test_vip_draws_need_a_configured_vip_role(self):
        state = GuildState(guild_id=1)
        state.draws["draw_vip"] = make_draw("draw_vip", min_amount=5, vip_only=True)
        _, outcome = apply_donation(
            state, self._tip(), 10.0, sender_id="111", held_role_ids={"900"}, now=NOW,
        )
        assert outcome.grants == {}

    def test_role_change_reported(self):
        state = GuildState(guild_id=1)
        state.config.donor_roles["10"] = DonorRole(role_id="10", name="Bronze", min_amount=5, max_amount=25)
        _, outcome = apply_donation(state, self._tip(), 10.0, sender_id="111", now=NOW)
        assert outcome.role_change is not None
        assert outcome.role_change.grant_role_id == "10"

    def test_achievements_respect_toggle(self):
        state = GuildState(guild_id=1)
        state.config.feature_toggles["achievementSystem"] = False
        new_state, outcome = apply_donation(state, self._tip(), 10.0, sender_id="111", now=NOW)
        assert outcome.achievements == []
        assert new_state.users["111"].achievements == []

    def test_streak_advances_across_donations(self):
        state = GuildState(guild_id=1)
        state, _ = apply_donation(state, self._tip(), 1.0, sender_id="111", now=NOW)
        state, _ = apply_donation(
            state, self._tip(), 1.0, sender_id="111", now=NOW + timedelta(hours=2),
        )
        assert state.users["111"].streak.current == 2
        assert len(state.users["111"].donations) == 2
