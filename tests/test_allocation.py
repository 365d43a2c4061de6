"""
tests/test_allocation.py — Draw Entry Allocation Tests
=======================================================
"""

from __future__ import annotations

import pytest
from conftest import make_draw

from tipdraw.engine.allocation import (
    DrawError,
    allocate_entries,
    assign_manual_entries,
    entries_for_amount,
    ineligibility_reason,
    remaining_capacity,
    total_entries,
)
from tipdraw.engine.state import User


def _draws(*draws):
    return {d.id: d for d in draws}


class TestEntriesForAmount:
    @pytest.mark.parametrize("usd, minimum, expected", [
        (10.0, 5.0, 2),
        (14.99, 5.0, 2),
        (4.99, 5.0, 0),
        (0.3, 0.1, 3),
        (1.0, 0.0, 0),
    ])
    def test_floor(self, usd, minimum, expected):
        assert entries_for_amount(usd, minimum) == expected


class TestIneligibility:
    def test_order_of_checks(self):
        draw = make_draw(active=False, min_amount=0)
        assert ineligibility_reason(draw, 10) == "inactive"
        draw.active = True
        assert ineligibility_reason(draw, 10) == "invalid_min_amount"

    def test_amount_bounds(self):
        draw = make_draw(min_amount=5, max_amount=20)
        assert ineligibility_reason(draw, 4) == "below_min"
        assert ineligibility_reason(draw, 21) == "above_max"
        assert ineligibility_reason(draw, 20) is None

    def test_manual_only_and_vip(self):
        assert ineligibility_reason(make_draw(manual_entries_only=True), 10) == "manual_only"
        assert ineligibility_reason(make_draw(vip_only=True), 10) == "vip_only"
        assert ineligibility_reason(make_draw(vip_only=True), 10, is_vip=True) is None

    def test_selected_draw(self):
        draw = make_draw("draw_a")
        assert ineligibility_reason(draw, 10, selected_draw="draw_b") == "not_selected"
        assert ineligibility_reason(draw, 10, selected_draw="draw_a") is None
        assert ineligibility_reason(draw, 10, selected_draw="auto") is None


class TestAllocateEntries:
    def test_grants_floor_entries_and_updates_both_ledgers(self):
        user = User(id="111")
        draw = make_draw(min_amount=5)
        granted = allocate_entries(user, 12.0, _draws(draw))
        assert granted == {"draw_1": 2}
        assert draw.entries == {"111": 2}
        assert user.entries == {"draw_1": 2}

    def test_accumulates_across_donations(self):
        user = User(id="111")
        draw = make_draw(min_amount=5)
        allocate_entries(user, 10.0, _draws(draw))
        allocate_entries(user, 5.0, _draws(draw))
        assert draw.entries["111"] == 3
        assert user.entries["draw_1"] == 3

    def test_capacity_clamp(self):
        user = User(id="111")
        draw = make_draw(min_amount=1, max_entries=10, entries={"999": 8})
        assert allocate_entries(user, 5.0, _draws(draw)) == {"draw_1": 2}
        assert total_entries(draw) == 10
        assert remaining_capacity(draw) == 0

    def test_full_draw_is_skipped_without_mutation(self):
        user = User(id="111")
        draw = make_draw(min_amount=1, max_entries=3, entries={"999": 3})
        assert allocate_entries(user, 5.0, _draws(draw)) == {}
        assert "111" not in draw.entries
        assert user.entries == {}

    def test_one_donation_enters_several_draws(self):
        user = User(id="111")
        small = make_draw("draw_small", min_amount=1)
        big = make_draw("draw_big", min_amount=10)
        assert allocate_entries(user, 10.0, _draws(small, big)) == {"draw_small": 10, "draw_big": 1}

    def test_selected_draw_restricts_allocation(self):
        user = User(id="111", selected_draw="draw_big")
        small = make_draw("draw_small", min_amount=1)
        big = make_draw("draw_big", min_amount=10)
        assert allocate_entries(user, 10.0, _draws(small, big)) == {"draw_big": 1}

    def test_vip_draws(self):
        vip = make_draw("draw_vip", min_amount=1, vip_only=True)
        assert allocate_entries(User(id="1"), 2.0, _draws(vip)) == {}
        assert allocate_entries(User(id="2"), 2.0, _draws(vip), is_vip=True) == {"draw_vip": 2}
        assert allocate_entries(
            User(id="3"), 2.0, _draws(vip), is_vip=True, vip_draws_enabled=False,
        ) == {}

    def test_manual_only_and_inactive_draws_get_nothing(self):
        user = User(id="111")
        manual = make_draw("draw_manual", min_amount=1, manual_entries_only=True)
        closed = make_draw("draw_closed", min_amount=1, active=False)
        zero = make_draw("draw_zero", min_amount=0)
        assert allocate_entries(user, 50.0, _draws(manual, closed, zero)) == {}

    def test_binary_float_edge(self):
        user = User(id="111")
        draw = make_draw(min_amount=0.1)
        assert allocate_entries(user, 0.3, _draws(draw)) == {"draw_1": 3}


class TestManualEntries:
    def test_all_users_credited(self):
        draw = make_draw(min_amount=5, manual_entries_only=True, max_entries=10)
        users = [User(id="1"), User(id="2")]
        assert assign_manual_entries(draw, users, 3) == 6
        assert draw.entries == {"1": 3, "2": 3}
        assert users[0].entries == {"draw_1": 3}

    def test_over_capacity_is_all_or_nothing(self):
        draw = make_draw(max_entries=5, entries={"9": 1})
        users = [User(id="1"), User(id="2")]
        with pytest.raises(DrawError, match="4 slots remaining"):
            assign_manual_entries(draw, users, 3)
        assert draw.entries == {"9": 1}
        assert users[0].entries == {}

    @pytest.mark.parametrize("draw_kwargs, users, count", [
        ({"active": False}, [User(id="1")], 1),
        ({}, [User(id="1")], 0),
        ({}, [], 1),
    ])
    def test_rejections(self, draw_kwargs, users, count):
        with pytest.raises(DrawError):
            assign_manual_entries(make_draw(**draw_kwargs), users, count)
