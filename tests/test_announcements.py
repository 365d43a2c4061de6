"""
tests/test_announcements.py — Notification Text Tests
======================================================
"""

from __future__ import annotations

from conftest import make_draw

from tipdraw.engine.rewards import RoleTransition
from tipdraw.services.admin_service import AnalyticsReport
from tipdraw.services.announcements import (
    format_achievements,
    format_analytics,
    format_donation,
    format_draw_line,
    format_entries,
    format_role_upgrade,
    format_winner,
)
from tipdraw.services.donation_service import DonationOutcome


def _outcome(**overrides) -> DonationOutcome:
    fields = dict(
        sender_id="111", usd_value=10.0, currency="LTC", original_amount=0.5,
        recipient="222", total_donated=25.0,
        grants={"draw_1": 2}, draw_names={"draw_1": "Weekly"},
    )
    fields.update(overrides)
    return DonationOutcome(**fields)


class TestFormatting:
    def test_donation(self):
        text = format_donation(_outcome())
        assert "<@111>" in text
        assert "0.5 LTC ($10.00)" in text
        assert "+2 entries in **Weekly**" in text
        assert "Total donated: $25.00" in text

    def test_donation_without_entries(self):
        assert "No draw entries" in format_donation(_outcome(grants={}, draw_names={}))

    def test_role_upgrade(self):
        change = RoleTransition(grant_role_id="5", role_name="Gold", old_total=40, new_total=60)
        assert "**Gold**" in format_role_upgrade("111", change)

    def test_achievements(self):
        text = format_achievements("111", ["first_steps", "unknown_key"])
        assert "**First Steps**" in text
        assert "unknown_key" in text

    def test_winner(self):
        draw = make_draw(name="Weekly", reward="$50", entries={"A": 3, "B": 1})
        text = format_winner(draw, "A")
        assert "<@A>" in text
        assert "3 of 4 entries (75.0%)" in text

    def test_draw_line(self):
        line = format_draw_line(make_draw(min_amount=5, max_entries=10, vip_only=True))
        assert "$5+" in line
        assert "0/10" in line
        assert "[VIP]" in line

    def test_entries_empty(self):
        assert format_entries([]) == "You have no draw entries yet."

    def test_analytics(self):
        report = AnalyticsReport(
            kind="overview", figures={"total_donated_usd": 12.5, "active_draws": 2},
        )
        text = format_analytics(report)
        assert text.splitlines() == [
            "📊 **Server Analytics** (overview)",
            "💰 Total Donations: $12.50",
            "✅ Active Draws: 2",
        ]
