"""
tipdraw.services.announcements — Notification Text
===================================================

Pure formatters: outcome objects in, message text out.  The cogs decide
where (and whether) to post.
"""

from __future__ import annotations

from tipdraw.engine.achievements import ACHIEVEMENTS
from tipdraw.engine.draws import win_chance
from tipdraw.engine.rewards import RoleTransition
from tipdraw.engine.state import Draw
from tipdraw.services.admin_service import AnalyticsReport
from tipdraw.services.donation_service import DonationOutcome
from tipdraw.services.member_service import DrawStanding


def _mention(user_id: str) -> str:
    return f"<@{user_id}>"


def format_donation(outcome: DonationOutcome) -> str:
    lines = [
        f"🎉 Thank you {_mention(outcome.sender_id)} for donating "
        f"{outcome.original_amount:g} {outcome.currency} (${outcome.usd_value:.2f})!"
    ]
    for draw_id, count in outcome.grants.items():
        name = outcome.draw_names.get(draw_id, draw_id)
        noun = "entry" if count == 1 else "entries"
        lines.append(f"🎟️ +{count} {noun} in **{name}**")
    if not outcome.grants:
        lines.append("No draw entries this time; check `/draws` for minimums.")
    lines.append(f"Total donated: ${outcome.total_donated:.2f}")
    return "\n".join(lines)


def format_role_upgrade(user_id: str, transition: RoleTransition) -> str:
    return (
        f"⭐ {_mention(user_id)} is now a **{transition.role_name}**! "
        f"(${transition.old_total:.2f} → ${transition.new_total:.2f})"
    )


def format_achievements(user_id: str, keys: list[str]) -> str:
    lines = [f"🏆 {_mention(user_id)} unlocked:"]
    for key in keys:
        achievement = ACHIEVEMENTS.get(key)
        if achievement is None:
            lines.append(f"• {key}")
        else:
            lines.append(f"• **{achievement.name}**: {achievement.description}")
    return "\n".join(lines)


def format_winner(draw: Draw, winner_id: str) -> str:
    chance = win_chance(draw, winner_id) * 100
    return (
        f"🎊 **{draw.name}** winner: {_mention(winner_id)}!\n"
        f"Reward: {draw.reward}\n"
        f"Won with {draw.entries.get(winner_id, 0)} of "
        f"{sum(draw.entries.values())} entries ({chance:.1f}%)"
    )


def format_draw_line(draw: Draw) -> str:
    bounds = f"${draw.min_amount:g}"
    if draw.max_amount is not None:
        bounds += f" - ${draw.max_amount:g}"
    else:
        bounds += "+"
    total = sum(draw.entries.values())
    cap = f"{total}/{draw.max_entries}" if draw.max_entries is not None else str(total)
    flags = []
    if draw.vip_only:
        flags.append("VIP")
    if draw.manual_entries_only:
        flags.append("manual")
    if not draw.active:
        flags.append("closed")
    suffix = f" [{', '.join(flags)}]" if flags else ""
    return f"`{draw.id}` **{draw.name}** ({bounds} per entry, {cap} entries){suffix}"


def format_entries(standings: list[DrawStanding]) -> str:
    if not standings:
        return "You have no draw entries yet."
    return "\n".join(
        f"**{s.draw_name}**: {s.entries} entries ({s.win_chance * 100:.1f}% chance)"
        + ("" if s.active else " [closed]")
        for s in standings
    )


_ANALYTICS_LABELS: dict[str, str] = {
    "total_donated_usd": "💰 Total Donations",
    "average_per_user_usd": "📈 Average per User",
    "total_draws": "🎁 Total Draws",
    "active_draws": "✅ Active Draws",
    "completed_draws": "🏆 Completed Draws",
    "total_entries": "🎟️ Total Entries",
    "users": "👥 Users",
    "donors": "💸 Donors",
    "total_wins": "🏆 Total Wins",
    "donations": "📊 Donations",
    "total_amount_usd": "💵 Total Amount",
    "average_donation_usd": "📈 Average Donation",
}


def format_analytics(report: AnalyticsReport) -> str:
    lines = [f"📊 **Server Analytics** ({report.kind})"]
    for key, value in report.figures.items():
        label = _ANALYTICS_LABELS.get(key, key)
        shown = f"${value:.2f}" if key.endswith("_usd") else str(value)
        lines.append(f"{label}: {shown}")
    return "\n".join(lines)
