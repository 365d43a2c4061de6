"""
tipdraw.constants — Shared Constants
=====================================

Single source of truth for defaults used by the engine, services, and bot.
"""

from __future__ import annotations

# Discord user id of the tip.cc bot
TIPCC_BOT_ID = 617037497574359050

# Used when a guild has never configured its own accepted list
DEFAULT_ACCEPTED_CRYPTOCURRENCIES: tuple[str, ...] = (
    "BTC", "ETH", "LTC", "SOL", "USDT", "USDC", "XRP",
    "DOGE", "SHIB", "BNB", "ADA", "AVAX", "TON", "TRX",
)

DEFAULT_FEATURE_TOGGLES: dict[str, bool] = {
    "vipDraws": True,
    "achievementSystem": True,
    "seasonalLeaderboards": True,
    "drawNotifications": True,
    "anonymousMode": True,
    "automatedDraws": True,
}

FEATURE_NAMES: dict[str, str] = {
    "vipDraws": "VIP Draws",
    "achievementSystem": "Achievement System",
    "seasonalLeaderboards": "Seasonal Leaderboards",
    "drawNotifications": "Draw Notifications",
    "anonymousMode": "Privacy Controls",
    "automatedDraws": "Automated Draws",
}

# Sentinel for User.selected_draw meaning "every eligible draw"
AUTO_DRAW = "auto"

# Donor role ladder for auto-setup: (name fragment, min USD, max USD or None)
DONOR_ROLE_PRESETS: list[tuple[str, float, float | None]] = [
    ("bronze donor", 5, 25),
    ("silver donor", 26, 50),
    ("gold donor", 51, 100),
    ("platinum donor", 101, 250),
    ("diamond donor", 251, 500),
    ("onyx donor", 500, None),
]
