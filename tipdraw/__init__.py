"""
TipDraw — Donation-Driven Draws for Discord
============================================
Watches tip.cc payment announcements, converts the tipped amount to USD,
and turns it into draw entries, donor-tier roles, streaks, and achievements.

Package layout::

    tipdraw/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Defaults shared by engine, services, and bot
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # guild_documents table
    ├── engine/
    │   ├── state.py       # GuildState / User / Draw dataclasses + codec
    │   ├── parser.py      # tip.cc message grammars
    │   ├── policy.py      # Recipient allow-list + accepted currencies
    │   ├── pricing.py     # Embedded price + CoinGecko/Paprika/CMC fallback
    │   ├── allocation.py  # Draw entry allocation
    │   ├── rewards.py     # Donor tiers + donation streaks
    │   ├── achievements.py # Achievement catalog + checks
    │   └── draws.py       # Weighted winner selection
    ├── services/
    │   ├── store.py           # Per-guild document store + locking
    │   ├── donation_service.py # Tip message → persisted donation
    │   ├── admin_service.py   # Draw / recipient / role administration
    │   ├── member_service.py  # Member self-service
    │   └── announcements.py   # Plain-text notifications
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        └── cogs/
            ├── tips.py    # on_message tip listener
            ├── admin.py   # /draw-*, /recipients, /donor-roles, ...
            └── members.py # /select-draw, /entries, /referred-by, ...
"""

__version__ = "0.1.0"
