"""
tipdraw.bot.core — TipDrawBot
==============================

``commands.Bot`` subclass holding what every cog needs:

* ``bot.cfg`` — :class:`TipDrawConfig` from ``config.yaml``
* ``bot.engine`` — SQLAlchemy engine
* ``bot.store`` — :class:`GuildStore` over ``guild_documents``
* ``bot.resolver`` — :class:`PriceResolver` used by the tip listener

Cogs in :data:`EXTENSIONS` are loaded in ``setup_hook``; slash commands are
synced once the gateway is ready (to ``DEV_GUILD_ID`` only, when set, so
changes show up immediately while developing).
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from tipdraw.config import TipDrawConfig
from tipdraw.engine.pricing import PriceResolver
from tipdraw.services.store import GuildStore

logger = logging.getLogger(__name__)

EXTENSIONS: list[str] = [
    "tipdraw.bot.cogs.tips",
    "tipdraw.bot.cogs.admin",
    "tipdraw.bot.cogs.members",
]


def build_intents() -> discord.Intents:
    """Default intents plus the two privileged ones the bot relies on.

    MESSAGE_CONTENT: tip.cc announcements are parsed from message text.
    GUILD_MEMBERS: senders named by username are looked up in the member list.
    """
    intents = discord.Intents.default()
    intents.message_content = True
    intents.members = True
    return intents


class TipDrawBot(commands.Bot):
    def __init__(self, cfg: TipDrawConfig, engine: Engine) -> None:
        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=build_intents(),
            description=f"{cfg.community_name} donation draws",
        )
        self.cfg = cfg
        self.engine = engine
        self.store = GuildStore(engine)
        self.resolver = PriceResolver(timeout=cfg.price_timeout_seconds)

    async def setup_hook(self) -> None:
        # One broken cog should not keep the others from loading
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
            except commands.ExtensionError:
                logger.exception("Failed to load extension %s", ext)
            else:
                logger.info("Loaded extension: %s", ext)

    async def on_ready(self) -> None:
        assert self.user is not None
        logger.info(
            "Logged in as %s (ID: %s) in %d guild(s); tip bot is %d",
            self.user.name, self.user.id, len(self.guilds), self.cfg.tip_bot_id,
        )
        await self._sync_commands()

    async def _sync_commands(self) -> None:
        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if not dev_guild_id:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))
            return

        guild = discord.Object(id=int(dev_guild_id))
        self.tree.copy_global_to(guild=guild)
        synced = await self.tree.sync(guild=guild)
        logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
