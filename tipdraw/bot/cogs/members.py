"""
tipdraw.bot.cogs.members — Member Slash Commands
=================================================

- /draws — list active draws
- /select-draw — target donations at one draw, or ``auto`` for all
- /entries — your entries and win chances
- /referred-by — name the member who referred you
- /leaderboard — top donors
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from tipdraw.constants import AUTO_DRAW
from tipdraw.services import member_service
from tipdraw.services.announcements import format_draw_line, format_entries

if TYPE_CHECKING:
    from tipdraw.bot.core import TipDrawBot

logger = logging.getLogger(__name__)


def _donor_label(user_id: str, anonymous: bool) -> str:
    return f"Donor #{user_id[-4:]}" if anonymous else f"<@{user_id}>"


class Members(commands.Cog, name="Members"):
    """Self-service commands for donors."""

    def __init__(self, bot: TipDrawBot) -> None:
        self.bot = bot

    @app_commands.guild_only()
    @app_commands.command(name="draws", description="List the active draws.")
    async def draws(self, interaction: discord.Interaction) -> None:
        state = await self.bot.store.read(interaction.guild_id)
        active = [d for d in state.draws.values() if d.active]
        text = "\n".join(format_draw_line(d) for d in active) or "No active draws right now."
        await interaction.response.send_message(text, ephemeral=True)

    @app_commands.guild_only()
    @app_commands.command(name="select-draw", description="Choose which draw your donations enter.")
    @app_commands.describe(draw_id=f"Draw id from /draws, or '{AUTO_DRAW}' for every eligible draw")
    async def select_draw(self, interaction: discord.Interaction, draw_id: str) -> None:
        async with self.bot.store.transaction(interaction.guild_id) as state:
            ok, msg = member_service.select_draw(state, str(interaction.user.id), draw_id)
        await interaction.response.send_message(f"{'✅' if ok else '❌'} {msg}", ephemeral=True)

    @app_commands.guild_only()
    @app_commands.command(name="entries", description="Show your draw entries.")
    async def entries(self, interaction: discord.Interaction) -> None:
        state = await self.bot.store.read(interaction.guild_id)
        standings = member_service.entries_summary(state, str(interaction.user.id))
        await interaction.response.send_message(format_entries(standings), ephemeral=True)

    @app_commands.guild_only()
    @app_commands.command(name="referred-by", description="Tell us who referred you.")
    @app_commands.describe(member="The member who referred you")
    async def referred_by(self, interaction: discord.Interaction, member: discord.Member) -> None:
        async with self.bot.store.transaction(interaction.guild_id) as state:
            ok, msg = member_service.set_referrer(state, str(interaction.user.id), str(member.id))
        await interaction.response.send_message(f"{'✅' if ok else '❌'} {msg}", ephemeral=True)

    @app_commands.guild_only()
    @app_commands.command(name="leaderboard", description="Top donors in this server.")
    async def leaderboard(self, interaction: discord.Interaction, limit: int = 10) -> None:
        state = await self.bot.store.read(interaction.guild_id)
        anonymous = state.config.feature_enabled("anonymousMode")
        donors = member_service.top_donors(state, min(max(limit, 1), 25))
        lines = [
            f"**{i}.** {_donor_label(u.id, anonymous)} — ${u.total_donated:.2f}"
            for i, u in enumerate(donors, start=1)
        ]
        await interaction.response.send_message(
            "\n".join(lines) or "No donations yet.",
            allowed_mentions=discord.AllowedMentions.none(),
        )


async def setup(bot: TipDrawBot) -> None:
    await bot.add_cog(Members(bot))
