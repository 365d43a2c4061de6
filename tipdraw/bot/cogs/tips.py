"""
tipdraw.bot.cogs.tips — tip.cc Listener
========================================

Listens for messages from the tip.cc bot and runs each through
:func:`tipdraw.services.donation_service.process_tip_message`.

Pipeline:
1. on_message fires → gate checks (author is the tip bot, guild message)
2. process_tip_message parses, values, and persists the donation
3. Apply any donor-tier role change to the member
4. Post the thank-you, role and achievement notices
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.abc import Messageable
from discord.ext import commands

from tipdraw.services.announcements import (
    format_achievements,
    format_donation,
    format_role_upgrade,
)
from tipdraw.services.donation_service import DonationOutcome, DonorMember, process_tip_message

if TYPE_CHECKING:
    from tipdraw.bot.core import TipDrawBot

logger = logging.getLogger(__name__)


async def resolve_member(guild: discord.Guild, sender: str) -> discord.Member | None:
    """Find the member behind a tip's sender token.

    Mentions give a user id; other layouts give a username.  Names are
    matched exactly first, then by case-insensitive containment.
    """
    if sender.isdigit():
        member = guild.get_member(int(sender))
        if member is not None:
            return member
        try:
            return await guild.fetch_member(int(sender))
        except discord.HTTPException:
            return None

    needle = sender.lower()
    for member in guild.members:
        if needle in (member.name.lower(), member.display_name.lower()):
            return member
    for member in guild.members:
        if needle in member.name.lower() or needle in member.display_name.lower():
            return member
    return None


class Tips(commands.Cog, name="Tips"):
    """Turns tip.cc transfers into draw entries and donor rewards."""

    def __init__(self, bot: TipDrawBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.id != self.bot.cfg.tip_bot_id or message.guild is None:
            return
        try:
            await self._handle_tip(message)
        except Exception:
            logger.exception(
                "Error processing tip message %s in guild %s",
                message.id, message.guild.id,
            )

    async def _handle_tip(self, message: discord.Message) -> None:
        guild = message.guild
        assert guild is not None
        members: dict[str, discord.Member] = {}

        async def find_member(sender: str) -> DonorMember | None:
            member = await resolve_member(guild, sender)
            if member is None:
                return None
            members[str(member.id)] = member
            return DonorMember(
                id=str(member.id),
                role_ids=frozenset(str(r.id) for r in member.roles),
            )

        outcome = await process_tip_message(
            self.bot.store, self.bot.resolver, guild.id, message.content, find_member,
        )
        if outcome is None:
            return

        member = members.get(outcome.sender_id)
        if member is not None and outcome.role_change is not None:
            await self._apply_role_change(guild, member, outcome)

        await self._announce(message, outcome)

    async def _apply_role_change(
        self, guild: discord.Guild, member: discord.Member, outcome: DonationOutcome
    ) -> None:
        change = outcome.role_change
        assert change is not None
        grant = guild.get_role(int(change.grant_role_id))
        if grant is None:
            logger.warning("Donor role %s no longer exists in guild %d", change.grant_role_id, guild.id)
            return

        revoke = [r for rid in change.revoke_role_ids if (r := guild.get_role(int(rid))) is not None]
        try:
            if revoke:
                await member.remove_roles(*revoke, reason="Donor tier upgrade")
            await member.add_roles(grant, reason="Donor tier upgrade")
        except discord.Forbidden:
            logger.warning(
                "Missing permissions to assign %s to %s in guild %d",
                grant.name, member.id, guild.id,
            )
            return
        logger.info("Assigned donor role %s to %s", grant.name, member.id)

    async def _announce(self, message: discord.Message, outcome: DonationOutcome) -> None:
        guild_id = message.guild.id  # type: ignore[union-attr]
        config = (await self.bot.store.read(guild_id)).config
        if not config.feature_enabled("drawNotifications"):
            logger.debug("Draw notifications disabled for guild %d", guild_id)
            return

        channel: Messageable = message.channel
        if config.notification_channel_id:
            target = self.bot.get_channel(int(config.notification_channel_id))
            if isinstance(target, Messageable):
                channel = target

        parts = [format_donation(outcome)]
        if outcome.role_change is not None:
            parts.append(format_role_upgrade(outcome.sender_id, outcome.role_change))
        if outcome.achievements:
            parts.append(format_achievements(outcome.sender_id, outcome.achievements))

        await channel.send("\n\n".join(parts))


async def setup(bot: TipDrawBot) -> None:
    await bot.add_cog(Tips(bot))
