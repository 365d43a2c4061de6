"""
tipdraw.bot.cogs.admin — Admin Slash Commands
==============================================

Discord slash commands for server admins:
- /setup — admin role, VIP role, notification channel
- /draw-create, /draw-edit, /draw-pick-winner, /draw-assign-entries
- /recipients — add / remove / list / clean allowed tip recipients
- /currencies — add / remove / list / reset accepted cryptocurrencies
- /feature — toggle a guild feature
- /donor-roles — add / remove / list / reset / auto-setup donor tiers
- /fix-achievements — re-run achievement checks
- /analytics — overview, donation, draw and user figures

Every mutation runs inside ``store.transaction(guild_id)`` so it cannot
interleave with a tip being processed for the same guild.  Admin sees
ephemeral confirmations; winners are announced publicly.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from tipdraw.constants import FEATURE_NAMES
from tipdraw.engine.allocation import DrawError
from tipdraw.services import admin_service
from tipdraw.services.announcements import format_analytics, format_draw_line, format_winner

if TYPE_CHECKING:
    from tipdraw.bot.core import TipDrawBot

logger = logging.getLogger(__name__)

_USER_ID = re.compile(r"\d{15,20}")


def is_admin():
    """Decorator: bot owner, the guild's configured admin role, or (before
    /setup has run) the Administrator permission.
    """
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: TipDrawBot = interaction.client  # type: ignore[assignment]
        user = interaction.user
        if bot.cfg.owner_id is not None and user.id == bot.cfg.owner_id:
            return True
        if interaction.guild_id is None or not hasattr(user, "roles"):
            return False
        config = (await bot.store.read(interaction.guild_id)).config
        if config.admin_role_id is None:
            return user.guild_permissions.administrator  # type: ignore[union-attr]
        return any(str(role.id) == config.admin_role_id for role in user.roles)  # type: ignore[union-attr]
    return app_commands.check(predicate)


def _feature_choices() -> list[app_commands.Choice[str]]:
    return [app_commands.Choice(name=label, value=key) for key, label in FEATURE_NAMES.items()]


class Admin(commands.Cog, name="Admin"):
    """Draw and guild administration."""

    def __init__(self, bot: TipDrawBot) -> None:
        self.bot = bot

    async def _reply(self, interaction: discord.Interaction, ok: bool, message: str) -> None:
        await interaction.response.send_message(
            f"{'✅' if ok else '❌'} {message}", ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /setup
    # -------------------------------------------------------------------
    @app_commands.command(name="setup", description="Configure admin role, VIP role and notifications.")
    @app_commands.describe(
        admin_role="Role allowed to manage draws",
        vip_role="Role that may enter VIP-only draws",
        notification_channel="Channel for donation and winner announcements",
    )
    @is_admin()
    async def setup_guild(
        self,
        interaction: discord.Interaction,
        admin_role: discord.Role,
        vip_role: discord.Role | None = None,
        notification_channel: discord.TextChannel | None = None,
    ) -> None:
        async with self.bot.store.transaction(interaction.guild_id) as state:
            ok, msg = admin_service.configure_guild(
                state,
                admin_role_id=str(admin_role.id),
                vip_role_id=str(vip_role.id) if vip_role else None,
                notification_channel_id=str(notification_channel.id) if notification_channel else None,
            )
        await self._reply(interaction, ok, msg)

    # -------------------------------------------------------------------
    # Draws
    # -------------------------------------------------------------------
    @app_commands.command(name="draw-create", description="Create a new donation draw.")
    @app_commands.describe(
        name="Draw name",
        reward="What the winner receives",
        min_amount="USD per entry (and the minimum donation)",
        max_entries="Total entry cap (blank for unlimited)",
        max_amount="Largest donation that still counts (blank for none)",
        vip_only="Only VIP members can enter",
        manual_entries_only="Entries are only assigned by admins",
    )
    @is_admin()
    async def draw_create(
        self,
        interaction: discord.Interaction,
        name: str,
        reward: str,
        min_amount: float,
        max_entries: int | None = None,
        max_amount: float | None = None,
        vip_only: bool = False,
        manual_entries_only: bool = False,
    ) -> None:
        try:
            async with self.bot.store.transaction(interaction.guild_id) as state:
                draw = admin_service.create_draw(
                    state,
                    name=name,
                    reward=reward,
                    min_amount=min_amount,
                    max_entries=max_entries,
                    max_amount=max_amount,
                    vip_only=vip_only,
                    manual_entries_only=manual_entries_only,
                    created_by=str(interaction.user.id),
                )
        except DrawError as exc:
            await self._reply(interaction, False, str(exc))
            return
        await self._reply(interaction, True, f"Draw created: {format_draw_line(draw)}")

    @app_commands.command(name="draw-edit", description="Edit an existing draw.")
    @app_commands.describe(
        draw_id="Draw id (see /draws)",
        clear_limit="Reset a limit to unbounded",
    )
    @app_commands.choices(clear_limit=[
        app_commands.Choice(name="max amount", value="max_amount"),
        app_commands.Choice(name="max entries", value="max_entries"),
        app_commands.Choice(name="both", value="both"),
    ])
    @is_admin()
    async def draw_edit(
        self,
        interaction: discord.Interaction,
        draw_id: str,
        name: str | None = None,
        reward: str | None = None,
        min_amount: float | None = None,
        max_amount: float | None = None,
        max_entries: int | None = None,
        active: bool | None = None,
        vip_only: bool | None = None,
        manual_entries_only: bool | None = None,
        clear_limit: str | None = None,
    ) -> None:
        if clear_limit == "both":
            clear = ["max_amount", "max_entries"]
        else:
            clear = [clear_limit] if clear_limit else []
        async with self.bot.store.transaction(interaction.guild_id) as state:
            ok, msg = admin_service.edit_draw(
                state, draw_id,
                clear=clear,
                name=name, reward=reward, min_amount=min_amount, max_amount=max_amount,
                max_entries=max_entries, active=active, vip_only=vip_only,
                manual_entries_only=manual_entries_only,
            )
        await self._reply(interaction, ok, msg)

    @app_commands.command(name="draw-pick-winner", description="Close a draw and pick its winner.")
    @app_commands.describe(draw_id="Draw id (see /draws)")
    @is_admin()
    async def draw_pick_winner(self, interaction: discord.Interaction, draw_id: str) -> None:
        async with self.bot.store.transaction(interaction.guild_id) as state:
            ok, msg, winner_id = admin_service.pick_winner(state, draw_id)
            draw = state.draws.get(draw_id)
        if not ok or winner_id is None or draw is None:
            await self._reply(interaction, False, msg)
            return
        await interaction.response.send_message(format_winner(draw, winner_id))

    @app_commands.command(
        name="draw-assign-entries",
        description="Give entries to one or more members (mentions or ids).",
    )
    @app_commands.describe(draw_id="Draw id", users="Mentions or ids", count="Entries per member")
    @is_admin()
    async def draw_assign_entries(
        self, interaction: discord.Interaction, draw_id: str, users: str, count: int,
    ) -> None:
        user_ids = _USER_ID.findall(users)
        async with self.bot.store.transaction(interaction.guild_id) as state:
            ok, msg = admin_service.assign_entries(state, draw_id, user_ids, count)
        await self._reply(interaction, ok, msg)

    # -------------------------------------------------------------------
    # /recipients
    # -------------------------------------------------------------------
    @app_commands.command(name="recipients", description="Manage allowed tip recipients.")
    @app_commands.choices(action=[
        app_commands.Choice(name=a, value=a) for a in ("add", "remove", "list", "clean")
    ])
    @is_admin()
    async def recipients(
        self, interaction: discord.Interaction, action: str, recipient: str | None = None,
    ) -> None:
        async with self.bot.store.transaction(interaction.guild_id) as state:
            if action == "list":
                names = ", ".join(map(str, state.config.allowed_recipients)) or "(none)"
                ok, msg = True, f"Allowed recipients: {names}"
            elif action == "clean":
                before, removed = admin_service.clean_recipients(state)
                ok, msg = True, f"Removed {removed} invalid entries ({before - removed} remain)."
            elif not recipient:
                ok, msg = False, "Please specify a recipient."
            elif action == "add":
                ok, msg = admin_service.add_recipient(state, recipient)
                conflicts = admin_service.find_recipient_conflicts(state)
                if ok and conflicts:
                    msg += " Note: overlapping entries " + ", ".join(f"{a}/{b}" for a, b in conflicts)
            else:
                ok, msg = admin_service.remove_recipient(state, recipient)
        await self._reply(interaction, ok, msg)

    # -------------------------------------------------------------------
    # /currencies
    # -------------------------------------------------------------------
    @app_commands.command(name="currencies", description="Manage accepted cryptocurrencies.")
    @app_commands.choices(action=[
        app_commands.Choice(name=a, value=a) for a in ("add", "remove", "list", "reset")
    ])
    @is_admin()
    async def currencies(
        self, interaction: discord.Interaction, action: str, symbol: str | None = None,
    ) -> None:
        async with self.bot.store.transaction(interaction.guild_id) as state:
            if action == "list":
                ok, msg = True, "Accepted: " + ", ".join(state.config.currencies)
            elif action == "reset":
                ok, msg = True, "Reset to defaults: " + ", ".join(admin_service.reset_currencies(state))
            elif not symbol:
                ok, msg = False, "Please specify a currency symbol."
            elif action == "add":
                ok, msg = admin_service.add_currency(state, symbol)
            else:
                ok, msg = admin_service.remove_currency(state, symbol)
        await self._reply(interaction, ok, msg)

    # -------------------------------------------------------------------
    # /feature
    # -------------------------------------------------------------------
    @app_commands.command(name="feature", description="Enable or disable a feature.")
    @app_commands.choices(feature=_feature_choices())
    @is_admin()
    async def feature(self, interaction: discord.Interaction, feature: str, enabled: bool) -> None:
        async with self.bot.store.transaction(interaction.guild_id) as state:
            ok, msg = admin_service.set_feature(state, feature, enabled)
        await self._reply(interaction, ok, msg)

    # -------------------------------------------------------------------
    # /donor-roles
    # -------------------------------------------------------------------
    @app_commands.command(name="donor-roles", description="Manage donor tier roles.")
    @app_commands.choices(action=[
        app_commands.Choice(name=a, value=a)
        for a in ("add", "remove", "list", "reset", "auto-setup")
    ])
    @is_admin()
    async def donor_roles(
        self,
        interaction: discord.Interaction,
        action: str,
        role: discord.Role | None = None,
        min_amount: float | None = None,
        max_amount: float | None = None,
    ) -> None:
        guild = interaction.guild
        assert guild is not None
        async with self.bot.store.transaction(guild.id) as state:
            if action == "list":
                roles = sorted(state.config.donor_roles.values(), key=lambda r: r.min_amount)
                lines = [
                    f"<@&{r.role_id}> ${r.min_amount:g}"
                    + (f" - ${r.max_amount:g}" if r.max_amount is not None else "+")
                    for r in roles
                ]
                ok, msg = True, "\n".join(lines) or "No donor roles configured."
            elif action == "reset":
                admin_service.reset_donor_roles(state)
                ok, msg = True, "Donor roles cleared."
            elif action == "auto-setup":
                found = admin_service.auto_setup_donor_roles(
                    state, [(str(r.id), r.name) for r in guild.roles],
                )
                ok = bool(found)
                msg = (
                    "Configured: " + ", ".join(r.name for r in found)
                    if found else "No roles matching the donor presets were found."
                )
            elif role is None:
                ok, msg = False, "Please specify a role."
            elif action == "add":
                if min_amount is None:
                    ok, msg = False, "Please specify a minimum amount."
                else:
                    ok, msg = admin_service.add_donor_role(
                        state, role_id=str(role.id), name=role.name,
                        min_amount=min_amount, max_amount=max_amount,
                    )
            else:
                ok, msg = admin_service.remove_donor_role(state, str(role.id))
        await self._reply(interaction, ok, msg)

    # -------------------------------------------------------------------
    # /fix-achievements
    # -------------------------------------------------------------------
    @app_commands.command(name="fix-achievements", description="Re-check achievements.")
    @app_commands.describe(member="Only this member (defaults to everyone who donated)")
    @is_admin()
    async def fix_achievements(
        self, interaction: discord.Interaction, member: discord.Member | None = None,
    ) -> None:
        async with self.bot.store.transaction(interaction.guild_id) as state:
            processed, fixed = admin_service.fix_achievements(
                state, str(member.id) if member else None,
            )
        await self._reply(
            interaction, True, f"Processed {processed} user(s), granted {fixed} achievement(s).",
        )

    # -------------------------------------------------------------------
    # /analytics
    # -------------------------------------------------------------------
    @app_commands.command(name="analytics", description="View server analytics.")
    @app_commands.choices(kind=[
        app_commands.Choice(name=k.title(), value=k) for k in admin_service.ANALYTICS_KINDS
    ])
    @is_admin()
    async def analytics(self, interaction: discord.Interaction, kind: str = "overview") -> None:
        state = await self.bot.store.read(interaction.guild_id)
        report = admin_service.analytics(state, kind)
        await interaction.response.send_message(format_analytics(report), ephemeral=True)

    # -------------------------------------------------------------------
    # Error handler for missing admin role
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await interaction.response.send_message(
                "🔒 You need the admin role to use this command.",
                ephemeral=True,
            )
        else:
            raise error


async def setup(bot: TipDrawBot) -> None:
    await bot.add_cog(Admin(bot))
