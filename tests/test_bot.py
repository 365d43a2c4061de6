"""
tests/test_bot.py — Bot Wiring Tests
=====================================

No gateway connection: only intents and the member lookup used by the tip
listener, against mocked guild objects.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
from conftest import run_async

from tipdraw.bot.cogs.tips import resolve_member
from tipdraw.bot.core import EXTENSIONS, build_intents


def _member(member_id: int, name: str, display_name: str) -> MagicMock:
    member = MagicMock(spec=discord.Member)
    member.id = member_id
    member.name = name
    member.display_name = display_name
    return member


def _guild(*members: MagicMock) -> MagicMock:
    guild = MagicMock(spec=discord.Guild)
    guild.members = list(members)
    guild.get_member.side_effect = lambda mid: next((m for m in members if m.id == mid), None)
    guild.fetch_member = AsyncMock(side_effect=discord.NotFound(MagicMock(status=404), "Unknown Member"))
    return guild


class TestWiring:
    def test_privileged_intents(self):
        intents = build_intents()
        assert intents.message_content
        assert intents.members

    def test_extensions(self):
        assert EXTENSIONS == [
            "tipdraw.bot.cogs.tips",
            "tipdraw.bot.cogs.admin",
            "tipdraw.bot.cogs.members",
        ]


class TestResolveMember:
    def test_by_id(self):
        alice = _member(111, "alice", "Alice")
        assert run_async(resolve_member(_guild(alice), "111")) is alice

    def test_unknown_id(self):
        assert run_async(resolve_member(_guild(), "999")) is None

    def test_exact_name_beats_containment(self):
        al = _member(1, "alina", "Alina")
        alice = _member(2, "al", "Al")
        assert run_async(resolve_member(_guild(al, alice), "al")) is alice

    def test_display_name_containment(self):
        bob = _member(3, "bob_1987", "Bobby Tables")
        assert run_async(resolve_member(_guild(bob), "tables")) is bob

    def test_no_match(self):
        assert run_async(resolve_member(_guild(_member(1, "x", "y")), "zed")) is None
