"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from sqlalchemy import BigInteger, Engine

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.ext.compiler import compiles

from tipdraw.database.engine import create_db_engine, init_db
from tipdraw.engine.state import Draw, GuildState


@compiles(PG_JSONB, "sqlite")
def _compile_jsonb_as_text(type_, compiler, **kw):
    return "TEXT"


@compiles(BigInteger, "sqlite")
def _compile_bigint_as_integer(type_, compiler, **kw):
    return "INTEGER"


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def make_draw(draw_id: str = "draw_1", **overrides) -> Draw:
    fields = {"name": draw_id.replace("_", " ").title(), "reward": "Prize", "min_amount": 5.0}
    fields.update(overrides)
    return Draw(id=draw_id, **fields)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all TipDraw tables.

    ``create_db_engine`` gives SQLite a StaticPool, so every ``run_db``
    thread sees the same in-memory database.
    """
    engine = create_db_engine("sqlite://")
    init_db(engine)
    return engine


@pytest.fixture
def state() -> GuildState:
    """A guild with one allowed recipient and default currencies."""
    guild = GuildState(guild_id=100)
    guild.config.allowed_recipients = ["222"]
    return guild
