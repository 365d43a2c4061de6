"""
tipdraw.services.store — Per-Guild Document Store
==================================================

The persistence boundary: ``load(guild_id) -> GuildState`` and
``save(state)``, each a short synchronous SQLAlchemy transaction on the
``guild_documents`` table.

Read-modify-write cycles for the same guild must not interleave, so async
callers go through :meth:`GuildStore.transaction`, which holds a per-guild
``asyncio.Lock`` from load to save::

    async with store.transaction(guild_id) as state:
        state.config.allowed_recipients.append("bob")
    # saved here; nothing is saved if the block raised

Different guilds never wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from tipdraw.database.engine import get_session, run_db
from tipdraw.database.models import GuildDocument
from tipdraw.engine.state import GuildState

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class GuildStore:
    """Loads and saves :class:`GuildState` documents."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -------------------------------------------------------------------
    # Sync boundary (call through run_db from async code)
    # -------------------------------------------------------------------
    def load(self, guild_id: int) -> GuildState:
        """Return the guild's state, or a fresh empty one."""
        with get_session(self._engine) as session:
            row = session.get(GuildDocument, guild_id)
            document = dict(row.document) if row is not None else None
        return GuildState.from_document(guild_id, document)

    def save(self, state: GuildState) -> None:
        """Replace the guild's stored document with *state*."""
        document = state.to_document()
        with get_session(self._engine) as session:
            row = session.get(GuildDocument, state.guild_id)
            if row is None:
                session.add(GuildDocument(
                    guild_id=state.guild_id, document=document, revision=1,
                ))
            else:
                row.document = document
                row.revision += 1
        logger.debug("Saved document for guild %d", state.guild_id)

    # -------------------------------------------------------------------
    # Async helpers
    # -------------------------------------------------------------------
    def lock(self, guild_id: int) -> asyncio.Lock:
        return self._locks[guild_id]

    @asynccontextmanager
    async def transaction(self, guild_id: int) -> AsyncIterator[GuildState]:
        """Serialize load → mutate → save for *guild_id*."""
        async with self.lock(guild_id):
            state = await run_db(self.load, guild_id)
            yield state
            await run_db(self.save, state)

    async def read(self, guild_id: int) -> GuildState:
        """Load without holding the lock for a later save (read-only views)."""
        async with self.lock(guild_id):
            return await run_db(self.load, guild_id)
