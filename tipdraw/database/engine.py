"""
tipdraw.database.engine — Engine, Sessions & the run_db Bridge
===============================================================

SQLAlchemy + psycopg2 is synchronous and the bot lives on an asyncio loop,
so cogs never touch a session directly.  Sync functions (usually
:class:`tipdraw.services.store.GuildStore` methods) are handed to
:func:`run_db`, which runs them on a worker thread::

    engine = create_db_engine()            # DATABASE_URL from .env
    init_db(engine)
    state = await run_db(store.load, guild_id)

``sqlite://`` URLs are accepted for local runs and tests; everything else
gets the pooled PostgreSQL settings.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, make_url
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from tipdraw.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# One bot process doing short per-guild read-modify-write cycles
_PG_POOL = {
    "pool_size": 5,
    "max_overflow": 5,
    "pool_pre_ping": True,
    "pool_timeout": 10,
    "pool_recycle": 3600,
}


def create_db_engine(url: str | None = None) -> Engine:
    """Engine for *url*, falling back to the ``DATABASE_URL`` env var.

    Raises
    ------
    RuntimeError
        If neither is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        # In-memory SQLite must share one connection across run_db threads
        engine = create_engine(
            parsed,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(parsed, **_PG_POOL)

    logger.info("Database engine created → %s", parsed.render_as_string(hide_password=True))
    return engine


def init_db(engine: Engine) -> None:
    """``CREATE TABLE IF NOT EXISTS`` for every model.

    Production schemas are owned by Alembic (``alembic upgrade head``);
    this keeps fresh dev databases and tests usable without it.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """One transaction: commit when the block exits cleanly, else roll back."""
    with Session(engine, expire_on_commit=False) as session, session.begin():
        yield session


async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a **synchronous** DB function without blocking the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)
