"""
tipdraw.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Each guild's state (config, users, draws) is stored as one JSON document.
The engine works on the decoded :class:`tipdraw.engine.state.GuildState`;
this table is only the persistence boundary.

Tables:
- guild_documents — one row per Discord guild
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all TipDraw ORM models."""


# ---------------------------------------------------------------------------
# GuildDocument — the full per-guild state
# ---------------------------------------------------------------------------
class GuildDocument(Base):
    __tablename__ = "guild_documents"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    document: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<GuildDocument guild={self.guild_id} rev={self.revision}>"
