"""
Engine and sessions for the ScopeHound key/value table.

Every persisted document (monitor state, change history, dashboard
cache, per-tenant config and tenant records) is one ``kv_entry`` row
written through ``core.kv.SqlKeyValueStore``, which opens one short
session per call from ``async_session_factory``.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from core.config import settings


# ── Engine ────────────────────────────────────────────────────────────

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

# ── Session Factory ───────────────────────────────────────────────────

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass
