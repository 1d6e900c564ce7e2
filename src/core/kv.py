"""
Key/value store backends.

Values are opaque strings (JSON documents serialized by the caller).
``SqlKeyValueStore`` persists to the ``kv_entry`` table;
``MemoryKeyValueStore`` keeps everything in-process for tests and
local runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.models import KVEntry

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal async key/value contract used by the state store."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Not shared across processes."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def put(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class SqlKeyValueStore(KeyValueStore):
    """Store backed by the ``kv_entry`` table. One short session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from core.database import async_session_factory

            session_factory = async_session_factory
        self.session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(KVEntry.value).where(KVEntry.key == key)
            )
            return result.scalar_one_or_none()

    async def put(self, key: str, value: str) -> None:
        async with self.session_factory() as session:
            entry = await session.get(KVEntry, key)
            if entry is None:
                session.add(KVEntry(key=key, value=value))
            else:
                entry.value = value
            await session.commit()
        logger.debug("kv put %s (%d bytes)", key, len(value))

    async def delete(self, key: str) -> None:
        async with self.session_factory() as session:
            await session.execute(delete(KVEntry).where(KVEntry.key == key))
            await session.commit()
