"""
SQLAlchemy 2.0 ORM Models — ScopeHound
======================================

Monitor state is a set of JSON documents addressed by tenant-namespaced
keys (``monitor_state``, ``user_state:<tenant>:history``, ...), so the
relational schema is a single key/value table.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class KVEntry(Base):
    """One JSON document of the key/value store."""

    __tablename__ = "kv_entry"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<KVEntry {self.key!r}>"
