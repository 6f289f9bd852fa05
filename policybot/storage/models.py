"""
SQLAlchemy ORM models for bot state.

Usage:
    from policybot.storage.models import Base, KVEntry

    engine = create_async_engine('sqlite+aiosqlite:///policybot.db')
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
"""

import json
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models."""
    pass


class KVEntry(Base):
    """
    One key-value pair.

    Keys are namespaced by prefix (``room:``, ``application:``,
    ``resolution:``); values are stored as JSON.
    """
    __tablename__ = 'kv_storage'

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        nullable=False,
        comment="Namespaced key, e.g. 'room:!abc:example.org'"
    )

    value_json: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="JSON-serialized value"
    )

    created_at: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="When key was first created (Unix epoch)"
    )

    updated_at: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="When key was last updated (Unix epoch)"
    )

    def __repr__(self) -> str:
        return f"<KVEntry(key={self.key})>"

    def get_value(self) -> Any:
        """
        Deserialize and return the stored value.

        Raises:
            json.JSONDecodeError: If value_json is invalid JSON
        """
        return json.loads(self.value_json)
