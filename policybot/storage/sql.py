"""
SQL-backed key-value store.

Uses SQLAlchemy ORM with async support. SQLite (via aiosqlite) is the
default; any async SQLAlchemy URL works.
"""

import json
import pathlib
import time
import urllib.parse
from contextlib import asynccontextmanager
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .adapter import KeyValueStore
from .errors import StorageConnectionError
from .models import Base, KVEntry


def to_database_url(database_url: str) -> str:
    """
    Convert a file path to a SQLAlchemy URL.

    URLs that already name a driver are returned unchanged.

    Examples:
        >>> to_database_url(':memory:')
        'sqlite+aiosqlite:///:memory:'
        >>> to_database_url('postgresql+asyncpg://u:p@host/db')
        'postgresql+asyncpg://u:p@host/db'
    """
    if database_url.startswith(('sqlite+', 'postgresql+', 'mysql+')):
        return database_url
    if database_url == ':memory:':
        return 'sqlite+aiosqlite:///:memory:'
    path_obj = pathlib.Path(database_url)
    if not path_obj.is_absolute():
        path_obj = path_obj.resolve()
    encoded_path = urllib.parse.quote(path_obj.as_posix(), safe='/:')
    return f'sqlite+aiosqlite:///{encoded_path}'


class SQLKeyValueStore(KeyValueStore):
    """
    KeyValueStore persisted in a single ``kv_storage`` table.

    Example:
        store = SQLKeyValueStore('bot/policybot.db')
        await store.connect()
        await store.set('room:!abc:example.org', {'id': 'c1'})
        await store.close()
    """

    def __init__(self, database_url: str = 'sqlite+aiosqlite:///policybot.db', **kwargs):
        """
        Initialize database engine and session factory.

        Args:
            database_url: SQLAlchemy database URL or file path
        """
        super().__init__(**kwargs)
        self.database_url = to_database_url(database_url)
        self.is_postgresql = self.database_url.startswith('postgresql')

        self.engine = create_async_engine(self.database_url, echo=False, pool_pre_ping=True)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def connect(self) -> None:
        """
        Create the schema if needed and mark the store connected.

        Raises:
            RuntimeError: If already connected
            StorageConnectionError: If the database cannot be opened
        """
        if self._is_connected:
            raise RuntimeError(f"Database already connected: {self.database_url}")

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            raise StorageConnectionError(f"Could not open {self.database_url}: {e}") from e

        self._is_connected = True
        self.logger.info('Key-value store connected: %s', self.database_url)

    async def close(self) -> None:
        """Dispose the engine. Safe to call multiple times."""
        if not self._is_connected:
            self.logger.debug('Key-value store already closed or never connected')
            return
        try:
            await self.engine.dispose()
            self.logger.info('Key-value store closed')
        except Exception as e:
            self.logger.error('Error closing key-value store: %s', e)
        finally:
            self._is_connected = False

    @asynccontextmanager
    async def _get_session(self):
        """
        Get async session (context manager).

        Commits on success, rolls back on exception.
        """
        if not self._is_connected:
            raise StorageConnectionError("Store is not connected")
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def get(self, key: str) -> Optional[Any]:
        async with self._get_session() as session:
            result = await session.execute(select(KVEntry).where(KVEntry.key == key))
            row = result.scalar_one_or_none()
            if row is None:
                return None
            try:
                return row.get_value()
            except json.JSONDecodeError as e:
                self.logger.error(f"Failed to deserialize value for {key}: {e}")
                return None

    async def set(self, key: str, value: Any) -> None:
        try:
            value_json = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise TypeError(f"Value is not JSON-serializable: {e}")

        now = int(time.time())
        dialect_insert = pg_insert if self.is_postgresql else sqlite_insert
        stmt = dialect_insert(KVEntry).values(
            key=key,
            value_json=value_json,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['key'],
            set_={'value_json': value_json, 'updated_at': now},
        )
        async with self._get_session() as session:
            await session.execute(stmt)
