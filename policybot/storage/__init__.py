"""
Persistence for bot state.

A small async key-value abstraction with in-memory and SQL
implementations, and the typed CommunityStore built on top of it.
"""

from .adapter import KeyValueStore
from .community_store import APPROVED, DENIED, CommunityStore
from .errors import StorageConnectionError, StorageError
from .memory import MemoryKeyValueStore
from .sql import SQLKeyValueStore, to_database_url

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLKeyValueStore",
    "to_database_url",
    "CommunityStore",
    "APPROVED",
    "DENIED",
    "StorageError",
    "StorageConnectionError",
]
