"""
In-memory key-value store.

Used by tests and for throwaway deployments. Values are round-tripped
through JSON so callers see the same copy semantics as the SQL store.
"""

import json
from typing import Any, Dict, Optional

from .adapter import KeyValueStore
from .errors import StorageConnectionError


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed KeyValueStore."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._data: Dict[str, str] = {}

    async def connect(self) -> None:
        self._is_connected = True

    async def close(self) -> None:
        self._is_connected = False

    def _ensure_connected(self) -> None:
        if not self._is_connected:
            raise StorageConnectionError("Store is not connected")

    async def get(self, key: str) -> Optional[Any]:
        self._ensure_connected()
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._ensure_connected()
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise TypeError(f"Value is not JSON-serializable: {e}")

    def __len__(self) -> int:
        return len(self._data)
