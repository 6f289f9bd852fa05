"""
Abstract key-value store for bot state persistence.

This module defines the KeyValueStore abstract base class. The bot keeps
only a handful of string keys (room links, pending applications), so
the contract is a plain async get/set over JSON-serializable values.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional


class KeyValueStore(ABC):
    """
    Abstract interface for key-value persistence.

    There is no delete operation: records written by the
    application workflow are kept indefinitely.

    Attributes:
        logger: Logger instance for storage events
        is_connected: Storage connection status
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize key-value store.

        Args:
            logger: Optional logger instance. If None, creates default logger.
        """
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self._is_connected = False

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the store and create its schema if needed.

        Raises:
            StorageConnectionError: If the store cannot be opened
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close the store.

        Should not raise exceptions (best effort cleanup).
        """
        pass

    @property
    def is_connected(self) -> bool:
        """True if connected and ready for operations."""
        return self._is_connected

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read a value.

        Args:
            key: Key name (e.g. ``room:!abc:example.org``)

        Returns:
            Deserialized value, or None if the key was never written
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Write a value, replacing any existing one.

        Args:
            key: Key name
            value: Any JSON-serializable value

        Raises:
            TypeError: If value is not JSON-serializable
        """
        pass

    async def exists(self, key: str) -> bool:
        """Check whether a key has been written."""
        return await self.get(key) is not None
