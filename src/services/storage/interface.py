"""
Abstract Storage Interface

DESIGN DECISION: The application persists through a single abstract
key-value store. This allows us to:
1. Keep invoices in a local directory today
2. Use in-memory storage for testing
3. Swap in any host-provided blob store later
4. Keep the synchronizer decoupled from storage implementation

The interface is intentionally tiny: get and set of string values.
Both are async and both may fail.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for a local string key-value store.

    Any storage implementation (memory, disk, browser bridge, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: The key to read

        Returns:
            The stored string, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store a value under a key, replacing any previous value.

        Args:
            key: The key to write
            value: The full serialized value

        Raises:
            QuotaExceededError: If the value does not fit
            StorageError: If the write fails for any other reason
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class QuotaExceededError(StorageError):
    """The value is larger than the store accepts."""

    def __init__(self, key: str, size: int, quota: int):
        self.key = key
        self.size = size
        self.quota = quota
        super().__init__(
            f"Value for '{key}' is {size} bytes, store quota is {quota} bytes"
        )


class StorageConnectionError(StorageError):
    """Could not open the storage backend."""
    pass
