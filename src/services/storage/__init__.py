"""
Storage Services Package

Provides the abstract key-value store, its memory and disk implementations,
and the synchronizer that persists the invoice collection through them.
"""

from src.services.storage.interface import (
    KeyValueStoreInterface,
    QuotaExceededError,
    StorageConnectionError,
    StorageError,
)
from src.services.storage.memory import MemoryKeyValueStore
from src.services.storage.disk import DiskKeyValueStore
from src.services.storage.synchronizer import (
    DEFAULT_KEY,
    InvoiceSynchronizer,
    serialize_collection,
)

__all__ = [
    # Interface
    "KeyValueStoreInterface",
    # Exceptions
    "QuotaExceededError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "DiskKeyValueStore",
    "MemoryKeyValueStore",
    # Synchronizer
    "DEFAULT_KEY",
    "InvoiceSynchronizer",
    "serialize_collection",
]
