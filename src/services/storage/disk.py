"""
On-Disk Key-Value Store

DESIGN DECISION: Invoices live in a local diskcache directory because:
1. The app is single-user and offline-first
2. diskcache gives atomic whole-value writes on top of SQLite
3. No server or database setup is required

TRADEOFFS:
- Values are rewritten whole on every save (fine for tens to hundreds of invoices)
- A concurrently running second app instance can hold the lock briefly,
  so writes retry on lock timeouts before giving up
"""

from pathlib import Path
from typing import Optional

import diskcache
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.services.storage.interface import (
    KeyValueStoreInterface,
    QuotaExceededError,
    StorageConnectionError,
    StorageError,
)

logger = structlog.get_logger(__name__)


class DiskKeyValueStore(KeyValueStoreInterface):
    """
    diskcache-backed implementation of the key-value store.

    The cache directory is opened lazily on first use and created if it
    does not exist.
    """

    def __init__(
        self,
        directory: str | Path,
        quota_bytes: int = 0,
        lock_timeout_seconds: float = 1.0,
    ):
        self.directory = Path(directory)
        self._quota_bytes = quota_bytes
        self._lock_timeout = lock_timeout_seconds
        self._cache: Optional[diskcache.Cache] = None

    def _open(self) -> diskcache.Cache:
        if self._cache is None:
            try:
                self._cache = diskcache.Cache(
                    str(self.directory),
                    timeout=self._lock_timeout,
                )
            except OSError as e:
                raise StorageConnectionError(
                    f"Could not open invoice store at {self.directory}: {e}"
                )
        return self._cache

    @retry(
        retry=retry_if_exception_type(diskcache.Timeout),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _read(self, key: str) -> Optional[str]:
        return self._open().get(key, default=None)

    @retry(
        retry=retry_if_exception_type(diskcache.Timeout),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write(self, key: str, value: str) -> None:
        self._open().set(key, value)

    async def get(self, key: str) -> Optional[str]:
        try:
            value = self._read(key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read '{key}': {e}")
        if value is not None and not isinstance(value, str):
            raise StorageError(f"Value under '{key}' is not text")
        return value

    async def set(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if self._quota_bytes and size > self._quota_bytes:
            raise QuotaExceededError(key, size, self._quota_bytes)
        try:
            self._write(key, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write '{key}': {e}")
        logger.debug("store_write", key=key, size_bytes=size)

    async def delete(self, key: str) -> bool:
        try:
            return bool(self._open().delete(key))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete '{key}': {e}")

    def close(self) -> None:
        """Close the cache and release resources."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None
