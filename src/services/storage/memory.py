"""
In-Memory Key-Value Store

Used by tests and by the "memory" storage backend. Nothing survives the
process, which makes it handy for demos as well.
"""

from typing import Optional

from src.services.storage.interface import (
    KeyValueStoreInterface,
    QuotaExceededError,
)


class MemoryKeyValueStore(KeyValueStoreInterface):
    """
    Dict-backed store with an optional per-value byte quota.

    A quota of 0 disables the check. Values are measured as UTF-8 bytes.
    """

    def __init__(
        self,
        initial: Optional[dict[str, str]] = None,
        quota_bytes: int = 0,
    ):
        self._data: dict[str, str] = dict(initial or {})
        self._quota_bytes = quota_bytes
        self.write_count = 0

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if self._quota_bytes and size > self._quota_bytes:
            raise QuotaExceededError(key, size, self._quota_bytes)
        self._data[key] = value
        self.write_count += 1

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None
