"""
Asset Cache Storage

Named cache namespaces holding whole HTTP responses keyed by URL.

Two implementations:
- MemoryAssetCacheStorage: for tests and the "memory" backend
- DiskAssetCacheStorage: diskcache directory shared across restarts

Writes are whole-response puts. put_many() writes a batch atomically so an
install either lands completely or not at all.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import diskcache
import httpx
from pydantic import BaseModel, Field

# Hop-by-hop and encoding headers that no longer describe a decoded body
_DROPPED_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


class CachedResponse(BaseModel):
    """A stored copy of a network response."""

    url: str
    status_code: int
    headers: list[tuple[str, str]] = Field(default_factory=list)
    content: bytes = b""

    @classmethod
    async def from_response(cls, url: str, response: httpx.Response) -> "CachedResponse":
        """Read the response body and keep a decoded copy."""
        content = await response.aread()
        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in _DROPPED_HEADERS
        ]
        return cls(
            url=url,
            status_code=response.status_code,
            headers=headers,
            content=content,
        )

    def to_response(self, request: Optional[httpx.Request] = None) -> httpx.Response:
        """A fresh httpx.Response with this body; safe to hand out repeatedly."""
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.content,
            request=request,
        )


class AssetCacheStorage(ABC):
    """Abstract store of cache namespaces."""

    @abstractmethod
    async def list_namespaces(self) -> list[str]:
        pass

    @abstractmethod
    async def get(self, namespace: str, url: str) -> Optional[CachedResponse]:
        pass

    @abstractmethod
    async def put(self, namespace: str, entry: CachedResponse) -> None:
        pass

    @abstractmethod
    async def put_many(self, namespace: str, entries: list[CachedResponse]) -> None:
        """Store every entry, or none of them."""
        pass

    @abstractmethod
    async def delete_namespace(self, namespace: str) -> bool:
        """Remove a namespace and all its entries. Returns True if it existed."""
        pass


class MemoryAssetCacheStorage(AssetCacheStorage):

    def __init__(self):
        self._namespaces: dict[str, dict[str, CachedResponse]] = {}

    async def list_namespaces(self) -> list[str]:
        return sorted(self._namespaces)

    async def get(self, namespace: str, url: str) -> Optional[CachedResponse]:
        return self._namespaces.get(namespace, {}).get(url)

    async def put(self, namespace: str, entry: CachedResponse) -> None:
        self._namespaces.setdefault(namespace, {})[entry.url] = entry

    async def put_many(self, namespace: str, entries: list[CachedResponse]) -> None:
        staged = dict(self._namespaces.get(namespace, {}))
        for entry in entries:
            staged[entry.url] = entry
        self._namespaces[namespace] = staged

    async def delete_namespace(self, namespace: str) -> bool:
        return self._namespaces.pop(namespace, None) is not None


class DiskAssetCacheStorage(AssetCacheStorage):
    """
    diskcache-backed namespaces.

    Entries are tagged with their namespace so a whole namespace can be
    evicted in one call. The set of known namespaces is kept under a
    reserved key.
    """

    _NAMESPACES_KEY = "__namespaces__"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self._cache: Optional[diskcache.Cache] = None

    def _open(self) -> diskcache.Cache:
        if self._cache is None:
            self._cache = diskcache.Cache(str(self.directory), tag_index=True)
        return self._cache

    def _known(self, cache: diskcache.Cache) -> set[str]:
        return set(cache.get(self._NAMESPACES_KEY, default=set()))

    def _store(self, cache: diskcache.Cache, namespace: str, entry: CachedResponse) -> None:
        cache.set((namespace, entry.url), entry.model_dump(), tag=namespace)

    async def list_namespaces(self) -> list[str]:
        return sorted(self._known(self._open()))

    async def get(self, namespace: str, url: str) -> Optional[CachedResponse]:
        record = self._open().get((namespace, url), default=None)
        if record is None:
            return None
        return CachedResponse.model_validate(record)

    async def put(self, namespace: str, entry: CachedResponse) -> None:
        await self.put_many(namespace, [entry])

    async def put_many(self, namespace: str, entries: list[CachedResponse]) -> None:
        cache = self._open()
        with cache.transact():
            for entry in entries:
                self._store(cache, namespace, entry)
            cache.set(self._NAMESPACES_KEY, self._known(cache) | {namespace})

    async def delete_namespace(self, namespace: str) -> bool:
        cache = self._open()
        with cache.transact():
            known = self._known(cache)
            if namespace not in known:
                return False
            cache.evict(namespace)
            cache.set(self._NAMESPACES_KEY, known - {namespace})
        return True

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None
