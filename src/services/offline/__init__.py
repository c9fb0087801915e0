"""Offline caching of the application shell assets."""

from src.services.offline.asset_cache import (
    AssetCacheError,
    AssetInstallError,
    CacheState,
    OfflineAssetCache,
    cache_key,
)
from src.services.offline.storage import (
    AssetCacheStorage,
    CachedResponse,
    DiskAssetCacheStorage,
    MemoryAssetCacheStorage,
)
from src.services.offline.transport import OfflineCacheTransport

__all__ = [
    # Policy
    "AssetCacheError",
    "AssetInstallError",
    "CacheState",
    "OfflineAssetCache",
    "OfflineCacheTransport",
    "cache_key",
    # Storage
    "AssetCacheStorage",
    "CachedResponse",
    "DiskAssetCacheStorage",
    "MemoryAssetCacheStorage",
]
