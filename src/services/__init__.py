"""Services package."""

from src.services.export import (
    ExportError,
    ExportResult,
    InvoiceExporter,
    PillowInvoiceRenderer,
)
from src.services.offline import (
    AssetCacheError,
    AssetInstallError,
    OfflineAssetCache,
    OfflineCacheTransport,
)
from src.services.storage import (
    DiskKeyValueStore,
    InvoiceSynchronizer,
    KeyValueStoreInterface,
    MemoryKeyValueStore,
    QuotaExceededError,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Export
    "ExportError",
    "ExportResult",
    "InvoiceExporter",
    "PillowInvoiceRenderer",
    # Offline cache
    "AssetCacheError",
    "AssetInstallError",
    "OfflineAssetCache",
    "OfflineCacheTransport",
    # Storage
    "DiskKeyValueStore",
    "InvoiceSynchronizer",
    "KeyValueStoreInterface",
    "MemoryKeyValueStore",
    "QuotaExceededError",
    "StorageConnectionError",
    "StorageError",
]
