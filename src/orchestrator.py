"""
Main Orchestrator for Invoice Pro

This module ties the components together for one user session:

    Synchronizer --load--> Controller --copy--> Coordinator (list / form)
    Coordinator --save/delete--> Controller --notify--> Synchronizer (flush)

DESIGN DECISION: The collection is loaded exactly once, before anything
can change it, and every committed change is flushed through an explicit
subscription. Nothing persists as a side effect of rendering.

The offline asset cache is independent of the invoice flow and is built
separately.
"""

from typing import Optional

import httpx
import structlog

from src.audit import AuditLogger
from src.config import AssetCacheSettings, StorageSettings, get_settings
from src.invoices import InvoiceCollectionController, ViewCoordinator
from src.models.invoice import IdGenerator
from src.services.export import InvoiceExporter
from src.services.offline import (
    AssetCacheStorage,
    DiskAssetCacheStorage,
    MemoryAssetCacheStorage,
    OfflineAssetCache,
)
from src.services.storage import (
    DiskKeyValueStore,
    InvoiceSynchronizer,
    KeyValueStoreInterface,
    MemoryKeyValueStore,
)

logger = structlog.get_logger(__name__)


class InvoiceSession:
    """
    Owns the invoice components for one session.

    Usage:
        session = InvoiceSession(MemoryKeyValueStore())
        await session.start()
        await session.coordinator.create_new()
    """

    def __init__(
        self,
        store: KeyValueStoreInterface,
        key: Optional[str] = None,
        audit_logger: Optional[AuditLogger] = None,
        id_generator: Optional[IdGenerator] = None,
        exporter: Optional[InvoiceExporter] = None,
    ):
        self.audit_logger = audit_logger or AuditLogger()
        self.store = store
        self.synchronizer = InvoiceSynchronizer(
            store,
            key=key or get_settings().storage.key,
            audit_logger=self.audit_logger,
        )
        self.controller = InvoiceCollectionController(
            id_generator=id_generator,
            audit_logger=self.audit_logger,
        )
        self.coordinator = ViewCoordinator(self.controller, audit_logger=self.audit_logger)
        self.exporter = exporter or InvoiceExporter(audit_logger=self.audit_logger)

        self.controller.subscribe(self.synchronizer.save)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> int:
        """
        Load the stored collection into the controller.

        Idempotent: only the first call reads storage.

        Returns:
            Number of invoices in the collection
        """
        if self._started:
            return len(self.controller)

        self._started = True
        invoices = await self.synchronizer.load()
        self.controller.hydrate(invoices)
        logger.info("session_started", invoices=len(invoices), key=self.synchronizer.key)
        return len(invoices)


def create_store(settings: Optional[StorageSettings] = None) -> KeyValueStoreInterface:
    """Build the configured key-value store."""
    settings = settings or get_settings().storage
    if settings.backend == "memory":
        return MemoryKeyValueStore(quota_bytes=settings.quota_bytes)
    return DiskKeyValueStore(
        settings.path,
        quota_bytes=settings.quota_bytes,
        lock_timeout_seconds=settings.lock_timeout_seconds,
    )


def create_asset_cache(
    settings: Optional[AssetCacheSettings] = None,
    network: Optional[httpx.AsyncBaseTransport] = None,
    storage: Optional[AssetCacheStorage] = None,
    audit_logger: Optional[AuditLogger] = None,
    persistent: bool = True,
) -> OfflineAssetCache:
    """Build the offline cache for the configured shell origin."""
    settings = settings or get_settings().asset_cache
    if storage is None:
        storage = DiskAssetCacheStorage(settings.path) if persistent else MemoryAssetCacheStorage()
    return OfflineAssetCache(
        storage=storage,
        network=network or httpx.AsyncHTTPTransport(),
        cache_name=settings.cache_name,
        manifest=settings.manifest_list,
        origin=settings.origin,
        fetch_attempts=settings.fetch_attempts,
        audit_logger=audit_logger,
    )


def create_app_components(
    use_storage: bool = True,
) -> tuple[InvoiceSession, OfflineAssetCache]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured durable store.
                    Set to False for an in-memory session (demos, tests).

    Returns:
        (session, asset_cache)
    """
    audit_logger = AuditLogger()

    if use_storage:
        store = create_store()
    else:
        store = MemoryKeyValueStore()

    session = InvoiceSession(store, audit_logger=audit_logger)
    asset_cache = create_asset_cache(audit_logger=audit_logger, persistent=use_storage)
    return session, asset_cache
