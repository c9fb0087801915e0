"""
Offline Asset Cache

Cache-then-network policy for the application shell, keyed by a versioned
namespace (e.g. invoice-pro-cache-v2).

LIFECYCLE:
1. install()   - fetch every manifest asset; all or nothing
2. activate()  - drop every other namespace, claim registered clients
3. handle()    - serve GET requests from the cache, falling back to network

Install skips waiting: activate() may be called straight after it.
Until activation, requests go straight to the network.

DESIGN DECISION: Only GET is cached. Opaque responses (cross-origin with
no CORS grant) are passed through but never stored, since their status
cannot be trusted.
"""

from enum import Enum
from typing import Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.audit import AuditLogger
from src.models.audit import AuditEventBuilder
from src.services.offline.storage import AssetCacheStorage, CachedResponse

logger = structlog.get_logger(__name__)


class AssetCacheError(Exception):
    """Base exception for the offline asset cache."""
    pass


class AssetInstallError(AssetCacheError):
    """A manifest asset could not be fetched; nothing was cached."""

    def __init__(self, asset: str, reason: str):
        self.asset = asset
        self.reason = reason
        super().__init__(f"Could not cache {asset}: {reason}")


class CacheState(str, Enum):
    NEW = "new"
    INSTALLED = "installed"
    ACTIVE = "active"


def cache_key(url: httpx.URL | str) -> str:
    """Entries match on the URL without its fragment."""
    return str(httpx.URL(url).copy_with(fragment=None))


def _origin_of(url: httpx.URL) -> tuple[str, str, Optional[int]]:
    default_port = {"http": 80, "https": 443}.get(url.scheme)
    return url.scheme, url.host, url.port or default_port


class OfflineAssetCache:
    """
    One versioned cache namespace and the policy around it.

    Usage:
        cache = OfflineAssetCache(storage, httpx.AsyncHTTPTransport(), "invoice-pro-cache-v2",
                                  ["/", "/index.html"], origin="http://localhost:8501")
        await cache.install()
        await cache.activate()
        async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
            response = await client.get("http://localhost:8501/index.html")
    """

    def __init__(
        self,
        storage: AssetCacheStorage,
        network: httpx.AsyncBaseTransport,
        cache_name: str,
        manifest: list[str],
        origin: str,
        fetch_attempts: int = 3,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self.network = network
        self.cache_name = cache_name
        self.manifest = list(manifest)
        self.origin = httpx.URL(origin)
        self._fetch_attempts = fetch_attempts
        self._audit_logger = audit_logger
        self._state = CacheState.NEW
        self._clients: set[str] = set()
        self._controlled: set[str] = set()

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == CacheState.ACTIVE

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    def asset_url(self, path: str) -> httpx.URL:
        return self.origin.join(path)

    async def namespaces(self) -> list[str]:
        """Every namespace currently held in storage, this one included."""
        return await self._storage.list_namespaces()

    # -------------------------------------------------------------------------
    # Install
    # -------------------------------------------------------------------------

    async def _fetch_for_install(self, url: httpx.URL) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self._fetch_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
            reraise=True,
        ):
            with attempt:
                return await self.network.handle_async_request(httpx.Request("GET", url))

    async def install(self) -> list[str]:
        """
        Pre-cache every manifest asset.

        Returns:
            The cached URLs

        Raises:
            AssetInstallError: If any asset fails; the cache is left untouched
        """
        entries = []
        for path in self.manifest:
            url = self.asset_url(path)
            try:
                response = await self._fetch_for_install(url)
            except httpx.TransportError as e:
                await self._install_failed(path, str(e))
                raise AssetInstallError(path, str(e))

            entry = await CachedResponse.from_response(cache_key(url), response)
            await response.aclose()
            if not response.is_success:
                reason = f"HTTP {response.status_code}"
                await self._install_failed(path, reason)
                raise AssetInstallError(path, reason)
            entries.append(entry)

        await self._storage.put_many(self.cache_name, entries)
        # Skip waiting: ready to activate immediately
        self._state = CacheState.INSTALLED

        urls = [entry.url for entry in entries]
        logger.info("asset_cache_installed", cache_name=self.cache_name, assets=len(urls))
        await self._audit(AuditEventBuilder.asset_cache_installed(self.cache_name, urls))
        return urls

    async def _install_failed(self, asset: str, reason: str) -> None:
        logger.error("asset_cache_install_failed", cache_name=self.cache_name, asset=asset, error=reason)
        await self._audit(AuditEventBuilder.asset_cache_install_failed(self.cache_name, asset, reason))

    # -------------------------------------------------------------------------
    # Activate
    # -------------------------------------------------------------------------

    def register_client(self, client_id: str) -> bool:
        """
        Track a client session.

        Returns:
            True if the client is controlled right away (cache already active)
        """
        self._clients.add(client_id)
        if self.is_active:
            self._controlled.add(client_id)
            return True
        return False

    def controls(self, client_id: str) -> bool:
        return client_id in self._controlled

    async def activate(self) -> list[str]:
        """
        Remove every other namespace and claim all registered clients.

        Returns:
            The deleted namespace names

        Raises:
            AssetCacheError: If install has not completed
        """
        if self._state == CacheState.NEW:
            raise AssetCacheError("Cannot activate before install has completed")

        deleted = []
        for namespace in await self._storage.list_namespaces():
            if namespace != self.cache_name and await self._storage.delete_namespace(namespace):
                deleted.append(namespace)

        self._controlled = set(self._clients)
        self._state = CacheState.ACTIVE

        logger.info(
            "asset_cache_activated",
            cache_name=self.cache_name,
            deleted=deleted,
            claimed=len(self._controlled),
        )
        await self._audit(
            AuditEventBuilder.asset_cache_activated(self.cache_name, deleted, len(self._controlled))
        )
        return deleted

    # -------------------------------------------------------------------------
    # Fetch
    # -------------------------------------------------------------------------

    def is_opaque(self, request: httpx.Request, response: httpx.Response) -> bool:
        """Cross-origin with no Access-Control-Allow-Origin granting this origin."""
        if _origin_of(request.url) == _origin_of(self.origin):
            return False
        allowed = response.headers.get("access-control-allow-origin")
        if allowed is None:
            return True
        return allowed.strip() not in ("*", str(self.origin).rstrip("/"))

    async def handle(self, request: httpx.Request) -> httpx.Response:
        """
        Serve one request under the cache-then-network policy.

        Raises:
            httpx.TransportError: Network failure with nothing cached
        """
        if request.method != "GET" or not self.is_active:
            return await self.network.handle_async_request(request)

        key = cache_key(request.url)
        cached = await self._storage.get(self.cache_name, key)
        if cached is not None:
            logger.debug("asset_cache_hit", url=key)
            return cached.to_response(request)

        try:
            response = await self.network.handle_async_request(request)
        except httpx.TransportError as e:
            logger.error("asset_fetch_failed", url=key, error=str(e))
            await self._audit(AuditEventBuilder.asset_fetch_failed(key, str(e)))
            raise

        entry = await CachedResponse.from_response(key, response)
        await response.aclose()
        if not self.is_opaque(request, response):
            await self._storage.put(self.cache_name, entry)
        return entry.to_response(request)
