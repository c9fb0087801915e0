"""Tests for the offline asset cache."""

import httpx
import pytest

from src.models.audit import AuditEventType
from src.services.offline import (
    AssetCacheError,
    AssetInstallError,
    CacheState,
    CachedResponse,
    DiskAssetCacheStorage,
    MemoryAssetCacheStorage,
    OfflineAssetCache,
    OfflineCacheTransport,
)

ORIGIN = "http://localhost:8501"
MANIFEST = ["/", "/index.html", "/index.tsx", "/manifest.json"]
CACHE_NAME = "invoice-pro-cache-v2"


class FakeNetwork:
    """Serves fixed bodies and records every request that reaches it."""

    def __init__(self, routes=None, fail=()):
        self.routes = routes or {}
        self.fail = set(fail)
        self.requests = []
        self.online = True

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, str(request.url)))
        if not self.online or request.url.path in self.fail:
            raise httpx.ConnectError("offline", request=request)
        if str(request.url) in self.routes:
            status, headers, body = self.routes[str(request.url)]
            return httpx.Response(status, headers=headers, content=body)
        if request.url.host == "localhost":
            return httpx.Response(200, content=f"asset {request.url.path}".encode())
        return httpx.Response(404)


def make_cache(network, storage=None, audit_logger=None, manifest=MANIFEST):
    return OfflineAssetCache(
        storage=storage or MemoryAssetCacheStorage(),
        network=httpx.MockTransport(network),
        cache_name=CACHE_NAME,
        manifest=manifest,
        origin=ORIGIN,
        fetch_attempts=2,
        audit_logger=audit_logger,
    )


async def ready_cache(network, storage=None):
    cache = make_cache(network, storage)
    await cache.install()
    await cache.activate()
    return cache


class TestInstall:

    def test_install_caches_every_manifest_asset(self, event_loop):
        async def scenario():
            storage = MemoryAssetCacheStorage()
            cache = make_cache(FakeNetwork(), storage)

            urls = await cache.install()

            assert urls == [f"{ORIGIN}{path}" for path in MANIFEST]
            entry = await storage.get(CACHE_NAME, f"{ORIGIN}/index.html")
            assert entry.content == b"asset /index.html"
            assert cache.state == CacheState.INSTALLED

        event_loop.run_until_complete(scenario())

    def test_install_is_all_or_nothing_on_bad_status(self, event_loop, audit_logger):
        """One missing asset and nothing is cached."""
        async def scenario():
            network = FakeNetwork(routes={f"{ORIGIN}/index.tsx": (404, {}, b"")})
            storage = MemoryAssetCacheStorage()
            cache = make_cache(network, storage, audit_logger)

            with pytest.raises(AssetInstallError) as exc_info:
                await cache.install()

            assert exc_info.value.asset == "/index.tsx"
            assert await storage.list_namespaces() == []
            assert cache.state == CacheState.NEW
            assert audit_logger.recent_failures()[0].event_type == AuditEventType.ASSET_CACHE_INSTALL_FAILED

        event_loop.run_until_complete(scenario())

    def test_install_fails_on_transport_error_after_retries(self, event_loop):
        async def scenario():
            network = FakeNetwork(fail={"/manifest.json"})
            storage = MemoryAssetCacheStorage()
            cache = make_cache(network, storage)

            with pytest.raises(AssetInstallError):
                await cache.install()

            attempts = [url for _, url in network.requests if url.endswith("/manifest.json")]
            assert len(attempts) == 2
            assert await storage.list_namespaces() == []

        event_loop.run_until_complete(scenario())

    def test_activate_before_install_is_an_error(self, event_loop):
        async def scenario():
            with pytest.raises(AssetCacheError):
                await make_cache(FakeNetwork()).activate()

        event_loop.run_until_complete(scenario())


class TestActivate:

    def test_activation_evicts_other_namespaces(self, event_loop):
        async def scenario():
            storage = MemoryAssetCacheStorage()
            old = CachedResponse(url=f"{ORIGIN}/", status_code=200, content=b"old shell")
            await storage.put("invoice-pro-cache-v1", old)
            await storage.put("unrelated", old)

            cache = make_cache(FakeNetwork(), storage)
            await cache.install()
            deleted = await cache.activate()

            assert sorted(deleted) == ["invoice-pro-cache-v1", "unrelated"]
            assert await storage.list_namespaces() == [CACHE_NAME]

        event_loop.run_until_complete(scenario())

    def test_activation_claims_registered_clients(self, event_loop):
        async def scenario():
            cache = make_cache(FakeNetwork())
            assert cache.register_client("tab-1") is False
            await cache.install()
            await cache.activate()

            assert cache.controls("tab-1")
            assert cache.register_client("tab-2") is True
            assert cache.controls("tab-2")

        event_loop.run_until_complete(scenario())


class TestFetch:

    def test_cache_hit_skips_network(self, event_loop):
        async def scenario():
            network = FakeNetwork()
            cache = await ready_cache(network)
            before = len(network.requests)

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                response = await client.get(f"{ORIGIN}/index.html")

            assert response.text == "asset /index.html"
            assert len(network.requests) == before

        event_loop.run_until_complete(scenario())

    def test_cached_assets_served_offline(self, event_loop):
        async def scenario():
            network = FakeNetwork()
            cache = await ready_cache(network)
            network.online = False

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                response = await client.get(f"{ORIGIN}/manifest.json#section")

            assert response.status_code == 200

        event_loop.run_until_complete(scenario())

    def test_miss_goes_to_network_and_is_stored(self, event_loop):
        async def scenario():
            network = FakeNetwork()
            storage = MemoryAssetCacheStorage()
            cache = await ready_cache(network, storage)

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                first = await client.get(f"{ORIGIN}/logo.png")
                network.online = False
                second = await client.get(f"{ORIGIN}/logo.png")

            assert first.content == second.content == b"asset /logo.png"
            assert await storage.get(CACHE_NAME, f"{ORIGIN}/logo.png") is not None

        event_loop.run_until_complete(scenario())

    def test_non_get_passes_through(self, event_loop):
        async def scenario():
            network = FakeNetwork()
            storage = MemoryAssetCacheStorage()
            cache = await ready_cache(network, storage)

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                await client.post(f"{ORIGIN}/index.html", content=b"x")

            assert network.requests[-1] == ("POST", f"{ORIGIN}/index.html")
            entry = await storage.get(CACHE_NAME, f"{ORIGIN}/index.html")
            assert entry.content == b"asset /index.html"

        event_loop.run_until_complete(scenario())

    def test_opaque_response_is_not_cached(self, event_loop):
        """Cross-origin responses without a CORS grant are passed through only."""
        async def scenario():
            cdn = "https://cdn.example.com/lib.js"
            network = FakeNetwork(routes={cdn: (200, {}, b"lib")})
            storage = MemoryAssetCacheStorage()
            cache = await ready_cache(network, storage)

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                response = await client.get(cdn)

            assert response.content == b"lib"
            assert await storage.get(CACHE_NAME, cdn) is None

        event_loop.run_until_complete(scenario())

    def test_cors_response_is_cached(self, event_loop):
        async def scenario():
            cdn = "https://cdn.example.com/lib.js"
            network = FakeNetwork(routes={cdn: (200, {"Access-Control-Allow-Origin": "*"}, b"lib")})
            storage = MemoryAssetCacheStorage()
            cache = await ready_cache(network, storage)

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                await client.get(cdn)

            assert await storage.get(CACHE_NAME, cdn) is not None

        event_loop.run_until_complete(scenario())

    def test_network_failure_without_cache_propagates(self, event_loop, audit_logger):
        async def scenario():
            network = FakeNetwork()
            cache = make_cache(network, audit_logger=audit_logger)
            await cache.install()
            await cache.activate()
            network.online = False

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                with pytest.raises(httpx.ConnectError):
                    await client.get(f"{ORIGIN}/not-cached.js")

            assert audit_logger.recent_events(1)[0].event_type == AuditEventType.ASSET_FETCH_FAILED

        event_loop.run_until_complete(scenario())

    def test_network_failure_with_long_url_propagates(self, event_loop, audit_logger):
        async def scenario():
            network = FakeNetwork()
            cache = make_cache(network, audit_logger=audit_logger)
            await cache.install()
            await cache.activate()
            network.online = False
            url = f"{ORIGIN}/{'x' * 600}.js"

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                with pytest.raises(httpx.ConnectError):
                    await client.get(url)

            event = audit_logger.recent_events(1)[0]
            assert event.event_type == AuditEventType.ASSET_FETCH_FAILED
            assert event.entity_id == url

        event_loop.run_until_complete(scenario())

    def test_requests_pass_through_before_activation(self, event_loop):
        async def scenario():
            network = FakeNetwork()
            storage = MemoryAssetCacheStorage()
            cache = make_cache(network, storage)
            await cache.install()

            async with httpx.AsyncClient(transport=OfflineCacheTransport(cache)) as client:
                await client.get(f"{ORIGIN}/index.html")
                await client.get(f"{ORIGIN}/other.js")

            assert network.requests[-1] == ("GET", f"{ORIGIN}/other.js")
            assert await storage.get(CACHE_NAME, f"{ORIGIN}/other.js") is None

        event_loop.run_until_complete(scenario())


class TestDiskAssetCacheStorage:

    def test_namespaces_survive_reopen(self, event_loop, tmp_path):
        async def scenario():
            storage = DiskAssetCacheStorage(tmp_path / "assets")
            await storage.put_many("v1", [CachedResponse(url="http://x/", status_code=200, content=b"a")])
            await storage.put_many("v2", [CachedResponse(url="http://x/", status_code=200, content=b"b")])
            storage.close()

            reopened = DiskAssetCacheStorage(tmp_path / "assets")
            assert await reopened.list_namespaces() == ["v1", "v2"]
            assert (await reopened.get("v2", "http://x/")).content == b"b"
            reopened.close()

        event_loop.run_until_complete(scenario())

    def test_delete_namespace(self, event_loop, tmp_path):
        async def scenario():
            storage = DiskAssetCacheStorage(tmp_path / "assets")
            await storage.put("v1", CachedResponse(url="http://x/", status_code=200))

            assert await storage.delete_namespace("v1") is True
            assert await storage.delete_namespace("v1") is False
            assert await storage.get("v1", "http://x/") is None
            assert await storage.list_namespaces() == []
            storage.close()

        event_loop.run_until_complete(scenario())

    def test_full_lifecycle_on_disk(self, event_loop, tmp_path):
        async def scenario():
            storage = DiskAssetCacheStorage(tmp_path / "assets")
            cache = await ready_cache(FakeNetwork(), storage)
            assert await cache.namespaces() == [CACHE_NAME]
            entry = await storage.get(CACHE_NAME, f"{ORIGIN}/")
            assert entry.to_response().text == "asset /"
            storage.close()

        event_loop.run_until_complete(scenario())
