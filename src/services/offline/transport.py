"""httpx transport that routes requests through the offline asset cache."""

import httpx

from src.services.offline.asset_cache import OfflineAssetCache


class OfflineCacheTransport(httpx.AsyncBaseTransport):
    """
    Plug the cache policy into any httpx.AsyncClient.

    Usage:
        transport = OfflineCacheTransport(cache)
        async with httpx.AsyncClient(transport=transport) as client:
            await client.get(url)
    """

    def __init__(self, cache: OfflineAssetCache):
        self.cache = cache

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.cache.handle(request)

    async def aclose(self) -> None:
        await self.cache.network.aclose()
