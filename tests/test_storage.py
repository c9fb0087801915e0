"""Tests for the key-value stores."""

import diskcache
import pytest

from src.services.storage import (
    DiskKeyValueStore,
    MemoryKeyValueStore,
    QuotaExceededError,
    StorageError,
)


class TestMemoryKeyValueStore:

    def test_get_missing_key_is_none(self, event_loop):
        async def scenario():
            store = MemoryKeyValueStore()
            assert await store.get("invoices") is None

        event_loop.run_until_complete(scenario())

    def test_set_then_get(self, event_loop):
        async def scenario():
            store = MemoryKeyValueStore()
            await store.set("invoices", "[]")
            assert await store.get("invoices") == "[]"
            assert store.write_count == 1

        event_loop.run_until_complete(scenario())

    def test_initial_values(self, event_loop):
        async def scenario():
            store = MemoryKeyValueStore({"invoices": "corrupt"})
            assert await store.get("invoices") == "corrupt"

        event_loop.run_until_complete(scenario())

    def test_quota_is_enforced_in_bytes(self, event_loop):
        """Multi-byte characters count by their UTF-8 size."""
        async def scenario():
            store = MemoryKeyValueStore(quota_bytes=4)
            await store.set("k", "abcd")
            with pytest.raises(QuotaExceededError) as exc_info:
                await store.set("k", "½½½")
            assert exc_info.value.size == 6
            assert isinstance(exc_info.value, StorageError)
            assert await store.get("k") == "abcd"

        event_loop.run_until_complete(scenario())

    def test_delete(self, event_loop):
        async def scenario():
            store = MemoryKeyValueStore({"k": "v"})
            assert await store.delete("k") is True
            assert await store.delete("k") is False

        event_loop.run_until_complete(scenario())


class TestDiskKeyValueStore:

    def test_values_survive_reopen(self, event_loop, tmp_path):
        async def scenario():
            store = DiskKeyValueStore(tmp_path / "store")
            await store.set("invoices", '{"schemaVersion": 1, "invoices": []}')
            store.close()

            reopened = DiskKeyValueStore(tmp_path / "store")
            assert await reopened.get("invoices") == '{"schemaVersion": 1, "invoices": []}'
            reopened.close()

        event_loop.run_until_complete(scenario())

    def test_missing_key_is_none(self, event_loop, tmp_path):
        async def scenario():
            store = DiskKeyValueStore(tmp_path / "store")
            assert await store.get("invoices") is None
            store.close()

        event_loop.run_until_complete(scenario())

    def test_quota(self, event_loop, tmp_path):
        async def scenario():
            store = DiskKeyValueStore(tmp_path / "store", quota_bytes=2)
            with pytest.raises(QuotaExceededError):
                await store.set("invoices", "[1, 2]")
            assert await store.get("invoices") is None
            store.close()

        event_loop.run_until_complete(scenario())

    def test_non_text_value_is_an_error(self, event_loop, tmp_path):
        async def scenario():
            with diskcache.Cache(str(tmp_path / "store")) as cache:
                cache.set("invoices", b"\x00\x01")
            store = DiskKeyValueStore(tmp_path / "store")
            with pytest.raises(StorageError):
                await store.get("invoices")
            store.close()

        event_loop.run_until_complete(scenario())

    def test_lock_timeout_is_retried(self, event_loop, tmp_path, monkeypatch):
        """A transient lock timeout does not fail the write."""
        async def scenario():
            store = DiskKeyValueStore(tmp_path / "store")
            cache = store._open()
            original_set = cache.set
            calls = []

            def flaky_set(key, value, *args, **kwargs):
                calls.append(key)
                if len(calls) == 1:
                    raise diskcache.Timeout("locked")
                return original_set(key, value, *args, **kwargs)

            monkeypatch.setattr(cache, "set", flaky_set)
            await store.set("invoices", "[]")
            assert len(calls) == 2
            assert await store.get("invoices") == "[]"
            store.close()

        event_loop.run_until_complete(scenario())

    def test_persistent_timeout_becomes_storage_error(self, event_loop, tmp_path, monkeypatch):
        async def scenario():
            store = DiskKeyValueStore(tmp_path / "store")
            cache = store._open()

            def always_locked(*args, **kwargs):
                raise diskcache.Timeout("locked")

            monkeypatch.setattr(cache, "set", always_locked)
            with pytest.raises(StorageError):
                await store.set("invoices", "[]")
            store.close()

        event_loop.run_until_complete(scenario())
