"""
Unit tests for session storage backends.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError, OutOfMemoryError

from console_sync.app.caching.session_storage import MemorySessionStorage, RedisSessionStorage
from shared.errors import CacheStorageError, StorageQuotaExceeded


class TestMemorySessionStorage:
    """Test cases for MemorySessionStorage."""

    @pytest.mark.asyncio
    async def test_set_get_remove(self):
        storage = MemorySessionStorage()

        await storage.set_item("console:v1:GET:/products", '{"a": 1}')
        assert await storage.get_item("console:v1:GET:/products") == '{"a": 1}'

        await storage.remove_item("console:v1:GET:/products")
        assert await storage.get_item("console:v1:GET:/products") is None
        assert storage.usage == 0

    @pytest.mark.asyncio
    async def test_quota_exceeded(self):
        """Writes beyond the quota raise and leave storage untouched."""
        storage = MemorySessionStorage(quota_bytes=20)
        await storage.set_item("k1", "v" * 10)

        with pytest.raises(StorageQuotaExceeded) as exc_info:
            await storage.set_item("k2", "v" * 10)

        assert exc_info.value.code == "STORAGE_QUOTA_EXCEEDED"
        assert await storage.get_item("k2") is None
        assert storage.usage == 12

    @pytest.mark.asyncio
    async def test_overwrite_releases_previous_value(self):
        storage = MemorySessionStorage(quota_bytes=20)
        await storage.set_item("k1", "v" * 15)

        await storage.set_item("k1", "w" * 18)

        assert storage.usage == 20

    @pytest.mark.asyncio
    async def test_keys_and_clear_by_prefix(self):
        storage = MemorySessionStorage()
        await storage.set_item("console:v1:a", "1")
        await storage.set_item("console:v0:b", "2")
        await storage.set_item("other:c", "3")

        assert sorted(await storage.keys("console:")) == ["console:v0:b", "console:v1:a"]

        removed = await storage.clear("console:")

        assert removed == 2
        assert await storage.keys() == ["other:c"]


class TestRedisSessionStorage:
    """Test cases for RedisSessionStorage."""

    @pytest.fixture
    def storage(self):
        return RedisSessionStorage("redis://localhost:6379/0", session_id="sess-1", session_ttl=3600)

    @pytest.mark.asyncio
    async def test_set_item_uses_session_scope_and_ttl(self, storage):
        with patch.object(storage, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await storage.set_item("console:v1:GET:/products", "{}")

            mock_redis.setex.assert_called_once_with("session:sess-1:console:v1:GET:/products", 3600, "{}")

    @pytest.mark.asyncio
    async def test_set_item_without_ttl(self):
        storage = RedisSessionStorage("redis://localhost:6379/0", session_id="sess-1")

        with patch.object(storage, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await storage.set_item("k", "v")

            mock_redis.set.assert_called_once_with("session:sess-1:k", "v")

    @pytest.mark.asyncio
    async def test_out_of_memory_maps_to_quota(self, storage):
        with patch.object(storage, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.setex.side_effect = OutOfMemoryError("OOM command not allowed when used memory > 'maxmemory'")
            mock_get_redis.return_value = mock_redis

            with pytest.raises(StorageQuotaExceeded):
                await storage.set_item("k", "v")

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_storage_error(self, storage):
        with patch.object(storage, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.get.side_effect = RedisConnectionError("connection refused")
            mock_get_redis.return_value = mock_redis

            with pytest.raises(CacheStorageError) as exc_info:
                await storage.get_item("k")

            assert not isinstance(exc_info.value, StorageQuotaExceeded)

    @pytest.mark.asyncio
    async def test_keys_strip_session_scope(self, storage):
        async def scan(match):
            assert match == "session:sess-1:console:*"
            for key in ("session:sess-1:console:v1:a", "session:sess-1:console:v1:b"):
                yield key

        with patch.object(storage, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = MagicMock()
            mock_redis.scan_iter = scan
            mock_get_redis.return_value = mock_redis

            keys = await storage.keys("console:")

            assert keys == ["console:v1:a", "console:v1:b"]
