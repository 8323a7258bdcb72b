"""Tests for the materialization cache backends."""

import pytest

from stonebridge.services import materialization_cache
from stonebridge.services.materialization_cache import (
    CachedVariant,
    InMemoryMaterializationCache,
    RedisMaterializationCache,
    get_materialization_cache,
    reset_materialization_cache,
)
from stonebridge.stores import redis as redis_store


class DictRedis:
    """Just the commands the store helpers issue."""

    def __init__(self, fail: bool = False) -> None:
        self.data: dict[str, str] = {}
        self.fail = fail

    async def get(self, key: str) -> str | None:
        if self.fail:
            raise ConnectionError("redis down")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail:
            raise ConnectionError("redis down")
        self.data[key] = value

    async def setex(self, key: str, ttl: int, value: str) -> None:
        await self.set(key, value)


@pytest.mark.asyncio
async def test_in_memory_cache_roundtrip():
    cache = InMemoryMaterializationCache()
    assert await cache.get_variant("lg-1") is None

    await cache.set_variant("lg-1", CachedVariant(product_id="p1", variant_id="v1"))
    await cache.set_product_id("labgrown", "p1")

    assert await cache.get_variant("lg-1") == CachedVariant(product_id="p1", variant_id="v1")
    assert await cache.get_product_id("labgrown") == "p1"
    assert len(cache) == 1

    cache.clear()
    assert await cache.get_variant("lg-1") is None


@pytest.mark.asyncio
async def test_redis_cache_stores_json_entries(monkeypatch: pytest.MonkeyPatch):
    fake = DictRedis()
    monkeypatch.setattr(redis_store, "_redis", fake)
    cache = RedisMaterializationCache()

    await cache.set_variant("lg-1", CachedVariant(product_id="p1", variant_id="v1"))
    await cache.set_product_id("natural", "p2")

    assert f"{redis_store.PREFIX_MATERIALIZED_VARIANT}lg-1" in fake.data
    assert await cache.get_variant("lg-1") == CachedVariant(product_id="p1", variant_id="v1")
    assert await cache.get_product_id("natural") == "p2"


@pytest.mark.asyncio
async def test_redis_failures_degrade_to_miss(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(redis_store, "_redis", DictRedis(fail=True))
    cache = RedisMaterializationCache()

    await cache.set_variant("lg-1", CachedVariant(product_id="p1", variant_id="v1"))
    assert await cache.get_variant("lg-1") is None
    assert await cache.get_product_id("labgrown") is None


@pytest.mark.asyncio
async def test_redis_entry_missing_fields_is_a_miss(monkeypatch: pytest.MonkeyPatch):
    fake = DictRedis()
    fake.data[f"{redis_store.PREFIX_MATERIALIZED_VARIANT}lg-1"] = '{"product_id": "p1"}'
    monkeypatch.setattr(redis_store, "_redis", fake)

    assert await RedisMaterializationCache().get_variant("lg-1") is None


def test_backend_selection_falls_back_to_memory(monkeypatch: pytest.MonkeyPatch):
    settings = materialization_cache.get_settings().model_copy(update={"materialization_cache_backend": "redis"})
    monkeypatch.setattr(materialization_cache, "get_settings", lambda: settings)
    reset_materialization_cache()
    try:
        monkeypatch.setattr(materialization_cache, "is_redis_configured", lambda: False)
        assert isinstance(get_materialization_cache(), InMemoryMaterializationCache)

        reset_materialization_cache()
        monkeypatch.setattr(materialization_cache, "is_redis_configured", lambda: True)
        assert isinstance(get_materialization_cache(), RedisMaterializationCache)
    finally:
        reset_materialization_cache()
