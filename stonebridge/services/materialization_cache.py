"""Materialization cache.

Maps an external item id to the (product id, variant id) it was materialized
as, and a source type to its container product id. The cache is an
optimization only: the platform-side find-by-SKU check is the real
idempotency guard, so a stale or missing entry costs one extra round trip.

Two backends share one interface and are injected into the materializer:
- InMemoryMaterializationCache: process-local dict, lives until restart
- RedisMaterializationCache: shared across API instances
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
import logging

from stonebridge.settings import get_settings
from stonebridge.stores.redis import (
    PREFIX_CONTAINER_PRODUCT,
    PREFIX_MATERIALIZED_VARIANT,
    TTL_CONTAINER_PRODUCT,
    TTL_MATERIALIZED_VARIANT,
    cache_get,
    cache_get_json,
    cache_set,
    cache_set_json,
    is_redis_configured,
)

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class CachedVariant:
    product_id: str
    variant_id: str


class MaterializationCache(ABC):
    """Key-value store for materialization results."""

    @abstractmethod
    async def get_variant(self, external_id: str) -> CachedVariant | None: ...

    @abstractmethod
    async def set_variant(self, external_id: str, entry: CachedVariant) -> None: ...

    @abstractmethod
    async def get_product_id(self, source_type: str) -> str | None: ...

    @abstractmethod
    async def set_product_id(self, source_type: str, product_id: str) -> None: ...


class InMemoryMaterializationCache(MaterializationCache):
    """Process-local cache without eviction."""

    def __init__(self) -> None:
        self._variants: dict[str, CachedVariant] = {}
        self._products: dict[str, str] = {}

    async def get_variant(self, external_id: str) -> CachedVariant | None:
        return self._variants.get(external_id)

    async def set_variant(self, external_id: str, entry: CachedVariant) -> None:
        self._variants[external_id] = entry

    async def get_product_id(self, source_type: str) -> str | None:
        return self._products.get(source_type)

    async def set_product_id(self, source_type: str, product_id: str) -> None:
        self._products[source_type] = product_id

    def clear(self) -> None:
        self._variants.clear()
        self._products.clear()

    def __len__(self) -> int:
        return len(self._variants)


class RedisMaterializationCache(MaterializationCache):
    """Shared cache backed by the Redis store.

    Redis failures degrade to a cache miss: the materializer then takes the
    slow path against the platform.
    """

    async def get_variant(self, external_id: str) -> CachedVariant | None:
        try:
            payload = await cache_get_json(f"{PREFIX_MATERIALIZED_VARIANT}{external_id}")
        except Exception as e:
            logger.warning(f"Materialization cache read failed for {external_id}: {e}")
            return None
        if not payload:
            return None
        try:
            return CachedVariant(
                product_id=str(payload["product_id"]),
                variant_id=str(payload["variant_id"]),
            )
        except KeyError:
            return None

    async def set_variant(self, external_id: str, entry: CachedVariant) -> None:
        try:
            await cache_set_json(
                f"{PREFIX_MATERIALIZED_VARIANT}{external_id}",
                asdict(entry),
                TTL_MATERIALIZED_VARIANT,
            )
        except Exception as e:
            logger.warning(f"Materialization cache write failed for {external_id}: {e}")

    async def get_product_id(self, source_type: str) -> str | None:
        try:
            return await cache_get(f"{PREFIX_CONTAINER_PRODUCT}{source_type}")
        except Exception as e:
            logger.warning(f"Container product cache read failed for {source_type}: {e}")
            return None

    async def set_product_id(self, source_type: str, product_id: str) -> None:
        try:
            await cache_set(f"{PREFIX_CONTAINER_PRODUCT}{source_type}", product_id, TTL_CONTAINER_PRODUCT)
        except Exception as e:
            logger.warning(f"Container product cache write failed for {source_type}: {e}")


_cache: MaterializationCache | None = None


def get_materialization_cache() -> MaterializationCache:
    """Get the configured cache backend (singleton)."""
    global _cache
    if _cache is None:
        backend = get_settings().materialization_cache_backend
        if backend == "redis" and is_redis_configured():
            _cache = RedisMaterializationCache()
        else:
            if backend == "redis":
                logger.warning("Redis not available, using in-memory materialization cache")
            _cache = InMemoryMaterializationCache()
        logger.info(f"Materialization cache backend: {type(_cache).__name__}")
    return _cache


def reset_materialization_cache() -> None:
    """Drop the singleton (called on shutdown)."""
    global _cache
    _cache = None
