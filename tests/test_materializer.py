from decimal import Decimal

import pytest

from stonebridge.services.errors import ErrorKind, ExternalMutationError, NotFound, ValidationError
from stonebridge.services.materialization_cache import CachedVariant, InMemoryMaterializationCache
from stonebridge.services.materializer import VariantMaterializer, external_sku
from stonebridge.services.shopify_client import VariantRef

from tests.fakes import LABGROWN_PRODUCT, FakeShopifyClient


@pytest.fixture
def cache() -> InMemoryMaterializationCache:
    return InMemoryMaterializationCache()


@pytest.fixture
def materializer(fake_shopify: FakeShopifyClient, cache: InMemoryMaterializationCache) -> VariantMaterializer:
    return VariantMaterializer(fake_shopify, cache, container_title_prefix="External Dummy")


@pytest.mark.asyncio
async def test_materialize_creates_variant_and_caches_it(materializer, fake_shopify, cache):
    result = await materializer.materialize("lg-1", "labgrown", Decimal("1999.5"), payload={"carat": "1.2"})

    assert result.created is True
    assert result.from_cache is False
    assert result.product_id == LABGROWN_PRODUCT
    assert result.sku == external_sku("lg-1") == "EXT-lg-1"
    assert result.warnings == []
    assert fake_shopify.products[LABGROWN_PRODUCT][0].price == "1999.50"
    assert await cache.get_variant("lg-1") == CachedVariant(product_id=LABGROWN_PRODUCT, variant_id=result.variant_id)


@pytest.mark.asyncio
async def test_materialize_is_idempotent(materializer, fake_shopify, cache):
    first = await materializer.materialize("lg-2", "labgrown", 100)
    cache.clear()  # force the slow path: lookup by SKU must find the same variant
    second = await materializer.materialize("lg-2", "labgrown", 120)

    assert second.variant_id == first.variant_id
    assert second.created is False
    assert fake_shopify.count("create_variant") == 1
    assert len(fake_shopify.products[LABGROWN_PRODUCT]) == 1
    assert fake_shopify.products[LABGROWN_PRODUCT][0].price == "120.00"


@pytest.mark.asyncio
async def test_materialize_is_idempotent_on_a_crowded_product(fake_shopify):
    fake_shopify.products[LABGROWN_PRODUCT] = [
        VariantRef(id=f"gid://shopify/ProductVariant/{n}", sku=f"EXT-other-{n}", price="1.00") for n in range(300)
    ]

    first = await VariantMaterializer(fake_shopify, InMemoryMaterializationCache()).materialize("lg-x", "labgrown", 10)
    second = await VariantMaterializer(fake_shopify, InMemoryMaterializationCache()).materialize("lg-x", "labgrown", 12)

    assert second.variant_id == first.variant_id
    assert second.created is False
    assert [v.sku for v in fake_shopify.products[LABGROWN_PRODUCT]].count("EXT-lg-x") == 1


@pytest.mark.asyncio
async def test_cache_hit_reprices_without_lookup(materializer, fake_shopify):
    first = await materializer.materialize("lg-3", "labgrown", 100)
    lookups = fake_shopify.count("get_product_variants")

    second = await materializer.materialize("lg-3", "labgrown", 90)

    assert second.from_cache is True
    assert second.variant_id == first.variant_id
    assert fake_shopify.count("get_product_variants") == lookups
    assert fake_shopify.count("update_variant") == 1


@pytest.mark.asyncio
async def test_stale_cache_entry_falls_back_to_lookup(materializer, fake_shopify, cache):
    await cache.set_variant("lg-4", CachedVariant(product_id=LABGROWN_PRODUCT, variant_id="gid://shopify/ProductVariant/1"))
    fake_shopify.fail["update_variant"] = [ExternalMutationError("Variant update: Not Found")]

    result = await materializer.materialize("lg-4", "labgrown", 50)

    assert result.from_cache is False
    assert result.created is True
    assert (await cache.get_variant("lg-4")).variant_id == result.variant_id


@pytest.mark.asyncio
async def test_duplicate_on_create_reuses_concurrent_variant(materializer, fake_shopify):
    winner = VariantRef(id="gid://shopify/ProductVariant/77", sku="EXT-lg-5", price="10.00")
    original_list = fake_shopify.get_product_variants
    calls = {"n": 0}

    async def racing_list(product_id, page_size=250):
        calls["n"] += 1
        variants = await original_list(product_id, page_size)
        # The concurrent request's variant only shows up on the second lookup.
        return variants + [winner] if calls["n"] > 1 else variants

    fake_shopify.get_product_variants = racing_list
    fake_shopify.fail["create_variant"] = ExternalMutationError(
        "Variant create: already exists", kind=ErrorKind.DUPLICATE
    )

    result = await materializer.materialize("lg-5", "labgrown", 10)

    assert result.variant_id == winner.id
    assert result.created is False


@pytest.mark.asyncio
async def test_enrichment_failures_become_warnings(materializer, fake_shopify):
    fake_shopify.fail["publish_product"] = ExternalMutationError("No matching sales channel publications")
    fake_shopify.fail["set_variant_inventory"] = RuntimeError("location lookup timed out")

    result = await materializer.materialize("lg-6", "labgrown", 10, payload={"color": "E"})

    assert result.variant_id
    assert sorted(w.split(":")[0] for w in result.warnings) == ["inventory", "publish"]
    assert fake_shopify.count("set_metafields") == 1


@pytest.mark.asyncio
async def test_container_product_resolved_by_title(materializer, fake_shopify, cache):
    fake_shopify.products_by_title["External Dummy - natural"] = "gid://shopify/Product/200"

    result = await materializer.materialize("nat-1", "natural", 10)

    assert result.product_id == "gid://shopify/Product/200"
    assert await cache.get_product_id("natural") == "gid://shopify/Product/200"


@pytest.mark.asyncio
async def test_missing_container_product_is_not_found(materializer):
    with pytest.raises(NotFound) as exc_info:
        await materializer.materialize("m-1", "moissanite", 10)
    assert exc_info.value.code == "PRODUCT_NOT_FOUND"


@pytest.mark.asyncio
async def test_external_id_is_required(materializer):
    with pytest.raises(ValidationError):
        await materializer.materialize("", "labgrown", 10)


@pytest.mark.asyncio
async def test_payment_variant_reused_by_sku(materializer, fake_shopify):
    first = await materializer.materialize_payment_variant(
        "gid://shopify/Product/900", sku="DEP-abc-1", option_value="P1-abc", price=Decimal("300")
    )
    second = await materializer.materialize_payment_variant(
        "gid://shopify/Product/900", sku="DEP-abc-1", option_value="P1-abc", price=Decimal("300")
    )
    assert first.created is True
    assert second.created is False
    assert second.variant_id == first.variant_id
