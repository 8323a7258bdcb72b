"""Variant materializer.

Finds or creates the platform variant for an external catalog item, and the
single-use payment variants used by deposit sessions.

Flow for an external item (materialize):
1. Cache fast path: re-price the cached variant, enrich, return. A failed
   update falls through to the slow path.
2. Resolve the container product for the source type (cache, metafield
   custom.source_type, then title "{prefix} - {source_type}").
3. Find the variant with SKU EXT-{external_id}; re-price it, or create it with
   option1 = external_id. A duplicate error on create means a concurrent
   request won the race: re-list and reuse.
4. Enrich in parallel (inventory = 1, publish, metafields). Enrichment
   failures are returned as warnings and never fail the call.

The cache is written only after the variant id is confirmed by the platform.
"""

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from decimal import Decimal
import json
import logging
from typing import Any

from stonebridge.services.errors import ErrorKind, NotFound, PlatformError, ValidationError
from stonebridge.services.instalments import CENT, to_decimal
from stonebridge.services.materialization_cache import (
    CachedVariant,
    MaterializationCache,
    get_materialization_cache,
)
from stonebridge.services.shopify_client import ShopifyClient, VariantRef, get_shopify_client
from stonebridge.services.stone_attributes import build_variant_metafields, normalize_stone_attributes
from stonebridge.settings import get_settings

logger = logging.getLogger("uvicorn.error")

SOURCE_TYPES = ("labgrown", "natural", "moissanite", "coloredstone", "custom")


def external_sku(external_id: str) -> str:
    """Deterministic SKU for an external item."""
    return f"EXT-{external_id}"


def format_price(price: Decimal | int | str) -> str:
    """Platform price string with two decimals."""
    return str(to_decimal(price).quantize(CENT))


@dataclass
class MaterializationResult:
    """Outcome of one materialization."""

    variant_id: str
    product_id: str
    sku: str
    from_cache: bool = False
    created: bool = False
    warnings: list[str] = field(default_factory=list)


class VariantMaterializer:
    """Find-or-create platform variants (dependencies injected)."""

    def __init__(
        self,
        client: ShopifyClient,
        cache: MaterializationCache,
        *,
        container_title_prefix: str = "External Dummy",
    ):
        self.client = client
        self.cache = cache
        self.container_title_prefix = container_title_prefix

    # ============================================================
    # External catalog items
    # ============================================================

    async def materialize(
        self,
        external_id: str,
        source_type: str,
        price: Decimal | int | str,
        title: str | None = None,
        image_url: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> MaterializationResult:
        """Materialize one external item as a platform variant.

        Args:
            external_id: Identifier in the external catalog.
            source_type: One of SOURCE_TYPES; selects the container product.
            price: Display price (re-applied on every call).
            title: Item title (kept for logging; the variant title is the option).
            image_url: Optional image URL (lands in normalized attributes).
            payload: Free-form attribute payload.

        Returns:
            MaterializationResult with variant id and enrichment warnings.

        Raises:
            ValidationError: Missing external id.
            NotFound: No container product for source_type.
            PlatformError: Platform rejected the find/create/update.
        """
        if not external_id:
            raise ValidationError("external_id is required")

        sku = external_sku(external_id)
        price_str = format_price(price)
        attributes = normalize_stone_attributes(payload, image_url=image_url)

        cached = await self.cache.get_variant(external_id)
        if cached is not None:
            try:
                await self.client.update_variant(cached.variant_id, price=price_str, sku=sku)
            except PlatformError as e:
                logger.warning(
                    f"Cached variant {cached.variant_id} for {external_id} could not be updated, "
                    f"falling back to lookup: {e.message}"
                )
            else:
                logger.info(f"Materialization cache HIT for external_id={external_id}")
                warnings = await self._enrich(
                    cached.product_id,
                    cached.variant_id,
                    build_variant_metafields(cached.variant_id, attributes, payload),
                )
                await self.cache.set_variant(external_id, cached)
                return MaterializationResult(
                    variant_id=cached.variant_id,
                    product_id=cached.product_id,
                    sku=sku,
                    from_cache=True,
                    warnings=warnings,
                )

        logger.info(f"Materialization cache MISS for external_id={external_id} ({title or 'untitled'})")
        product_id = await self.resolve_container_product(source_type)
        variant, created = await self._find_or_create(product_id, sku=sku, option1=external_id, price=price_str)

        warnings = await self._enrich(
            product_id,
            variant.id,
            build_variant_metafields(variant.id, attributes, payload),
        )
        await self.cache.set_variant(external_id, CachedVariant(product_id=product_id, variant_id=variant.id))
        return MaterializationResult(
            variant_id=variant.id,
            product_id=product_id,
            sku=sku,
            created=created,
            warnings=warnings,
        )

    async def resolve_container_product(self, source_type: str) -> str:
        """Find the durable product that holds variants of source_type."""
        cached = await self.cache.get_product_id(source_type)
        if cached:
            return cached

        product_id = await self.client.find_product_by_metafield("custom", "source_type", source_type)
        if product_id is None:
            title = f"{self.container_title_prefix} - {source_type}"
            product_id = await self.client.find_product_by_title(title)

        if product_id is None:
            raise NotFound(
                f"No container product for source type {source_type}",
                code="PRODUCT_NOT_FOUND",
                detail={"source_type": source_type},
            )

        await self.cache.set_product_id(source_type, product_id)
        return product_id

    # ============================================================
    # Payment variants (deposit sessions)
    # ============================================================

    async def materialize_payment_variant(
        self,
        product_id: str,
        *,
        sku: str,
        option_value: str,
        price: Decimal | int | str,
        summary: dict[str, Any] | None = None,
    ) -> MaterializationResult:
        """Find-or-create a single-use payment variant priced at one instalment.

        A variant that already carries `sku` (e.g. a retried request) is reused
        and re-priced. Payment variants are never cached.
        """
        variant, created = await self._find_or_create(
            product_id,
            sku=sku,
            option1=option_value,
            price=format_price(price),
        )
        metafields = []
        if summary is not None:
            metafields.append(
                {
                    "ownerId": variant.id,
                    "namespace": "custom",
                    "key": "deposit",
                    "type": "json",
                    "value": json.dumps(summary, default=str),
                }
            )
        warnings = await self._enrich(product_id, variant.id, metafields)
        return MaterializationResult(
            variant_id=variant.id,
            product_id=product_id,
            sku=sku,
            created=created,
            warnings=warnings,
        )

    # ============================================================
    # Internals
    # ============================================================

    async def _find_by_sku(self, product_id: str, sku: str) -> VariantRef | None:
        variants = await self.client.get_product_variants(product_id)
        return next((v for v in variants if v.sku == sku), None)

    async def _find_or_create(
        self,
        product_id: str,
        *,
        sku: str,
        option1: str,
        price: str,
    ) -> tuple[VariantRef, bool]:
        """Return (variant, created)."""
        existing = await self._find_by_sku(product_id, sku)
        if existing is not None:
            updated = await self.client.update_variant(existing.id, price=price, sku=sku)
            return updated, False

        try:
            variant = await self.client.create_variant(product_id, price=price, sku=sku, option1=option1)
            logger.info(f"Created variant {variant.id} sku={sku} on {product_id}")
            return variant, True
        except PlatformError as e:
            if e.kind is not ErrorKind.DUPLICATE:
                raise
            logger.info(f"Variant sku={sku} created concurrently, reusing: {e.message}")
            existing = await self._find_by_sku(product_id, sku)
            if existing is None:
                raise
            updated = await self.client.update_variant(existing.id, price=price, sku=sku)
            return updated, False

    async def _enrich(
        self,
        product_id: str,
        variant_id: str,
        metafields: list[dict[str, str]],
    ) -> list[str]:
        """Run best-effort side effects in parallel; return warnings."""
        steps: dict[str, Awaitable[Any]] = {
            "inventory": self.client.set_variant_inventory(variant_id, 1),
            "publish": self.client.publish_product(product_id),
        }
        if metafields:
            steps["metafields"] = self.client.set_metafields(metafields)

        results = await asyncio.gather(*steps.values(), return_exceptions=True)
        warnings: list[str] = []
        for name, result in zip(steps.keys(), results):
            if isinstance(result, Exception):
                message = getattr(result, "message", None) or str(result)
                logger.warning(f"Enrichment step {name} failed for {variant_id}: {message}")
                warnings.append(f"{name}: {message}")
        return warnings


_materializer: VariantMaterializer | None = None


def get_variant_materializer() -> VariantMaterializer:
    """Get materializer wired to the shared client and cache."""
    global _materializer
    if _materializer is None:
        _materializer = VariantMaterializer(
            get_shopify_client(),
            get_materialization_cache(),
            container_title_prefix=get_settings().container_product_title_prefix,
        )
    return _materializer


def reset_variant_materializer() -> None:
    global _materializer
    _materializer = None
