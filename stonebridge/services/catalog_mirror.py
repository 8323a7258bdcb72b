"""Local product/diamond mirror of materialized stones.

Keeps one product row per external SKU and one diamond row with the canonical
attributes, so reporting and order views can show what was sold without
calling the external catalog again. Mirroring is best-effort: callers log and
continue when it fails.
"""

from dataclasses import dataclass
from decimal import Decimal
import json
import logging
from typing import Any

from sqlalchemy import select

from stonebridge.models import Diamond, Product
from stonebridge.services.shopify_client import numeric_id
from stonebridge.services.stone_attributes import StoneAttributes
from stonebridge.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")


@dataclass
class MirrorResult:
    product_id: int
    diamond_id: int
    created: bool


async def upsert_stone(
    *,
    sku: str,
    title: str,
    source_type: str,
    price: Decimal,
    attributes: StoneAttributes,
    payload: dict[str, Any] | None = None,
    shopify_product_id: str | None = None,
    shopify_variant_id: str | None = None,
) -> MirrorResult:
    """Insert or refresh the product + diamond rows for one stone."""
    async with get_session() as session:
        product = (await session.execute(select(Product).where(Product.sku == sku))).scalar_one_or_none()
        created = product is None
        if product is None:
            product = Product(sku=sku, name=title or "Diamond", source_type=source_type, status="active")
            session.add(product)

        product.retail_price = price
        if title:
            product.name = title
        if shopify_product_id:
            product.shopify_product_id = numeric_id(shopify_product_id)
        if shopify_variant_id:
            product.shopify_variant_id = shopify_variant_id
        await session.flush()

        diamond = (
            await session.execute(select(Diamond).where(Diamond.product_id == product.id))
        ).scalar_one_or_none()
        if diamond is None:
            diamond = Diamond(product_id=product.id)
            session.add(diamond)

        diamond.shape = attributes.shape
        diamond.carat = attributes.carat
        diamond.color = attributes.color
        diamond.clarity = attributes.clarity
        diamond.cut_grade = attributes.cut_grade
        diamond.grading_lab = attributes.grading_lab
        diamond.certificate_type = attributes.certificate_type
        diamond.certificate_number = attributes.certificate_number
        diamond.image_url = attributes.image_url
        diamond.payload_json = json.dumps(payload, default=str) if payload else None
        await session.flush()

        if created:
            logger.info(f"Mirrored new product sku={sku} (id={product.id})")
        return MirrorResult(product_id=product.id, diamond_id=diamond.id, created=created)
