"""Cart endpoints.

POST   /v1/cart/items                       - Materialize an external item and add it to a cart
GET    /v1/cart/{cart_id}                   - Local cart snapshot (cart ids are gids, so path-typed)
PATCH  /v1/cart/{cart_id}/items/{item_id}   - Update line quantity (0 removes)
DELETE /v1/cart/{cart_id}/items/{item_id}   - Remove a line

Routers are thin: call services for business logic.
"""

import logging

from fastapi import APIRouter

from stonebridge.schemas import (
    AddCartItemRequest,
    AddCartItemResponse,
    CartLineOut,
    CartOut,
    UpdateCartLineRequest,
)
from stonebridge.services import carts, catalog_mirror
from stonebridge.services.cart_bridge import CartLineInput, get_cart_bridge
from stonebridge.services.carts import CartView
from stonebridge.services.errors import NotFound, ValidationError
from stonebridge.services.materializer import SOURCE_TYPES, get_variant_materializer
from stonebridge.services.stone_attributes import build_line_attributes, normalize_stone_attributes
from stonebridge.stores.postgres import is_db_configured

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


def cart_out(view: CartView) -> CartOut:
    return CartOut(
        cart_id=view.cart_id,
        customer_id=view.customer_id,
        status=view.status,
        checkout_url=view.checkout_url,
        currency=view.currency,
        lines=[
            CartLineOut(
                item_id=line.item_id,
                external_id=line.external_id,
                source_type=line.source_type,
                variant_id=line.variant_id,
                title=line.title,
                image_url=line.image_url,
                price=line.price,
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in view.lines
        ],
        total_quantity=view.total_quantity,
        total_amount=view.total_amount,
    )


@router.post("/items", response_model=AddCartItemResponse)
async def add_cart_item(request: AddCartItemRequest) -> AddCartItemResponse:
    """Add an external catalog item to the customer's storefront cart.

    Flow: materialize variant -> mirror locally (best-effort) -> storefront
    cart -> local cart record.
    """
    source_type = request.source_type.lower()
    if source_type not in SOURCE_TYPES:
        raise ValidationError(
            f"Unsupported source type: {request.source_type}",
            detail={"supported": list(SOURCE_TYPES)},
        )

    materialized = await get_variant_materializer().materialize(
        request.external_id,
        source_type,
        request.price,
        title=request.title,
        image_url=request.image_url,
        payload=request.payload,
    )
    warnings = list(materialized.warnings)
    attributes = normalize_stone_attributes(request.payload, image_url=request.image_url)

    if is_db_configured():
        try:
            await catalog_mirror.upsert_stone(
                sku=materialized.sku,
                title=request.title,
                source_type=source_type,
                price=request.price,
                attributes=attributes,
                payload=request.payload,
                shopify_product_id=materialized.product_id,
                shopify_variant_id=materialized.variant_id,
            )
        except Exception as e:
            logger.warning(f"Catalog mirror failed for {materialized.sku}: {e}")
            warnings.append(f"catalog_mirror: {e}")

    line = CartLineInput(
        merchandise_id=materialized.variant_id,
        quantity=request.quantity,
        attributes=build_line_attributes(request.external_id, attributes),
    )
    bridge = get_cart_bridge()
    if request.cart_id:
        fallback = []
        if is_db_configured():
            try:
                fallback = (await carts.get_cart(request.cart_id)).bridge_lines()
            except NotFound:
                fallback = []
        result = await bridge.add_lines_to_cart(request.cart_id, [line], fallback_lines=fallback)
        if result.recreated and is_db_configured():
            await carts.rebind_cart(request.cart_id, result.cart_id, checkout_url=result.checkout_url)
    else:
        result = await bridge.create_cart_with_lines([line])

    cart = None
    if is_db_configured():
        view = await carts.add_item(
            result.cart_id,
            external_id=request.external_id,
            source_type=source_type,
            variant_id=materialized.variant_id,
            title=request.title,
            price=request.price,
            quantity=request.quantity,
            image_url=request.image_url,
            attributes=line.attributes,
            customer_id=request.customer_id,
            checkout_url=result.checkout_url,
        )
        cart = cart_out(view)

    return AddCartItemResponse(
        checkout_url=result.checkout_url,
        cart_id=result.cart_id,
        variant_id=materialized.variant_id,
        product_id=materialized.product_id,
        from_cache=materialized.from_cache,
        cart_recreated=result.recreated,
        cart=cart,
        warnings=warnings,
    )


@router.get("/{cart_id:path}", response_model=CartOut)
async def get_cart(cart_id: str) -> CartOut:
    """Get the local cart snapshot."""
    return cart_out(await carts.get_cart(cart_id))


@router.patch("/{cart_id:path}/items/{item_id}", response_model=CartOut)
async def update_cart_line(cart_id: str, item_id: int, request: UpdateCartLineRequest) -> CartOut:
    """Set a line's quantity."""
    return cart_out(await carts.update_line_quantity(cart_id, item_id, request.quantity))


@router.delete("/{cart_id:path}/items/{item_id}", response_model=CartOut)
async def remove_cart_line(cart_id: str, item_id: int) -> CartOut:
    """Remove a line."""
    return cart_out(await carts.remove_line(cart_id, item_id))
