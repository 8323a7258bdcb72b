"""Schemas for the cart endpoints (/v1/cart)."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from stonebridge.schemas.common import WarningsMixin


class AddCartItemRequest(BaseModel):
    """External catalog item to add to a storefront cart."""

    external_id: str = Field(alias="externalId", min_length=1)
    source_type: str = Field(alias="sourceType", min_length=1)
    title: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    image_url: str | None = Field(alias="imageUrl", default=None)
    payload: dict[str, Any] | None = None
    cart_id: str | None = Field(alias="cartId", default=None)
    customer_id: str | None = Field(alias="customerId", default=None)

    model_config = {"populate_by_name": True}


class UpdateCartLineRequest(BaseModel):
    """New quantity for a cart line (0 removes it)."""

    quantity: int = Field(ge=0)


class CartLineOut(BaseModel):
    item_id: int = Field(alias="itemId")
    external_id: str = Field(alias="externalId")
    source_type: str = Field(alias="sourceType")
    variant_id: str = Field(alias="variantId")
    title: str
    image_url: str | None = Field(alias="imageUrl", default=None)
    price: Decimal
    quantity: int
    line_total: Decimal = Field(alias="lineTotal")

    model_config = {"populate_by_name": True}


class CartOut(BaseModel):
    """Local cart snapshot."""

    cart_id: str = Field(alias="cartId")
    customer_id: str | None = Field(alias="customerId", default=None)
    status: str
    checkout_url: str | None = Field(alias="checkoutUrl", default=None)
    currency: str
    lines: list[CartLineOut]
    total_quantity: int = Field(alias="totalQuantity")
    total_amount: Decimal = Field(alias="totalAmount")

    model_config = {"populate_by_name": True}


class AddCartItemResponse(WarningsMixin):
    """Result of POST /v1/cart/items."""

    checkout_url: str = Field(alias="checkoutUrl")
    cart_id: str = Field(alias="cartId")
    variant_id: str = Field(alias="variantId")
    product_id: str = Field(alias="productId")
    from_cache: bool = Field(alias="fromCache")
    cart_recreated: bool = Field(alias="cartRecreated", default=False)
    cart: CartOut | None = None

    model_config = {"populate_by_name": True}
