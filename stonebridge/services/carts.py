"""Local cart store.

Mirrors storefront carts in carts / cart_items so deposit sessions can snapshot
what the customer is buying. Every mutation runs in one transaction that also
recomputes the cart totals from its items, so totals never disagree with lines.
"""

from dataclasses import dataclass, field
from decimal import Decimal
import json
import logging
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stonebridge.models import Cart, CartItem
from stonebridge.services.cart_bridge import CartLineInput, strip_cart_key
from stonebridge.services.errors import NotFound, ValidationError
from stonebridge.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")


@dataclass
class CartLine:
    item_id: int
    external_id: str
    source_type: str
    variant_id: str
    title: str
    image_url: str | None
    price: Decimal
    quantity: int
    attributes: list[dict[str, str]] = field(default_factory=list)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe form stored on deposit sessions and draft orders."""
        return {
            "external_id": self.external_id,
            "source_type": self.source_type,
            "variant_id": self.variant_id,
            "title": self.title,
            "price": f"{self.price:.2f}",
            "quantity": self.quantity,
        }


@dataclass
class CartView:
    cart_id: str
    customer_id: str | None
    status: str
    checkout_url: str | None
    currency: str
    lines: list[CartLine]
    total_quantity: int
    total_amount: Decimal

    def bridge_lines(self) -> list[CartLineInput]:
        """Lines in the shape the cart bridge re-submits on cart expiry."""
        return [
            CartLineInput(merchandise_id=line.variant_id, quantity=line.quantity, attributes=line.attributes or None)
            for line in self.lines
        ]


def _line_from_row(row: CartItem) -> CartLine:
    return CartLine(
        item_id=row.id,
        external_id=row.external_id,
        source_type=row.source_type,
        variant_id=row.variant_id,
        title=row.title,
        image_url=row.image_url,
        price=Decimal(row.price_amount),
        quantity=row.quantity,
        attributes=json.loads(row.attributes_json) if row.attributes_json else [],
    )


async def _recompute_totals(session: AsyncSession, cart: Cart) -> None:
    result = await session.execute(
        select(
            func.coalesce(func.sum(CartItem.quantity), 0),
            func.coalesce(func.sum(CartItem.price_amount * CartItem.quantity), 0),
        ).where(CartItem.cart_id == cart.cart_id)
    )
    quantity, amount = result.one()
    cart.total_quantity = int(quantity)
    cart.total_amount = Decimal(str(amount)).quantize(Decimal("0.01"))
    cart.status = "active" if cart.total_quantity > 0 else "empty"


async def _load_view(session: AsyncSession, cart: Cart) -> CartView:
    result = await session.execute(
        select(CartItem).where(CartItem.cart_id == cart.cart_id).order_by(CartItem.id.asc())
    )
    lines = [_line_from_row(row) for row in result.scalars().all()]
    return CartView(
        cart_id=cart.cart_id,
        customer_id=cart.customer_id,
        status=cart.status,
        checkout_url=cart.checkout_url,
        currency=cart.currency,
        lines=lines,
        total_quantity=cart.total_quantity,
        total_amount=Decimal(cart.total_amount),
    )


async def _get_cart_row(session: AsyncSession, cart_id: str) -> Cart:
    result = await session.execute(select(Cart).where(Cart.cart_id == cart_id))
    cart = result.scalar_one_or_none()
    if cart is None:
        raise NotFound(f"Cart {cart_id} not found", code="CART_NOT_FOUND", detail={"cart_id": cart_id})
    return cart


async def get_cart(cart_id: str) -> CartView:
    """Cart with its lines and totals.

    Raises:
        NotFound: CART_NOT_FOUND.
    """
    cart_id = strip_cart_key(cart_id)
    async with get_session() as session:
        cart = await _get_cart_row(session, cart_id)
        return await _load_view(session, cart)


async def add_item(
    cart_id: str,
    *,
    external_id: str,
    source_type: str,
    variant_id: str,
    title: str,
    price: Decimal,
    quantity: int = 1,
    image_url: str | None = None,
    attributes: list[dict[str, str]] | None = None,
    customer_id: str | None = None,
    checkout_url: str | None = None,
) -> CartView:
    """Add an external item to a cart (creating the cart row if needed).

    Adding an external_id already in the cart increments its quantity and
    re-prices it.
    """
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")
    cart_id = strip_cart_key(cart_id)

    async with get_session() as session:
        result = await session.execute(select(Cart).where(Cart.cart_id == cart_id))
        cart = result.scalar_one_or_none()
        if cart is None:
            cart = Cart(cart_id=cart_id, customer_id=customer_id, status="active", checkout_url=checkout_url)
            session.add(cart)
            await session.flush()
        else:
            if customer_id:
                cart.customer_id = customer_id
            if checkout_url:
                cart.checkout_url = checkout_url

        result = await session.execute(
            select(CartItem).where(CartItem.cart_id == cart_id, CartItem.external_id == external_id)
        )
        item = result.scalar_one_or_none()
        if item is not None:
            item.quantity += quantity
            item.price_amount = price
            item.variant_id = variant_id
        else:
            session.add(
                CartItem(
                    cart_id=cart_id,
                    external_id=external_id,
                    source_type=source_type,
                    variant_id=variant_id,
                    title=title,
                    image_url=image_url,
                    price_amount=price,
                    quantity=quantity,
                    attributes_json=json.dumps(attributes) if attributes else None,
                )
            )
        await session.flush()

        await _recompute_totals(session, cart)
        return await _load_view(session, cart)


async def update_line_quantity(cart_id: str, item_id: int, quantity: int) -> CartView:
    """Set a line's quantity; 0 removes the line."""
    if quantity < 0:
        raise ValidationError("quantity must not be negative")
    cart_id = strip_cart_key(cart_id)

    async with get_session() as session:
        cart = await _get_cart_row(session, cart_id)
        result = await session.execute(
            select(CartItem).where(CartItem.cart_id == cart_id, CartItem.id == item_id)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFound(f"Cart line {item_id} not found", code="CART_LINE_NOT_FOUND", detail={"item_id": item_id})

        if quantity == 0:
            await session.delete(item)
        else:
            item.quantity = quantity
        await session.flush()

        await _recompute_totals(session, cart)
        return await _load_view(session, cart)


async def remove_line(cart_id: str, item_id: int) -> CartView:
    """Remove a line from a cart."""
    return await update_line_quantity(cart_id, item_id, 0)


async def rebind_cart(old_cart_id: str, new_cart_id: str, *, checkout_url: str | None = None) -> None:
    """Move lines to the replacement of an expired storefront cart."""
    old_cart_id = strip_cart_key(old_cart_id)
    new_cart_id = strip_cart_key(new_cart_id)
    if old_cart_id == new_cart_id:
        return

    async with get_session() as session:
        old = (await session.execute(select(Cart).where(Cart.cart_id == old_cart_id))).scalar_one_or_none()
        if old is None:
            return
        session.add(
            Cart(
                cart_id=new_cart_id,
                customer_id=old.customer_id,
                status=old.status,
                checkout_url=checkout_url or old.checkout_url,
                currency=old.currency,
                total_quantity=old.total_quantity,
                total_amount=old.total_amount,
            )
        )
        await session.flush()
        await session.execute(
            update(CartItem).where(CartItem.cart_id == old_cart_id).values(cart_id=new_cart_id)
        )
        await session.execute(delete(Cart).where(Cart.cart_id == old_cart_id))
    logger.info(f"Cart {old_cart_id} replaced by {new_cart_id}")
