"""In-memory Shopify double used by the service and route tests."""

import itertools
from decimal import Decimal
from typing import Any

from stonebridge.services.shopify_client import (
    CartSnapshot,
    DraftOrderRef,
    OrderSnapshot,
    TransactionRef,
    VariantRef,
    to_gid,
)

LABGROWN_PRODUCT = "gid://shopify/Product/100"
DEPOSIT_PRODUCT = "gid://shopify/Product/900"


class FakeShopifyClient:
    """Records calls and keeps just enough platform state for the services.

    `fail[method]` injects errors: an exception is raised on every call, a list
    is consumed one entry per call (None = succeed).
    """

    def __init__(self) -> None:
        self.products: dict[str, list[VariantRef]] = {LABGROWN_PRODUCT: [], DEPOSIT_PRODUCT: []}
        self.products_by_metafield: dict[tuple[str, str, str], str] = {
            ("custom", "source_type", "labgrown"): LABGROWN_PRODUCT,
        }
        self.products_by_title: dict[str, str] = {}
        self.draft_orders: dict[str, dict[str, Any]] = {}
        self.orders: dict[str, OrderSnapshot] = {}
        self.carts: dict[str, CartSnapshot] = {}
        self.metafields_written: list[dict[str, str]] = []
        self.calls: list[tuple[str, Any]] = []
        self.fail: dict[str, Any] = {}
        self._ids = itertools.count(1)

    def _next(self) -> int:
        return next(self._ids)

    def _record(self, name: str, payload: Any = None) -> None:
        self.calls.append((name, payload))
        planned = self.fail.get(name)
        if planned is None:
            return
        if isinstance(planned, list):
            error = planned.pop(0) if planned else None
            if error is not None:
                raise error
            return
        raise planned

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def close(self) -> None:
        pass

    # Products / variants

    async def find_product_by_metafield(self, namespace: str, key: str, value: str) -> str | None:
        self._record("find_product_by_metafield", value)
        return self.products_by_metafield.get((namespace, key, value))

    async def find_product_by_title(self, title: str) -> str | None:
        self._record("find_product_by_title", title)
        return self.products_by_title.get(title)

    async def get_product_variants(self, product_id: str, page_size: int = 250) -> list[VariantRef]:
        self._record("get_product_variants", product_id)
        return list(self.products.setdefault(product_id, []))

    async def create_variant(self, product_id: str, *, price: str, sku: str, option1: str) -> VariantRef:
        self._record("create_variant", {"product_id": product_id, "sku": sku, "price": price})
        variant = VariantRef(id=to_gid("ProductVariant", 5000 + self._next()), sku=sku, price=price)
        self.products.setdefault(product_id, []).append(variant)
        return variant

    async def update_variant(self, variant_id: str, *, price: str, sku: str | None = None) -> VariantRef:
        self._record("update_variant", {"variant_id": variant_id, "price": price})
        for variants in self.products.values():
            for variant in variants:
                if variant.id == variant_id:
                    variant.price = price
                    return variant
        return VariantRef(id=variant_id, sku=sku, price=price)

    async def set_variant_inventory(self, variant_id: str, quantity: int = 1) -> None:
        self._record("set_variant_inventory", variant_id)

    async def publish_product(self, product_id: str, channel_names: tuple[str, ...] = ()) -> int:
        self._record("publish_product", product_id)
        return 2

    async def set_metafields(self, metafields: list[dict[str, str]]) -> int:
        self._record("set_metafields", metafields)
        self.metafields_written.extend(metafields)
        for mf in metafields:
            order = self.orders.get(mf["ownerId"])
            if order is not None:
                order.metafields[f"{mf['namespace']}.{mf['key']}"] = mf["value"]
        return len(metafields)

    # Orders

    async def create_draft_order(self, *, line_items: list[dict[str, Any]], **kwargs: Any) -> DraftOrderRef:
        self._record("create_draft_order", {"line_items": line_items, **kwargs})
        number = self._next()
        draft_id = to_gid("DraftOrder", number)
        self.draft_orders[draft_id] = {"line_items": line_items, **kwargs}
        return DraftOrderRef(id=draft_id, name=f"#D{number}", invoice_url=f"https://shop.test/invoices/{number}")

    async def complete_draft_order(self, draft_order_id: str, *, payment_pending: bool = True) -> str:
        self._record("complete_draft_order", draft_order_id)
        order_id = to_gid("Order", 7000 + self._next())
        self.orders[order_id] = OrderSnapshot(
            id=order_id,
            name="#1001",
            total_amount=None,
            currency="USD",
            financial_status="PENDING",
        )
        return order_id

    async def create_capture_transaction(self, order_id: str, amount: Decimal, **kwargs: Any) -> TransactionRef:
        self._record("create_capture_transaction", {"order_id": order_id, "amount": amount})
        transaction = TransactionRef(id=str(9000 + self._next()), kind="CAPTURE", status="SUCCESS", amount=amount)
        order = self.orders.get(order_id)
        if order is not None:
            order.transactions.append(transaction)
        return transaction

    async def get_order(self, order_id: str) -> OrderSnapshot | None:
        self._record("get_order", order_id)
        return self.orders.get(order_id)

    # Carts

    def _cart(self, cart_id: str, lines: list[dict[str, Any]]) -> CartSnapshot:
        token = cart_id.rsplit("/", 1)[-1]
        cart = CartSnapshot(
            id=f"{cart_id}?key=k{token}",
            checkout_url=f"https://shop.test/cart/c/{token}",
            total_quantity=sum(int(line.get("quantity", 1)) for line in lines),
            lines=[{"merchandise_id": line["merchandiseId"], "quantity": line.get("quantity", 1)} for line in lines],
        )
        self.carts[cart_id] = cart
        return cart

    async def cart_create(self, lines: list[dict[str, Any]], *, attributes: list[dict[str, str]] | None = None) -> CartSnapshot:
        self._record("cart_create", {"lines": lines, "attributes": attributes})
        return self._cart(f"gid://shopify/Cart/c{self._next()}", lines)

    async def cart_lines_add(self, cart_id: str, lines: list[dict[str, Any]]) -> CartSnapshot:
        self._record("cart_lines_add", {"cart_id": cart_id, "lines": lines})
        existing = self.carts.get(cart_id.split("?", 1)[0])
        previous = [
            {"merchandiseId": line["merchandise_id"], "quantity": line["quantity"]}
            for line in (existing.lines if existing else [])
        ]
        return self._cart(cart_id.split("?", 1)[0], previous + lines)
