"""Shopify client for the Admin (GraphQL + REST) and Storefront APIs.

Responsibilities:
- Product/variant lookup and find-or-create primitives (admin)
- Inventory, publication and metafield side effects (admin)
- Draft orders, order reads and capture transactions (admin)
- Cart create / add lines (storefront)

Error boundary:
Every raw response is parsed here, and failures are classified once into an
ErrorKind (see services.errors). The storefront read path lags admin writes:
a "merchandise does not exist" user error becomes ExternalTransient
(NOT_YET_VISIBLE), an unknown cart becomes CART_EXPIRED, "already exists"
becomes DUPLICATE, everything else REJECTED. Callers never inspect messages.
"""

from dataclasses import dataclass, field
from decimal import Decimal
import logging
import re
from typing import Any

import httpx

from stonebridge.services.errors import (
    ErrorKind,
    ExternalMutationError,
    ExternalTransient,
    NotConfigured,
)
from stonebridge.settings import get_settings

logger = logging.getLogger("uvicorn.error")

DEFAULT_PUBLICATION_NAMES = ("Online Store", "Storefront API")
METAFIELDS_SET_BATCH = 25  # metafieldsSet accepts at most 25 inputs per call

_GID_TAIL = re.compile(r"/(\d+)$")


# ============================================================
# Result types
# ============================================================


@dataclass
class VariantRef:
    """A platform variant (id is always a GID)."""

    id: str
    sku: str | None
    price: str | None = None


@dataclass
class DraftOrderRef:
    id: str
    name: str | None = None
    invoice_url: str | None = None


@dataclass
class TransactionRef:
    id: str
    kind: str
    status: str
    amount: Decimal
    gateway: str | None = None


@dataclass
class OrderSnapshot:
    id: str
    name: str | None
    total_amount: Decimal | None
    currency: str | None
    financial_status: str | None
    metafields: dict[str, str] = field(default_factory=dict)  # "namespace.key" -> value
    transactions: list[TransactionRef] = field(default_factory=list)

    def metafield(self, namespace: str, key: str) -> str | None:
        return self.metafields.get(f"{namespace}.{key}")


@dataclass
class CartSnapshot:
    """Storefront cart after a mutation."""

    id: str
    checkout_url: str
    total_quantity: int = 0
    total_amount: Decimal | None = None
    currency: str | None = None
    lines: list[dict[str, Any]] = field(default_factory=list)


# ============================================================
# GID helpers
# ============================================================


def numeric_id(gid: str) -> str:
    """gid://shopify/Product/123 -> 123 (plain ids pass through)."""
    match = _GID_TAIL.search(gid)
    return match.group(1) if match else gid


def to_gid(resource: str, value: str | int) -> str:
    """123 -> gid://shopify/{resource}/123 (GIDs pass through)."""
    text = str(value)
    if text.startswith("gid://"):
        return text
    return f"gid://shopify/{resource}/{text}"


# ============================================================
# Error classification
# ============================================================


def classify_user_errors(errors: list[dict[str, Any]]) -> ErrorKind:
    """Decide how callers should treat a list of platform user errors."""
    kinds: list[ErrorKind] = []
    for err in errors:
        message = str(err.get("message") or "").lower()
        field_path = [str(part) for part in (err.get("field") or [])]
        code = str(err.get("code") or "").upper()

        if "cartId" in field_path or (
            "cart" in message and ("does not exist" in message or "not found" in message or "expired" in message)
        ):
            kinds.append(ErrorKind.CART_EXPIRED)
        elif "does not exist" in message or code == "MERCHANDISE_NOT_FOUND":
            kinds.append(ErrorKind.NOT_YET_VISIBLE)
        elif "already exists" in message or "already been taken" in message or "duplicate" in message:
            kinds.append(ErrorKind.DUPLICATE)
        else:
            kinds.append(ErrorKind.REJECTED)

    # One permanent rejection makes the whole response permanent.
    if not kinds or ErrorKind.REJECTED in kinds:
        return ErrorKind.REJECTED
    for kind in (ErrorKind.CART_EXPIRED, ErrorKind.DUPLICATE, ErrorKind.NOT_YET_VISIBLE):
        if kind in kinds:
            return kind
    return ErrorKind.REJECTED


def platform_error(context: str, errors: list[dict[str, Any]]) -> ExternalMutationError | ExternalTransient:
    """Aggregate user errors into one typed exception."""
    messages = [str(e.get("message") or e) for e in errors] or ["Unknown error"]
    kind = classify_user_errors(errors)
    message = f"{context}: {', '.join(messages)}"
    if kind is ErrorKind.NOT_YET_VISIBLE:
        return ExternalTransient(message, messages=messages)
    return ExternalMutationError(message, kind=kind, messages=messages)


def _flatten_rest_errors(payload: Any) -> list[dict[str, Any]]:
    """REST error bodies: {"errors": "..."} | {"errors": {"base": ["..."]}} | {"error": "..."}"""
    if not isinstance(payload, dict):
        return [{"message": str(payload)}]
    raw = payload.get("errors", payload.get("error"))
    if raw is None:
        return []
    if isinstance(raw, str):
        return [{"message": raw}]
    if isinstance(raw, list):
        return [{"message": str(item)} for item in raw]
    if isinstance(raw, dict):
        flattened: list[dict[str, Any]] = []
        for key, value in raw.items():
            values = value if isinstance(value, list) else [value]
            for item in values:
                text = str(item)
                flattened.append({"field": [key], "message": text if key == "base" else f"{key} {text}"})
        return flattened
    return [{"message": str(raw)}]


# ============================================================
# GraphQL documents
# ============================================================

FIND_PRODUCTS_QUERY = """
query findProducts($query: String!, $first: Int!) {
  products(first: $first, query: $query) {
    edges { node { id title } }
  }
}
"""

PRODUCT_VARIANTS_QUERY = """
query productVariants($id: ID!, $first: Int!, $after: String) {
  product(id: $id) {
    id
    variants(first: $first, after: $after) {
      edges { node { id sku price } }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""

PUBLICATIONS_QUERY = """
query publications {
  publications(first: 20) {
    edges { node { id name } }
  }
}
"""

PUBLISH_MUTATION = """
mutation publishablePublish($id: ID!, $input: [PublicationInput!]!) {
  publishablePublish(id: $id, input: $input) {
    userErrors { field message }
  }
}
"""

METAFIELDS_SET_MUTATION = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id namespace key }
    userErrors { field message code }
  }
}
"""

DRAFT_ORDER_CREATE_MUTATION = """
mutation draftOrderCreate($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder { id name invoiceUrl }
    userErrors { field message }
  }
}
"""

DRAFT_ORDER_COMPLETE_MUTATION = """
mutation draftOrderComplete($id: ID!, $paymentPending: Boolean) {
  draftOrderComplete(id: $id, paymentPending: $paymentPending) {
    draftOrder { id order { id name } }
    userErrors { field message }
  }
}
"""

ORDER_QUERY = """
query order($id: ID!) {
  order(id: $id) {
    id
    name
    displayFinancialStatus
    totalPriceSet { shopMoney { amount currencyCode } }
    transactions(first: 50) { id kind status gateway amountSet { shopMoney { amount } } }
    metafields(first: 50) {
      edges { node { namespace key value } }
    }
  }
}
"""

CART_FIELDS = """
  id
  checkoutUrl
  totalQuantity
  cost { totalAmount { amount currencyCode } }
  lines(first: 100) {
    edges {
      node {
        id
        quantity
        merchandise { ... on ProductVariant { id } }
        attributes { key value }
      }
    }
  }
"""

CART_CREATE_MUTATION = f"""
mutation cartCreate($input: CartInput!) {{
  cartCreate(input: $input) {{
    cart {{ {CART_FIELDS} }}
    userErrors {{ field message code }}
  }}
}}
"""

CART_LINES_ADD_MUTATION = f"""
mutation cartLinesAdd($cartId: ID!, $lines: [CartLineInput!]!) {{
  cartLinesAdd(cartId: $cartId, lines: $lines) {{
    cart {{ {CART_FIELDS} }}
    userErrors {{ field message code }}
  }}
}}
"""


class ShopifyClient:
    """Client for the Shopify Admin and Storefront APIs."""

    def __init__(
        self,
        store_domain: str | None = None,
        admin_access_token: str | None = None,
        storefront_access_token: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client; unset values fall back to settings."""
        settings = get_settings()
        self.store_domain = (store_domain or settings.shopify_store_domain).removeprefix("https://").rstrip("/")
        self.admin_access_token = admin_access_token or settings.shopify_admin_access_token
        self.storefront_access_token = storefront_access_token or settings.shopify_storefront_access_token
        self.api_version = api_version or settings.shopify_api_version
        self.timeout = timeout or settings.shopify_timeout_seconds
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None
        self._publication_ids: dict[str, str] | None = None
        self._location_id: int | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------

    def _require_admin(self) -> None:
        if not self.store_domain or not self.admin_access_token:
            raise NotConfigured("Shopify Admin API is not configured", code="SHOPIFY_NOT_CONFIGURED")

    def _require_storefront(self) -> None:
        if not self.store_domain or not self.storefront_access_token:
            raise NotConfigured("Shopify Storefront API is not configured", code="SHOPIFY_NOT_CONFIGURED")

    async def _send(self, method: str, url: str, *, headers: dict[str, str], **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Shopify request failed: {method} {url}: {e}")
            raise ExternalMutationError(
                f"Shopify request failed: {e}",
                code="PLATFORM_UNREACHABLE",
            ) from e

    @staticmethod
    def _graphql_data(response: httpx.Response, context: str) -> dict[str, Any]:
        if response.status_code >= 400:
            raise ExternalMutationError(
                f"{context}: HTTP {response.status_code}",
                messages=[response.text[:200]],
            )
        try:
            body = response.json()
        except ValueError as e:
            raise ExternalMutationError(f"{context}: invalid JSON response") from e
        if body.get("errors"):
            errors = body["errors"] if isinstance(body["errors"], list) else [{"message": str(body["errors"])}]
            raise platform_error(context, errors)
        return body.get("data") or {}

    async def admin_graphql(self, query: str, variables: dict[str, Any] | None = None, *, context: str = "Admin API") -> dict[str, Any]:
        """Run an Admin GraphQL document and return its `data`."""
        self._require_admin()
        url = f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"
        response = await self._send(
            "POST",
            url,
            headers={"X-Shopify-Access-Token": self.admin_access_token, "Content-Type": "application/json"},
            json={"query": query, "variables": variables or {}},
        )
        return self._graphql_data(response, context)

    async def storefront_graphql(self, query: str, variables: dict[str, Any] | None = None, *, context: str = "Storefront API") -> dict[str, Any]:
        """Run a Storefront GraphQL document and return its `data`."""
        self._require_storefront()
        url = f"https://{self.store_domain}/api/{self.api_version}/graphql.json"
        response = await self._send(
            "POST",
            url,
            headers={
                "X-Shopify-Storefront-Access-Token": self.storefront_access_token,
                "Content-Type": "application/json",
            },
            json={"query": query, "variables": variables or {}},
        )
        return self._graphql_data(response, context)

    async def admin_rest(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        context: str = "Admin REST",
    ) -> dict[str, Any]:
        """Call an Admin REST endpoint (path relative to /admin/api/{version}/)."""
        self._require_admin()
        url = f"https://{self.store_domain}/admin/api/{self.api_version}/{path.lstrip('/')}"
        response = await self._send(
            method,
            url,
            headers={"X-Shopify-Access-Token": self.admin_access_token, "Content-Type": "application/json"},
            json=json,
            params=params,
        )
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {"errors": response.text[:200]}
        if response.status_code >= 400:
            errors = _flatten_rest_errors(body) or [{"message": f"HTTP {response.status_code}"}]
            raise platform_error(context, errors)
        return body

    @staticmethod
    def _check_user_errors(payload: dict[str, Any] | None, context: str) -> dict[str, Any]:
        if payload is None:
            raise ExternalMutationError(f"{context}: empty response")
        errors = payload.get("userErrors") or []
        if errors:
            raise platform_error(context, errors)
        return payload

    # ------------------------------------------------------------
    # Products and variants
    # ------------------------------------------------------------

    async def find_product_ids(self, search: str, first: int = 5) -> list[tuple[str, str]]:
        """Search products; returns (id, title) pairs."""
        data = await self.admin_graphql(
            FIND_PRODUCTS_QUERY,
            {"query": search, "first": first},
            context="Product search",
        )
        edges = (data.get("products") or {}).get("edges") or []
        return [(e["node"]["id"], e["node"].get("title") or "") for e in edges if e.get("node")]

    async def find_product_by_metafield(self, namespace: str, key: str, value: str) -> str | None:
        """First product whose metafield namespace.key equals value."""
        matches = await self.find_product_ids(f"metafield:{namespace}.{key}:{value}", first=1)
        return matches[0][0] if matches else None

    async def find_product_by_title(self, title: str) -> str | None:
        """Product whose title matches exactly (search is fuzzy, so filter)."""
        matches = await self.find_product_ids(f'title:"{title}"', first=10)
        for product_id, found_title in matches:
            if found_title.strip().lower() == title.strip().lower():
                return product_id
        return None

    async def get_product_variants(self, product_id: str, page_size: int = 250) -> list[VariantRef]:
        """List every variant of a product, following pageInfo cursors.

        Raises ExternalMutationError(PRODUCT_NOT_FOUND) if the product is unknown.
        """
        variants: list[VariantRef] = []
        after: str | None = None
        while True:
            data = await self.admin_graphql(
                PRODUCT_VARIANTS_QUERY,
                {"id": to_gid("Product", product_id), "first": page_size, "after": after},
                context="Product lookup",
            )
            product = data.get("product")
            if product is None:
                raise ExternalMutationError(
                    f"Product {product_id} not found",
                    code="PRODUCT_NOT_FOUND",
                    detail={"product_id": product_id},
                )
            connection = product.get("variants") or {}
            variants.extend(
                VariantRef(id=e["node"]["id"], sku=e["node"].get("sku"), price=e["node"].get("price"))
                for e in connection.get("edges") or []
                if e.get("node")
            )
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage") or not page_info.get("endCursor"):
                return variants
            after = page_info["endCursor"]

    @staticmethod
    def _variant_from_rest(body: dict[str, Any], context: str) -> VariantRef:
        variant = body.get("variant")
        if not variant:
            raise ExternalMutationError(f"{context}: no variant returned")
        return VariantRef(
            id=to_gid("ProductVariant", variant["id"]),
            sku=variant.get("sku"),
            price=str(variant.get("price")) if variant.get("price") is not None else None,
        )

    async def create_variant(self, product_id: str, *, price: str, sku: str, option1: str) -> VariantRef:
        """Create a variant; option1 keeps it distinct from the default variant."""
        body = await self.admin_rest(
            "POST",
            f"products/{numeric_id(product_id)}/variants.json",
            json={"variant": {"price": price, "sku": sku, "option1": option1}},
            context="Variant create",
        )
        return self._variant_from_rest(body, "Variant create")

    async def update_variant(self, variant_id: str, *, price: str, sku: str | None = None) -> VariantRef:
        """Update price (and SKU) of an existing variant."""
        payload: dict[str, Any] = {"id": int(numeric_id(variant_id)), "price": price}
        if sku:
            payload["sku"] = sku
        body = await self.admin_rest(
            "PUT",
            f"variants/{numeric_id(variant_id)}.json",
            json={"variant": payload},
            context="Variant update",
        )
        return self._variant_from_rest(body, "Variant update")

    async def set_variant_inventory(self, variant_id: str, quantity: int = 1) -> None:
        """Set available inventory of a variant at the first location."""
        body = await self.admin_rest("GET", f"variants/{numeric_id(variant_id)}.json", context="Variant read")
        inventory_item_id = (body.get("variant") or {}).get("inventory_item_id")
        if not inventory_item_id:
            raise ExternalMutationError("Variant has no inventory item", detail={"variant_id": variant_id})

        if self._location_id is None:
            locations = (await self.admin_rest("GET", "locations.json", context="Locations")).get("locations") or []
            if not locations:
                raise ExternalMutationError("No inventory location configured")
            self._location_id = int(locations[0]["id"])

        await self.admin_rest(
            "POST",
            "inventory_levels/set.json",
            json={
                "location_id": self._location_id,
                "inventory_item_id": inventory_item_id,
                "available": quantity,
            },
            context="Inventory set",
        )

    async def _publications(self) -> dict[str, str]:
        if self._publication_ids is None:
            data = await self.admin_graphql(PUBLICATIONS_QUERY, context="Publications")
            edges = (data.get("publications") or {}).get("edges") or []
            self._publication_ids = {e["node"]["name"]: e["node"]["id"] for e in edges if e.get("node")}
        return self._publication_ids

    async def publish_product(self, product_id: str, channel_names: tuple[str, ...] = DEFAULT_PUBLICATION_NAMES) -> int:
        """Publish a product to the named sales channels.

        Returns:
            Number of publications targeted.
        """
        publications = await self._publications()
        targets = [publications[name] for name in channel_names if name in publications]
        if not targets:
            raise ExternalMutationError(
                "No matching sales channel publications",
                detail={"channels": list(channel_names)},
            )
        data = await self.admin_graphql(
            PUBLISH_MUTATION,
            {"id": to_gid("Product", product_id), "input": [{"publicationId": pid} for pid in targets]},
            context="Publish",
        )
        self._check_user_errors(data.get("publishablePublish"), "Publish")
        return len(targets)

    async def set_metafields(self, metafields: list[dict[str, str]]) -> int:
        """Write metafields (batched); returns how many were written."""
        written = 0
        for start in range(0, len(metafields), METAFIELDS_SET_BATCH):
            batch = metafields[start : start + METAFIELDS_SET_BATCH]
            data = await self.admin_graphql(METAFIELDS_SET_MUTATION, {"metafields": batch}, context="Metafields")
            payload = self._check_user_errors(data.get("metafieldsSet"), "Metafields")
            written += len(payload.get("metafields") or [])
        return written

    # ------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------

    async def create_draft_order(
        self,
        *,
        line_items: list[dict[str, Any]],
        customer_id: str | None = None,
        tags: list[str] | None = None,
        custom_attributes: list[dict[str, str]] | None = None,
        metafields: list[dict[str, str]] | None = None,
        note: str | None = None,
    ) -> DraftOrderRef:
        """Create a draft (provisional) order."""
        draft_input: dict[str, Any] = {"lineItems": line_items}
        if customer_id:
            draft_input["customerId"] = to_gid("Customer", customer_id)
        if tags:
            draft_input["tags"] = tags
        if custom_attributes:
            draft_input["customAttributes"] = custom_attributes
        if metafields:
            draft_input["metafields"] = metafields
        if note:
            draft_input["note"] = note

        data = await self.admin_graphql(DRAFT_ORDER_CREATE_MUTATION, {"input": draft_input}, context="Draft order create")
        payload = self._check_user_errors(data.get("draftOrderCreate"), "Draft order create")
        draft = payload.get("draftOrder")
        if not draft:
            raise ExternalMutationError("Draft order create: no draft order returned")
        return DraftOrderRef(id=draft["id"], name=draft.get("name"), invoice_url=draft.get("invoiceUrl"))

    async def complete_draft_order(self, draft_order_id: str, *, payment_pending: bool = True) -> str:
        """Convert a draft order into a real order; returns the order GID."""
        data = await self.admin_graphql(
            DRAFT_ORDER_COMPLETE_MUTATION,
            {"id": to_gid("DraftOrder", draft_order_id), "paymentPending": payment_pending},
            context="Draft order complete",
        )
        payload = self._check_user_errors(data.get("draftOrderComplete"), "Draft order complete")
        order = ((payload.get("draftOrder") or {}).get("order")) or {}
        if not order.get("id"):
            raise ExternalMutationError("Draft order complete: no order returned")
        return order["id"]

    async def create_capture_transaction(
        self,
        order_id: str,
        amount: Decimal,
        *,
        currency: str | None = None,
        gateway: str = "manual",
    ) -> TransactionRef:
        """Record a capture against an order on the platform ledger."""
        transaction: dict[str, Any] = {
            "kind": "capture",
            "amount": f"{amount:.2f}",
            "gateway": gateway,
            "source": "external",
        }
        if currency:
            transaction["currency"] = currency
        body = await self.admin_rest(
            "POST",
            f"orders/{numeric_id(order_id)}/transactions.json",
            json={"transaction": transaction},
            context="Capture",
        )
        raw = body.get("transaction") or {}
        if not raw.get("id"):
            raise ExternalMutationError("Capture: no transaction returned")
        return TransactionRef(
            id=str(raw["id"]),
            kind=str(raw.get("kind") or "capture").upper(),
            status=str(raw.get("status") or "success").upper(),
            amount=Decimal(str(raw.get("amount") or amount)),
            gateway=raw.get("gateway"),
        )

    async def get_order(self, order_id: str) -> OrderSnapshot | None:
        """Read an order with its metafields and transactions."""
        data = await self.admin_graphql(ORDER_QUERY, {"id": to_gid("Order", order_id)}, context="Order read")
        order = data.get("order")
        if not order:
            return None

        money = ((order.get("totalPriceSet") or {}).get("shopMoney")) or {}
        metafields = {
            f"{e['node']['namespace']}.{e['node']['key']}": e["node"]["value"]
            for e in ((order.get("metafields") or {}).get("edges") or [])
            if e.get("node")
        }
        transactions = [
            TransactionRef(
                id=t["id"],
                kind=str(t.get("kind") or "").upper(),
                status=str(t.get("status") or "").upper(),
                amount=Decimal(str((((t.get("amountSet") or {}).get("shopMoney")) or {}).get("amount") or "0")),
                gateway=t.get("gateway"),
            )
            for t in (order.get("transactions") or [])
        ]
        return OrderSnapshot(
            id=order["id"],
            name=order.get("name"),
            total_amount=Decimal(str(money["amount"])) if money.get("amount") is not None else None,
            currency=money.get("currencyCode"),
            financial_status=order.get("displayFinancialStatus"),
            metafields=metafields,
            transactions=transactions,
        )

    # ------------------------------------------------------------
    # Storefront carts
    # ------------------------------------------------------------

    @staticmethod
    def _cart_from_payload(cart: dict[str, Any]) -> CartSnapshot:
        total = ((cart.get("cost") or {}).get("totalAmount")) or {}
        lines = []
        for edge in ((cart.get("lines") or {}).get("edges") or []):
            node = edge.get("node") or {}
            lines.append(
                {
                    "id": node.get("id"),
                    "quantity": node.get("quantity", 0),
                    "merchandise_id": (node.get("merchandise") or {}).get("id"),
                    "attributes": node.get("attributes") or [],
                }
            )
        return CartSnapshot(
            id=cart["id"],
            checkout_url=cart.get("checkoutUrl") or "",
            total_quantity=int(cart.get("totalQuantity") or 0),
            total_amount=Decimal(str(total["amount"])) if total.get("amount") is not None else None,
            currency=total.get("currencyCode"),
            lines=lines,
        )

    async def cart_create(
        self,
        lines: list[dict[str, Any]],
        *,
        attributes: list[dict[str, str]] | None = None,
    ) -> CartSnapshot:
        """Create a storefront cart with the given lines."""
        cart_input: dict[str, Any] = {"lines": lines}
        if attributes:
            cart_input["attributes"] = attributes
        data = await self.storefront_graphql(CART_CREATE_MUTATION, {"input": cart_input}, context="Cart create")
        payload = self._check_user_errors(data.get("cartCreate"), "Cart create")
        if not payload.get("cart"):
            raise ExternalMutationError("Cart create: no cart returned")
        return self._cart_from_payload(payload["cart"])

    async def cart_lines_add(self, cart_id: str, lines: list[dict[str, Any]]) -> CartSnapshot:
        """Add lines to an existing storefront cart."""
        data = await self.storefront_graphql(
            CART_LINES_ADD_MUTATION,
            {"cartId": cart_id, "lines": lines},
            context="Cart lines add",
        )
        payload = self._check_user_errors(data.get("cartLinesAdd"), "Cart lines add")
        if not payload.get("cart"):
            raise ExternalMutationError(
                "Cart lines add: cart not found",
                kind=ErrorKind.CART_EXPIRED,
                detail={"cart_id": cart_id},
            )
        return self._cart_from_payload(payload["cart"])


# Singleton instance
_client: ShopifyClient | None = None


def get_shopify_client() -> ShopifyClient:
    """Get Shopify client singleton."""
    global _client
    if _client is None:
        _client = ShopifyClient()
    return _client


async def close_shopify_client() -> None:
    """Close the singleton's HTTP client."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
