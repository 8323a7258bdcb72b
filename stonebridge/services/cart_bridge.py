"""Cart bridge.

Puts materialized variants into storefront carts. The storefront read path
lags the admin write that just created or re-priced a variant, so cart calls
that fail with ExternalTransient (merchandise not yet visible) are retried a
bounded number of times with a fixed delay. Every other error surfaces
immediately.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import Any, TypeVar

from stonebridge.services.errors import ErrorKind, ExternalTransient, PlatformError
from stonebridge.services.shopify_client import CartSnapshot, ShopifyClient, get_shopify_client
from stonebridge.settings import get_settings

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")


@dataclass
class CartLineInput:
    """One storefront cart line."""

    merchandise_id: str
    quantity: int = 1
    attributes: list[dict[str, str]] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"merchandiseId": self.merchandise_id, "quantity": self.quantity}
        if self.attributes:
            payload["attributes"] = self.attributes
        return payload


@dataclass
class CartResult:
    """Cart after a bridge call."""

    checkout_url: str
    cart_id: str
    cart: CartSnapshot
    recreated: bool = False  # previous cart had expired


def strip_cart_key(cart_id: str) -> str:
    """Storefront cart ids may carry a `?key=` suffix; drop it."""
    return cart_id.split("?", 1)[0]


class CartBridge:
    """Create or extend storefront carts with visibility retries."""

    def __init__(
        self,
        client: ShopifyClient,
        *,
        attempts: int = 3,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.attempts = max(1, attempts)
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    async def _with_visibility_retry(self, label: str, call: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(1, self.attempts + 1):
            try:
                return await call()
            except ExternalTransient as e:
                if attempt == self.attempts:
                    logger.warning(f"{label}: merchandise still not visible after {attempt} attempts")
                    raise
                logger.warning(
                    f"{label}: merchandise not visible yet (attempt {attempt}/{self.attempts}), "
                    f"retrying in {self.delay_seconds}s: {e.message}"
                )
                await self._sleep(self.delay_seconds)
        raise AssertionError("unreachable")

    @staticmethod
    def _result(cart: CartSnapshot, *, recreated: bool = False) -> CartResult:
        return CartResult(
            checkout_url=cart.checkout_url,
            cart_id=strip_cart_key(cart.id),
            cart=cart,
            recreated=recreated,
        )

    async def add_variant_to_cart(
        self,
        variant_id: str,
        attributes: list[dict[str, str]] | None = None,
        *,
        cart_attributes: list[dict[str, str]] | None = None,
    ) -> CartResult:
        """Create a new cart holding one unit of variant_id.

        Raises:
            ExternalTransient: Variant still invisible after all attempts.
            PlatformError: Any other platform rejection (no retry).
        """
        line = CartLineInput(merchandise_id=variant_id, quantity=1, attributes=attributes)
        return await self.create_cart_with_lines([line], cart_attributes=cart_attributes)

    async def create_cart_with_lines(
        self,
        lines: list[CartLineInput],
        *,
        cart_attributes: list[dict[str, str]] | None = None,
    ) -> CartResult:
        """Create a new cart with a batch of lines."""
        payload = [line.to_payload() for line in lines]
        cart = await self._with_visibility_retry(
            "cartCreate",
            lambda: self.client.cart_create(payload, attributes=cart_attributes),
        )
        logger.info(f"Created cart {strip_cart_key(cart.id)} with {len(lines)} line(s)")
        return self._result(cart)

    async def add_lines_to_cart(
        self,
        cart_id: str,
        lines: list[CartLineInput],
        *,
        fallback_lines: list[CartLineInput] | None = None,
    ) -> CartResult:
        """Add lines to an existing cart.

        If the cart has expired on the platform, a new cart is created with
        fallback_lines (the customer's previous contents) plus lines.
        """
        payload = [line.to_payload() for line in lines]
        try:
            cart = await self._with_visibility_retry(
                "cartLinesAdd",
                lambda: self.client.cart_lines_add(cart_id, payload),
            )
        except PlatformError as e:
            if e.kind is not ErrorKind.CART_EXPIRED:
                raise
            logger.info(f"Cart {strip_cart_key(cart_id)} expired, recreating with previous lines")
            recreated = await self.create_cart_with_lines(list(fallback_lines or []) + list(lines))
            recreated.recreated = True
            return recreated
        return self._result(cart)


_bridge: CartBridge | None = None


def get_cart_bridge() -> CartBridge:
    """Get cart bridge singleton."""
    global _bridge
    if _bridge is None:
        settings = get_settings()
        _bridge = CartBridge(
            get_shopify_client(),
            attempts=settings.cart_retry_attempts,
            delay_seconds=settings.cart_retry_delay_seconds,
        )
    return _bridge
