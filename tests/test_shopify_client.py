import json
from decimal import Decimal

import httpx
import pytest

from stonebridge.services.errors import (
    ErrorKind,
    ExternalMutationError,
    ExternalTransient,
    NotConfigured,
)
from stonebridge.services.shopify_client import (
    ShopifyClient,
    classify_user_errors,
    numeric_id,
    to_gid,
)


def make_client(handler) -> ShopifyClient:
    return ShopifyClient(
        store_domain="https://test-shop.myshopify.com/",
        admin_access_token="admin-token",
        storefront_access_token="storefront-token",
        api_version="2024-10",
        transport=httpx.MockTransport(handler),
    )


def graphql(data: dict) -> httpx.Response:
    return httpx.Response(200, json={"data": data})


def test_gid_helpers():
    assert numeric_id("gid://shopify/Product/123") == "123"
    assert numeric_id("123") == "123"
    assert to_gid("Order", 5) == "gid://shopify/Order/5"
    assert to_gid("Order", "gid://shopify/Order/5") == "gid://shopify/Order/5"


@pytest.mark.parametrize(
    "errors,kind",
    [
        ([{"field": ["lines", "0", "merchandiseId"], "message": "The merchandise with id 1 does not exist."}], ErrorKind.NOT_YET_VISIBLE),
        ([{"field": ["cartId"], "message": "The specified cart does not exist."}], ErrorKind.CART_EXPIRED),
        ([{"field": ["sku"], "message": "SKU has already been taken"}], ErrorKind.DUPLICATE),
        ([{"message": "The variant 'EXT-1' already exists."}], ErrorKind.DUPLICATE),
        ([{"field": ["price"], "message": "Price must be positive"}], ErrorKind.REJECTED),
        (
            [
                {"message": "The merchandise with id 1 does not exist."},
                {"message": "Quantity is invalid"},
            ],
            ErrorKind.REJECTED,
        ),
        ([], ErrorKind.REJECTED),
    ],
)
def test_classify_user_errors(errors, kind):
    assert classify_user_errors(errors) is kind


@pytest.mark.asyncio
async def test_cart_create_invisible_merchandise_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/2024-10/graphql.json"
        assert request.headers["X-Shopify-Storefront-Access-Token"] == "storefront-token"
        return graphql(
            {
                "cartCreate": {
                    "cart": None,
                    "userErrors": [
                        {"field": ["input", "lines", "0"], "message": "The merchandise with id 7 does not exist.", "code": "INVALID"}
                    ],
                }
            }
        )

    client = make_client(handler)
    with pytest.raises(ExternalTransient) as exc_info:
        await client.cart_create([{"merchandiseId": "gid://shopify/ProductVariant/7", "quantity": 1}])
    assert exc_info.value.kind is ErrorKind.NOT_YET_VISIBLE
    await client.close()


@pytest.mark.asyncio
async def test_cart_lines_add_unknown_cart_is_cart_expired():
    def handler(request: httpx.Request) -> httpx.Response:
        return graphql(
            {"cartLinesAdd": {"cart": None, "userErrors": [{"field": ["cartId"], "message": "The specified cart does not exist.", "code": "INVALID"}]}}
        )

    client = make_client(handler)
    with pytest.raises(ExternalMutationError) as exc_info:
        await client.cart_lines_add("gid://shopify/Cart/abc", [{"merchandiseId": "v", "quantity": 1}])
    assert exc_info.value.kind is ErrorKind.CART_EXPIRED
    await client.close()


@pytest.mark.asyncio
async def test_create_variant_duplicate_rest_error():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/admin/api/2024-10/products/100/variants.json"
        return httpx.Response(422, json={"errors": {"base": ["The variant 'EXT-1' already exists."]}})

    client = make_client(handler)
    with pytest.raises(ExternalMutationError) as exc_info:
        await client.create_variant("gid://shopify/Product/100", price="10.00", sku="EXT-1", option1="1")
    assert exc_info.value.kind is ErrorKind.DUPLICATE
    await client.close()


@pytest.mark.asyncio
async def test_create_variant_returns_gid():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["variant"] == {"price": "12.50", "sku": "EXT-9", "option1": "9"}
        return httpx.Response(201, json={"variant": {"id": 555, "sku": "EXT-9", "price": "12.50"}})

    client = make_client(handler)
    variant = await client.create_variant("100", price="12.50", sku="EXT-9", option1="9")
    assert variant.id == "gid://shopify/ProductVariant/555"
    assert variant.sku == "EXT-9"
    await client.close()


@pytest.mark.asyncio
async def test_get_product_variants_follows_page_cursors():
    pages = {
        None: (["EXT-a", "EXT-b"], True, "cursor-1"),
        "cursor-1": (["EXT-c"], False, None),
    }
    seen_after = []

    def handler(request: httpx.Request) -> httpx.Response:
        variables = json.loads(request.content)["variables"]
        seen_after.append(variables["after"])
        skus, has_next, cursor = pages[variables["after"]]
        return graphql(
            {
                "product": {
                    "id": "gid://shopify/Product/100",
                    "variants": {
                        "edges": [{"node": {"id": f"gid://shopify/ProductVariant/{s}", "sku": s, "price": "1.00"}} for s in skus],
                        "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
                    },
                }
            }
        )

    client = make_client(handler)
    variants = await client.get_product_variants("100", page_size=2)
    assert [v.sku for v in variants] == ["EXT-a", "EXT-b", "EXT-c"]
    assert seen_after == [None, "cursor-1"]
    await client.close()


@pytest.mark.asyncio
async def test_http_error_status_is_rejected():
    client = make_client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(ExternalMutationError) as exc_info:
        await client.find_product_by_title("External Dummy - labgrown")
    assert exc_info.value.kind is ErrorKind.REJECTED
    await client.close()


@pytest.mark.asyncio
async def test_find_product_by_title_requires_exact_match():
    def handler(request: httpx.Request) -> httpx.Response:
        return graphql(
            {
                "products": {
                    "edges": [
                        {"node": {"id": "gid://shopify/Product/1", "title": "External Dummy - labgrown extra"}},
                        {"node": {"id": "gid://shopify/Product/2", "title": "External Dummy - labgrown"}},
                    ]
                }
            }
        )

    client = make_client(handler)
    assert await client.find_product_by_title("External Dummy - labgrown") == "gid://shopify/Product/2"
    await client.close()


@pytest.mark.asyncio
async def test_get_order_parses_metafields_and_transactions():
    def handler(request: httpx.Request) -> httpx.Response:
        return graphql(
            {
                "order": {
                    "id": "gid://shopify/Order/42",
                    "name": "#1042",
                    "displayFinancialStatus": "PARTIALLY_PAID",
                    "totalPriceSet": {"shopMoney": {"amount": "1000.0", "currencyCode": "USD"}},
                    "transactions": [
                        {"id": "gid://shopify/OrderTransaction/1", "kind": "CAPTURE", "status": "SUCCESS", "gateway": "manual", "amountSet": {"shopMoney": {"amount": "300.0"}}}
                    ],
                    "metafields": {
                        "edges": [
                            {"node": {"namespace": "partial", "key": "remaining_amount", "value": "700.00"}},
                        ]
                    },
                }
            }
        )

    client = make_client(handler)
    order = await client.get_order("42")
    assert order is not None
    assert order.total_amount == Decimal("1000.0")
    assert order.metafield("partial", "remaining_amount") == "700.00"
    assert order.transactions[0].amount == Decimal("300.0")
    await client.close()


@pytest.mark.asyncio
async def test_unconfigured_client_raises_not_configured():
    client = ShopifyClient(store_domain="shop.test", admin_access_token="x", storefront_access_token="")
    client.storefront_access_token = ""
    with pytest.raises(NotConfigured):
        await client.cart_create([])
