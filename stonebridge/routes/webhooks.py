"""Shopify webhook endpoints.

POST /v1/webhooks/deposit-paid  - Deposit checkout paid -> complete deposit order
POST /v1/webhooks/balance-paid  - Balance invoice paid -> complete remaining payment

Both verify X-Shopify-Hmac-Sha256 (base64 HMAC-SHA256 of the raw body).
"""

import base64
import hashlib
import hmac
import json
import logging
from typing import Any

from fastapi import APIRouter, Request

from stonebridge.services.completion import get_completion_service
from stonebridge.services.errors import InvalidSignature, ValidationError
from stonebridge.services.shopify_client import to_gid
from stonebridge.settings import get_settings

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

HMAC_HEADER = "X-Shopify-Hmac-Sha256"


def verify_shopify_hmac(body: bytes, header: str | None, secret: str) -> bool:
    """Constant-time check of a Shopify webhook signature."""
    if not header or not secret:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(expected, header)


async def _verified_payload(request: Request) -> dict[str, Any]:
    body = await request.body()
    secret = get_settings().shopify_webhook_secret
    if not secret and get_settings().debug:
        logger.warning("SHOPIFY_WEBHOOK_SECRET not set, accepting unsigned webhook (debug)")
    elif not verify_shopify_hmac(body, request.headers.get(HMAC_HEADER), secret):
        raise InvalidSignature("Invalid webhook signature")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValidationError("Webhook body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")
    return payload


def _tags(order: dict[str, Any]) -> list[str]:
    tags = order.get("tags") or []
    if isinstance(tags, str):
        # REST payloads send tags as one comma-separated string
        tags = tags.split(",")
    return [t.strip() for t in tags if isinstance(t, str)]


def extract_session_id(payload: dict[str, Any]) -> str | None:
    """Session id from note attributes, custom attributes or a `session:` tag."""
    order = payload.get("order") if isinstance(payload.get("order"), dict) else payload

    for attr in order.get("note_attributes") or []:
        if attr.get("name") == "deposit_session_id" and attr.get("value"):
            return str(attr["value"])
    for attr in order.get("custom_attributes") or []:
        if attr.get("key") == "session_id" and attr.get("value"):
            return str(attr["value"])
    for tag in _tags(order):
        if tag.startswith("session:"):
            return tag.removeprefix("session:")
    return None


def extract_order_id(payload: dict[str, Any]) -> str | None:
    order = payload.get("order")
    if isinstance(order, dict):
        order_id = order.get("admin_graphql_api_id") or order.get("id")
    else:
        order_id = payload.get("admin_graphql_api_id") or payload.get("id")
    return to_gid("Order", order_id) if order_id else None


@router.post("/deposit-paid")
async def deposit_paid(request: Request) -> dict:
    payload = await _verified_payload(request)
    session_id = extract_session_id(payload)
    if not session_id:
        raise ValidationError("Session ID not found in webhook data", code="SESSION_ID_MISSING")

    logger.info(f"Webhook deposit-paid for session {session_id}")
    result = await get_completion_service().complete_deposit_order(session_id)
    return {
        "success": True,
        "orderId": result.order_id,
        "paymentLink": result.payment_link,
        "warnings": result.warnings,
    }


@router.post("/balance-paid")
async def balance_paid(request: Request) -> dict:
    payload = await _verified_payload(request)
    order_id = extract_order_id(payload)
    if not order_id:
        raise ValidationError("Order ID not found in webhook data", code="ORDER_ID_MISSING")

    transaction = payload.get("transaction")
    transaction_id = str(transaction["id"]) if isinstance(transaction, dict) and transaction.get("id") else None

    logger.info(f"Webhook balance-paid for order {order_id}")
    result = await get_completion_service().complete_remaining_payment(order_id, transaction_id=transaction_id)
    return {"success": True, "orderId": result.order_id, "amount": f"{result.amount:.2f}"}
