import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from stonebridge.models import DepositSession, Payment
from stonebridge.services.completion import SessionCompletionService
from stonebridge.services.deposit_sessions import SessionLineItem, get_deposit_session
from stonebridge.services.errors import (
    ExternalMutationError,
    InvalidState,
    NotFound,
    SessionNotFound,
    ValidationError,
)
from stonebridge.stores.postgres import get_session

from tests.test_deposit_sessions import add_plan, make_orchestrator

LINES = [SessionLineItem(title="Emerald cut 2ct", price=Decimal("1000"), external_id="lg-2")]


async def create_session(fake_shopify) -> str:
    await add_plan()
    result = await make_orchestrator(fake_shopify).create("gid://shopify/Cart/c1", lines=LINES)
    return result.session_id


@pytest.mark.asyncio
async def test_complete_deposit_order(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    service = SessionCompletionService(fake_shopify)

    result = await service.complete_deposit_order(session_id)

    assert result.deposit_amount == Decimal("300")
    assert result.remaining_amount == Decimal("700")
    assert result.payment_link.startswith("https://shop.test/invoices/")
    assert result.warnings == []

    order = fake_shopify.orders[result.order_id]
    assert order.metafield("partial", "deposit_amount") == "300.00"
    assert order.metafield("partial", "remaining_amount") == "700.00"
    assert order.metafield("partial", "remaining_paid") == "false"
    assert order.metafield("partial", "session_id") == session_id
    assert order.metafield("partial", "payment_link") == result.payment_link
    assert order.transactions[0].amount == Decimal("300.00")

    view = await get_deposit_session(session_id)
    assert view.payment_status == "partial_paid"
    assert view.paid_installments == 1
    assert view.schedules[0].status == "paid"
    assert view.schedules[0].order_id == result.order_id
    assert view.remaining_amount == Decimal("700")


@pytest.mark.asyncio
async def test_deposit_cannot_be_completed_twice(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    service = SessionCompletionService(fake_shopify)
    await service.complete_deposit_order(session_id)

    with pytest.raises(InvalidState) as exc_info:
        await service.complete_deposit_order(session_id)
    assert exc_info.value.code == "DEPOSIT_ALREADY_COMPLETED"


@pytest.mark.asyncio
async def test_expired_or_unknown_session_cannot_be_completed(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    async with get_session() as session:
        await session.execute(
            update(DepositSession)
            .where(DepositSession.session_id == session_id)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        )
    service = SessionCompletionService(fake_shopify)

    with pytest.raises(SessionNotFound):
        await service.complete_deposit_order(session_id)
    with pytest.raises(SessionNotFound):
        await service.complete_deposit_order("deposit_0_missing")


@pytest.mark.asyncio
async def test_payment_link_failure_is_a_warning(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    # Fourth draft order is the remaining-balance invoice.
    fake_shopify.fail["create_draft_order"] = [ExternalMutationError("Draft order create: invalid line")]

    result = await SessionCompletionService(fake_shopify).complete_deposit_order(session_id)

    assert result.payment_link is None
    assert result.warnings and result.warnings[0].startswith("payment_link:")
    assert (await get_deposit_session(session_id)).payment_status == "partial_paid"


@pytest.mark.asyncio
async def test_complete_remaining_payment(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    service = SessionCompletionService(fake_shopify)
    deposit = await service.complete_deposit_order(session_id)

    result = await service.complete_remaining_payment(deposit.order_id, transaction_id="ext-tx-1")

    assert result.amount == Decimal("700.00")
    assert result.transaction_id == "ext-tx-1"
    view = await get_deposit_session(session_id)
    assert view.payment_status == "fully_paid"
    assert view.paid_installments == 3
    assert all(s.status == "paid" for s in view.schedules)
    assert view.remaining_amount == Decimal("0")

    status = await service.get_order_payment_status(deposit.order_id)
    assert status.payment_status == "fully_paid"
    assert status.deposit_paid and status.remaining_paid
    assert status.captured_amount == Decimal("1000.00")

    async with get_session() as session:
        payments = (await session.execute(select(Payment).order_by(Payment.id))).scalars().all()
    assert [p.payment_type for p in payments] == ["DEPOSIT", "REMAINING"]


@pytest.mark.asyncio
async def test_remaining_payment_rejected_once_paid(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    service = SessionCompletionService(fake_shopify)
    deposit = await service.complete_deposit_order(session_id)
    await service.complete_remaining_payment(deposit.order_id)

    with pytest.raises(InvalidState) as exc_info:
        await service.complete_remaining_payment(deposit.order_id)
    assert exc_info.value.code == "ALREADY_FULLY_PAID"
    assert fake_shopify.count("create_capture_transaction") == 2


@pytest.mark.asyncio
async def test_concurrent_remaining_payments_capture_once(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    service = SessionCompletionService(fake_shopify)
    deposit = await service.complete_deposit_order(session_id)

    results = await asyncio.gather(
        service.complete_remaining_payment(deposit.order_id),
        service.complete_remaining_payment(deposit.order_id),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, InvalidState)) == 1
    assert fake_shopify.count("create_capture_transaction") == 2  # deposit + one remaining


@pytest.mark.asyncio
async def test_failed_capture_releases_the_claim(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    service = SessionCompletionService(fake_shopify)
    deposit = await service.complete_deposit_order(session_id)
    fake_shopify.fail["create_capture_transaction"] = [ExternalMutationError("Capture: declined")]

    with pytest.raises(ExternalMutationError):
        await service.complete_remaining_payment(deposit.order_id)
    assert (await get_deposit_session(session_id)).payment_status == "partial_paid"

    result = await service.complete_remaining_payment(deposit.order_id)
    assert result.amount == Decimal("700.00")


@pytest.mark.asyncio
async def test_remaining_payment_requires_metafields(db, fake_shopify):
    service = SessionCompletionService(fake_shopify)
    order_id = await fake_shopify.complete_draft_order("gid://shopify/DraftOrder/1")

    with pytest.raises(NotFound) as exc_info:
        await service.complete_remaining_payment(order_id)
    assert exc_info.value.code == "REMAINING_AMOUNT_NOT_FOUND"

    fake_shopify.orders[order_id].metafields["partial.remaining_amount"] = "0.00"
    with pytest.raises(ValidationError) as exc_info:
        await service.complete_remaining_payment(order_id)
    assert exc_info.value.code == "NO_REMAINING_AMOUNT"

    with pytest.raises(NotFound) as exc_info:
        await service.complete_remaining_payment("gid://shopify/Order/404")
    assert exc_info.value.code == "ORDER_NOT_FOUND"


@pytest.mark.asyncio
async def test_retried_deposit_completion_captures_once(db, fake_shopify):
    session_id = await create_session(fake_shopify)
    service = SessionCompletionService(fake_shopify)
    fake_shopify.fail["set_metafields"] = [ExternalMutationError("Metafields set: throttled")]

    with pytest.raises(ExternalMutationError):
        await service.complete_deposit_order(session_id)

    view = await get_deposit_session(session_id)
    assert view.payment_status == "pending_deposit"
    assert view.schedules[0].order_id is not None

    result = await service.complete_deposit_order(session_id)

    assert result.order_id == view.schedules[0].order_id
    assert fake_shopify.count("complete_draft_order") == 1
    assert fake_shopify.count("create_capture_transaction") == 1
    assert fake_shopify.orders[result.order_id].metafield("partial", "deposit_paid") == "true"
    assert (await get_deposit_session(session_id)).payment_status == "partial_paid"

    async with get_session() as session:
        payments = (await session.execute(select(Payment).where(Payment.session_id == session_id))).scalars().all()
    assert [(p.payment_type, p.transaction_id) for p in payments] == [("DEPOSIT", result.transaction_id)]


@pytest.mark.asyncio
async def test_payment_status_rejects_unreadable_amounts(db, fake_shopify):
    service = SessionCompletionService(fake_shopify)
    order_id = await fake_shopify.complete_draft_order("gid://shopify/DraftOrder/1")
    fake_shopify.orders[order_id].metafields["partial.deposit_amount"] = "three hundred"

    with pytest.raises(ValidationError) as exc_info:
        await service.get_order_payment_status(order_id)
    assert exc_info.value.code == "INVALID_PAYMENT_METAFIELD"
