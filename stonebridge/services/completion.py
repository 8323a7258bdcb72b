"""Session completion service.

Deposit completion (instalment #1):
- complete the instalment-1 draft order into a real order
- record a capture for the deposit amount
- write `partial.*` payment metafields on the order
- create a payment link (remaining-balance draft order invoice) for the rest
- mark schedule #1 paid and move the session to partial_paid
- the completed order id (schedule #1) and the capture (payments ledger) are
  persisted as soon as each platform step succeeds; a retry resumes after them

Remaining payment:
- read the remaining amount back from the order's `partial.*` metafields
- claim the session with a status-guarded conditional update
  (partial_paid -> fully_paid) before capturing, so two concurrent calls
  cannot both capture; the claim is released if the capture fails
- record the capture, flip the metafields, mark the remaining rows paid
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stonebridge.models import DepositSession, Payment, PaymentSchedule, ScheduleStatus, SessionStatus
from stonebridge.services.deposit_sessions import get_deposit_session
from stonebridge.services.errors import (
    InvalidPlan,
    InvalidState,
    NotFound,
    PlatformError,
    SessionNotFound,
    ValidationError,
)
from stonebridge.services.instalments import to_decimal
from stonebridge.services.shopify_client import ShopifyClient, get_shopify_client
from stonebridge.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")

METAFIELD_NAMESPACE = "partial"


@dataclass
class DepositCompletion:
    order_id: str
    session_id: str
    deposit_amount: Decimal
    remaining_amount: Decimal
    transaction_id: str
    payment_link: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class RemainingCompletion:
    order_id: str
    session_id: str
    amount: Decimal
    transaction_id: str
    warnings: list[str] = field(default_factory=list)


@dataclass
class OrderPaymentStatus:
    order_id: str
    payment_status: str
    deposit_paid: bool
    remaining_paid: bool
    deposit_amount: Decimal | None = None
    remaining_amount: Decimal | None = None
    captured_amount: Decimal = Decimal("0")
    payment_link: str | None = None
    session_id: str | None = None


def _metafield(owner_id: str, key: str, value: str, type_: str) -> dict[str, str]:
    return {"ownerId": owner_id, "namespace": METAFIELD_NAMESPACE, "key": key, "value": value, "type": type_}


async def _transition(session: AsyncSession, session_id: str, current: SessionStatus, target: SessionStatus) -> bool:
    """Conditional status update; True if this call performed the transition."""
    result = await session.execute(
        update(DepositSession)
        .where(DepositSession.session_id == session_id, DepositSession.payment_status == current.value)
        .values(payment_status=target.value)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _recorded_transaction(session_id: str, order_id: str, payment_type: str) -> str | None:
    """Transaction id of a capture already in the payments ledger, if any."""
    async with get_session() as session:
        result = await session.execute(
            select(Payment.transaction_id)
            .where(
                Payment.session_id == session_id,
                Payment.order_id == order_id,
                Payment.payment_type == payment_type,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()


class SessionCompletionService:
    """Completes deposit sessions against the platform and the datastore."""

    def __init__(self, client: ShopifyClient):
        self.client = client

    async def complete_deposit_order(self, session_id: str) -> DepositCompletion:
        """Turn instalment #1 into a real, deposit-paid order.

        Raises:
            SessionNotFound: Unknown or expired session.
            InvalidState: Deposit already completed.
            PlatformError: Draft completion, capture or metafield write failed.
        """
        view = await get_deposit_session(session_id)
        if view.expired:
            raise SessionNotFound(f"Deposit session {session_id} has expired", detail={"session_id": session_id})
        if view.payment_status != SessionStatus.PENDING_DEPOSIT.value:
            raise InvalidState(
                f"Deposit for session {session_id} already completed",
                code="DEPOSIT_ALREADY_COMPLETED",
                detail={"payment_status": view.payment_status},
            )
        first = next((s for s in view.schedules if s.installment_number == 1), None)
        if first is None:
            raise InvalidState(f"Session {session_id} has no deposit instalment", code="SCHEDULE_INCOMPLETE")

        deposit_amount = first.amount
        remaining_amount = view.total_amount - deposit_amount
        warnings: list[str] = []

        # Each platform step is checkpointed so a retry resumes after the last one that succeeded.
        order_id = first.order_id
        if order_id is None:
            order_id = await self.client.complete_draft_order(first.draft_order_id, payment_pending=True)
            logger.info(f"Deposit session {session_id}: draft {first.draft_order_id} completed as {order_id}")
            async with get_session() as session:
                await session.execute(
                    update(PaymentSchedule)
                    .where(PaymentSchedule.session_id == session_id, PaymentSchedule.installment_number == 1)
                    .values(order_id=order_id)
                    .execution_options(synchronize_session=False)
                )
        else:
            logger.info(f"Deposit session {session_id}: resuming with completed order {order_id}")

        transaction_id = await _recorded_transaction(session_id, order_id, "DEPOSIT")
        if transaction_id is None:
            transaction = await self.client.create_capture_transaction(order_id, deposit_amount)
            transaction_id = transaction.id
            async with get_session() as session:
                session.add(
                    Payment(
                        order_id=order_id,
                        session_id=session_id,
                        payment_type="DEPOSIT",
                        amount=deposit_amount,
                        transaction_id=transaction_id,
                    )
                )

        await self.client.set_metafields(
            [
                _metafield(order_id, "deposit_amount", f"{deposit_amount:.2f}", "number_decimal"),
                _metafield(order_id, "remaining_amount", f"{remaining_amount:.2f}", "number_decimal"),
                _metafield(order_id, "deposit_paid", "true", "boolean"),
                _metafield(order_id, "remaining_paid", "false", "boolean"),
                _metafield(order_id, "payment_status", SessionStatus.PARTIAL_PAID.value, "single_line_text_field"),
                _metafield(order_id, "session_id", session_id, "single_line_text_field"),
            ]
        )

        payment_link = None
        if remaining_amount > 0:
            try:
                payment_link = await self.create_remaining_payment_link(
                    order_id,
                    remaining_amount,
                    session_id=session_id,
                    customer_id=view.customer_id,
                )
            except PlatformError as e:
                logger.warning(f"Payment link for {order_id} failed: {e.message}")
                warnings.append(f"payment_link: {e.message}")

        now = datetime.now(timezone.utc)
        async with get_session() as session:
            if not await _transition(session, session_id, SessionStatus.PENDING_DEPOSIT, SessionStatus.PARTIAL_PAID):
                raise InvalidState(
                    f"Deposit for session {session_id} already completed",
                    code="DEPOSIT_ALREADY_COMPLETED",
                )
            await session.execute(
                update(DepositSession)
                .where(DepositSession.session_id == session_id)
                .values(paid_installments=1)
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                update(PaymentSchedule)
                .where(PaymentSchedule.session_id == session_id, PaymentSchedule.installment_number == 1)
                .values(
                    status=ScheduleStatus.PAID.value,
                    paid_amount=deposit_amount,
                    paid_at=now,
                    order_id=order_id,
                )
                .execution_options(synchronize_session=False)
            )

        return DepositCompletion(
            order_id=order_id,
            session_id=session_id,
            deposit_amount=deposit_amount,
            remaining_amount=remaining_amount,
            transaction_id=transaction_id,
            payment_link=payment_link,
            warnings=warnings,
        )

    async def create_remaining_payment_link(
        self,
        order_id: str,
        amount: Decimal,
        *,
        session_id: str,
        customer_id: str | None = None,
    ) -> str:
        """Invoice URL of a remaining-balance draft order, stored on the order."""
        draft = await self.client.create_draft_order(
            line_items=[
                {
                    "title": f"Remaining balance ({session_id})",
                    "originalUnitPrice": f"{amount:.2f}",
                    "quantity": 1,
                    "requiresShipping": False,
                    "taxable": False,
                }
            ],
            customer_id=customer_id,
            tags=["deposit-balance", f"session:{session_id}"],
            custom_attributes=[
                {"key": "session_id", "value": session_id},
                {"key": "deposit_order_id", "value": order_id},
            ],
        )
        if not draft.invoice_url:
            raise PlatformError("Remaining-balance draft order has no invoice URL", detail={"draft_order_id": draft.id})

        await self.client.set_metafields([_metafield(order_id, "payment_link", draft.invoice_url, "url")])
        return draft.invoice_url

    async def complete_remaining_payment(self, order_id: str, transaction_id: str | None = None) -> RemainingCompletion:
        """Capture the remaining balance of a deposit-paid order.

        Args:
            order_id: Order created by complete_deposit_order.
            transaction_id: External payment reference (e.g. from a webhook).

        Raises:
            NotFound: Order or its remaining amount unknown.
            ValidationError: Nothing left to pay.
            InvalidState: Already fully paid (including a concurrent call winning).
            SessionNotFound: Order is not linked to a deposit session.
        """
        order = await self.client.get_order(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found", code="ORDER_NOT_FOUND", detail={"order_id": order_id})

        raw_remaining = order.metafield(METAFIELD_NAMESPACE, "remaining_amount")
        if raw_remaining is None:
            raise NotFound(
                "Remaining amount not found in order metafields",
                code="REMAINING_AMOUNT_NOT_FOUND",
                detail={"order_id": order_id},
            )
        if order.metafield(METAFIELD_NAMESPACE, "remaining_paid") == "true":
            raise InvalidState(f"Order {order_id} is already fully paid", code="ALREADY_FULLY_PAID")
        try:
            remaining = to_decimal(raw_remaining)
        except InvalidPlan as e:
            raise ValidationError(f"Unreadable remaining amount: {raw_remaining}") from e
        if remaining <= 0:
            raise ValidationError("No remaining amount to pay", code="NO_REMAINING_AMOUNT")

        session_id = order.metafield(METAFIELD_NAMESPACE, "session_id")
        if not session_id:
            raise SessionNotFound(f"Order {order_id} is not linked to a deposit session")

        async with get_session() as session:
            claimed = await _transition(session, session_id, SessionStatus.PARTIAL_PAID, SessionStatus.FULLY_PAID)
        if not claimed:
            raise InvalidState(
                f"Session {session_id} is not awaiting its remaining payment",
                code="ALREADY_FULLY_PAID",
                detail={"session_id": session_id},
            )

        try:
            transaction = await self.client.create_capture_transaction(order_id, remaining)
        except Exception:
            async with get_session() as session:
                await _transition(session, session_id, SessionStatus.FULLY_PAID, SessionStatus.PARTIAL_PAID)
            logger.exception(f"Remaining capture failed for {order_id}, session {session_id} released")
            raise

        warnings: list[str] = []
        try:
            await self.client.set_metafields(
                [
                    _metafield(order_id, "remaining_paid", "true", "boolean"),
                    _metafield(order_id, "payment_status", SessionStatus.FULLY_PAID.value, "single_line_text_field"),
                ]
            )
        except PlatformError as e:
            logger.warning(f"Payment metafields for {order_id} not updated: {e.message}")
            warnings.append(f"metafields: {e.message}")

        now = datetime.now(timezone.utc)
        async with get_session() as session:
            rows = (
                await session.execute(
                    update(PaymentSchedule)
                    .where(
                        PaymentSchedule.session_id == session_id,
                        PaymentSchedule.status != ScheduleStatus.PAID.value,
                    )
                    .values(status=ScheduleStatus.PAID.value, paid_amount=PaymentSchedule.amount, paid_at=now)
                    .execution_options(synchronize_session=False)
                )
            ).rowcount
            await session.execute(
                update(DepositSession)
                .where(DepositSession.session_id == session_id)
                .values(paid_installments=DepositSession.total_installments)
                .execution_options(synchronize_session=False)
            )
            session.add(
                Payment(
                    order_id=order_id,
                    session_id=session_id,
                    payment_type="REMAINING",
                    amount=remaining,
                    transaction_id=transaction_id or transaction.id,
                )
            )

        logger.info(f"Remaining payment {remaining} captured for {order_id} ({rows} schedule row(s) settled)")
        return RemainingCompletion(
            order_id=order_id,
            session_id=session_id,
            amount=remaining,
            transaction_id=transaction_id or transaction.id,
            warnings=warnings,
        )

    async def get_order_payment_status(self, order_id: str) -> OrderPaymentStatus:
        """Payment state of an order from its metafields and capture transactions."""
        order = await self.client.get_order(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found", code="ORDER_NOT_FOUND", detail={"order_id": order_id})

        captures = [
            t for t in order.transactions if t.kind in ("CAPTURE", "SALE") and t.status in ("SUCCESS", "")
        ]
        captured = sum((t.amount for t in captures), Decimal("0"))

        def _amount(key: str) -> Decimal | None:
            raw = order.metafield(METAFIELD_NAMESPACE, key)
            if raw in (None, ""):
                return None
            try:
                return to_decimal(raw)
            except InvalidPlan as e:
                raise ValidationError(
                    f"Unreadable {METAFIELD_NAMESPACE}.{key} on order {order_id}: {raw}",
                    code="INVALID_PAYMENT_METAFIELD",
                    detail={"order_id": order_id, "key": key},
                ) from e

        deposit_flag = order.metafield(METAFIELD_NAMESPACE, "deposit_paid")
        remaining_flag = order.metafield(METAFIELD_NAMESPACE, "remaining_paid")
        deposit_paid = deposit_flag == "true" if deposit_flag is not None else len(captures) >= 1
        remaining_paid = remaining_flag == "true" if remaining_flag is not None else len(captures) >= 2
        status = order.metafield(METAFIELD_NAMESPACE, "payment_status") or (
            SessionStatus.FULLY_PAID.value
            if remaining_paid
            else SessionStatus.PARTIAL_PAID.value if deposit_paid else SessionStatus.PENDING_DEPOSIT.value
        )

        return OrderPaymentStatus(
            order_id=order.id,
            payment_status=status,
            deposit_paid=deposit_paid,
            remaining_paid=remaining_paid,
            deposit_amount=_amount("deposit_amount"),
            remaining_amount=_amount("remaining_amount"),
            captured_amount=captured,
            payment_link=order.metafield(METAFIELD_NAMESPACE, "payment_link"),
            session_id=order.metafield(METAFIELD_NAMESPACE, "session_id"),
        )


_service: SessionCompletionService | None = None


def get_completion_service() -> SessionCompletionService:
    """Get completion service singleton."""
    global _service
    if _service is None:
        _service = SessionCompletionService(get_shopify_client())
    return _service
