"""
Refunds — give the money back for a paid order.

Two-step saga:

    claim    paid -> refunding (conditional UPDATE)    undo: refunding -> paid
    refund   processor refund for the order total

then refunding -> refunded. The claim makes concurrent refund requests for
one order mutually exclusive; the compensation means a rejected processor
call leaves the order exactly as it was.

Note: sold counts are left alone. A refunded unit stays counted as sold.
"""

from __future__ import annotations

import logging
from typing import Any, cast

from kungfu import Error, LazyCoroResult, Ok, Result
from sqlalchemy import update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError

from storefront import saga as S
from storefront.db import SessionFactory
from storefront.errors import ErrorCode, Errors, ShopError
from storefront.log import ctx
from storefront.orders._service import OrderService
from storefront.orders._tables import OrderTable
from storefront.orders._types import Order, OrderStatus, RefundReceipt
from storefront.payments import PaymentProcessor, Refund

logger = logging.getLogger(__name__)


def _as_external(e: Exception) -> ShopError:
    if isinstance(e, ShopError):
        return e
    return Errors.external(f"Refund failed: {e}", reason="refund_failed")


async def _move(session_factory: SessionFactory, order_id: str, source: OrderStatus, target: OrderStatus) -> bool:
    async with session_factory() as session:
        cursor = cast(CursorResult[Any], await session.execute(
            update(OrderTable)
            .where(OrderTable.id == order_id)
            .where(OrderTable.status == source.value)
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        ))
        await session.commit()
    return cursor.rowcount > 0


async def _resolve(
    service: OrderService,
    order_id: str | None,
    buyer_email: str | None,
    product_id: str | None,
) -> Result[Order, ShopError]:
    if order_id:
        order = await service.get_order(order_id)
        if order is None or (buyer_email and order.customer_email.lower() != buyer_email.lower()):
            return Error(Errors.not_found("Order", order_id))
        return Ok(order)

    if buyer_email and product_id:
        deposit = await service.find_deposit(buyer_email, product_id)
        if deposit is None:
            return Error(ShopError(
                ErrorCode.NOT_FOUND,
                "No deposit found for this email and product",
                details={"product_id": product_id},
            ))
        return Ok(deposit)

    return Error(Errors.validation(
        "Either order_id or buyer_email with product_id is required",
        reason="missing_order_reference",
    ))


async def refund(
    session_factory: SessionFactory,
    processor: PaymentProcessor,
    *,
    order_id: str | None = None,
    buyer_email: str | None = None,
    product_id: str | None = None,
    reason: str | None = None,
) -> Result[RefundReceipt, ShopError]:
    """
    Refund an order identified by id, or a deposit by (buyer_email, product_id).

    Only a ``paid`` order is refundable. Anything else is BAD_REQUEST, with no
    write and no processor call.
    """
    service = OrderService(session_factory)

    match await _resolve(service, order_id, buyer_email, product_id):
        case Error(e):
            return Error(e)
        case Ok(order):
            pass

    if order.status is not OrderStatus.PAID:
        return Error(Errors.bad_request(
            f"Order cannot be refunded. Current status: {order.status.value}",
            reason="not_refundable",
            details={"id": order.id, "status": order.status.value},
        ))
    if not order.payment_reference:
        return Error(Errors.bad_request(
            "Order has no payment reference to refund",
            reason="not_refundable",
            details={"id": order.id},
        ))

    payment_reference = order.payment_reference

    async def claim() -> Result[Order, ShopError]:
        if await _move(session_factory, order.id, OrderStatus.PAID, OrderStatus.REFUNDING):
            return Ok(order)
        return Error(Errors.bad_request(
            "Order is no longer refundable",
            reason="not_refundable",
            details={"id": order.id},
        ))

    async def release(claimed: Order) -> None:
        await _move(session_factory, claimed.id, OrderStatus.REFUNDING, OrderStatus.PAID)

    def money_back(claimed: Order) -> S.SagaStep[Refund, ShopError]:
        return S.from_async(
            lambda: processor.create_refund(payment_reference, claimed.total),
            on_error=_as_external,
            name="processor_refund",
        )

    saga = S.step(
        LazyCoroResult(claim),
        compensate=release,
        name="claim",
    ).then(money_back)

    try:
        result = await S.run_chain(saga)
    except SQLAlchemyError as e:
        logger.error("Refund claim failed", extra=ctx(order_id=order.id, error=str(e)))
        return Error(Errors.internal(f"Could not refund order {order.id}"))

    match result:
        case Error(failure):
            if not failure.rollback_complete:
                logger.critical(
                    "Refund rollback incomplete, order left in refunding",
                    extra=ctx(order_id=order.id),
                )
            logger.warning(
                "Refund failed",
                extra=ctx(order_id=order.id, reason=failure.error.reason, error=failure.error.message),
            )
            return Error(failure.error)
        case Ok(done):
            processed = done.value

    try:
        finalized = await _move(session_factory, order.id, OrderStatus.REFUNDING, OrderStatus.REFUNDED)
    except SQLAlchemyError as e:
        finalized = False
        logger.error("Could not finalize refund status", extra=ctx(order_id=order.id, error=str(e)))
    if not finalized:
        # Money already moved; the order stays in refunding, which blocks a second refund
        logger.critical(
            "Refund issued but order not marked refunded",
            extra=ctx(order_id=order.id, refund_id=processed.id),
        )

    logger.info(
        "Order refunded",
        extra=ctx(
            order_id=order.id,
            email=order.customer_email,
            refund_id=processed.id,
            amount=processed.amount,
            reason=reason,
        ),
    )
    return Ok(RefundReceipt(order_id=order.id, refund_id=processed.id, amount=processed.amount))


__all__ = ("refund",)
