"""
Order reconciliation — turn a completed checkout into exactly one order.

One transaction per delivery, in this order:

    1. INSERT order ... ON CONFLICT (id) DO NOTHING   claim; 0 rows = duplicate
    2. INSERT order items                             snapshot from the payload
    3. UPDATE sold counts with the cap in WHERE       0 rows = oversold, abort
    4. UPDATE deposit paid -> applied                 pre-order final payments
    5. COMMIT

Note: the claim is the first statement, so the transaction holds its write
lock before it reads anything. Any failure after the claim rolls the claim
back too; a redelivery then starts from scratch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, cast

from kungfu import Error, Ok, Result
from sqlalchemy import update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog import CatalogRepository, ProductTable, VariantTable
from storefront.db import SessionFactory, insert_ignore
from storefront.errors import ErrorCode, Errors, ShopError
from storefront.log import ctx
from storefront.orders._tables import OrderItemTable, OrderTable
from storefront.orders._types import OrderStatus, OrderType, ReconcileOutcome
from storefront.payments import CheckoutCompleted, PayloadError, PayloadItem, decode_cart

logger = logging.getLogger(__name__)


def _order_type(metadata: dict[str, str]) -> OrderType:
    raw = metadata.get("order_type")
    if raw is None:
        return OrderType.STANDARD
    try:
        return OrderType(raw)
    except ValueError:
        raise PayloadError(f"Unknown order_type: {raw!r}") from None


class OrderReconciler:
    def __init__(self, session_factory: SessionFactory, catalog: CatalogRepository | None = None) -> None:
        self._session = session_factory
        self._catalog = catalog or CatalogRepository(session_factory)

    async def on_payment_completed(self, event: CheckoutCompleted) -> Result[ReconcileOutcome, ShopError]:
        """
        Reconcile one verified ``checkout.session.completed`` delivery.

        Returns Ok for both a fresh order and a duplicate delivery. Errors
        carry ``retriable``: True for infrastructure trouble (redelivery may
        succeed), False for payloads or inventory that no retry can fix.
        """
        log_ctx = ctx(session_id=event.session_id, event_id=event.event_id, email=event.customer_email)

        try:
            order_type = _order_type(event.metadata)
            items = [] if order_type is OrderType.DEPOSIT else decode_cart(event.metadata)
            if order_type is OrderType.DEPOSIT and not event.metadata.get("target_product_id"):
                raise PayloadError("Deposit session without target_product_id")
        except PayloadError as e:
            logger.critical(
                "Unreadable cart payload on paid session, manual investigation required: %s", e,
                extra=log_ctx,
            )
            return Error(Errors.bad_request(str(e), reason="malformed_payload"))

        try:
            names = await self._product_names(items)
            outcome = await self._commit(event, order_type, items, names)
        except ShopError as e:
            # Raised inside the transaction; it has already rolled back
            logger.critical(
                "Paid session could not be recorded, manual investigation required: %s", e.message,
                extra=ctx(session_id=event.session_id, event_id=event.event_id, reason=e.reason, details=e.details),
            )
            return Error(e)
        except (SQLAlchemyError, OSError) as e:
            logger.error("Reconciliation failed, awaiting redelivery: %s", e, extra=log_ctx)
            return Error(Errors.internal(f"Could not record order {event.session_id}"))

        if outcome.duplicate:
            logger.info("Duplicate delivery ignored", extra=log_ctx)
        else:
            logger.info(
                "Order reconciled",
                extra=ctx(
                    session_id=event.session_id,
                    order_type=outcome.order_type.value,
                    items=outcome.items,
                    total=event.total,
                ),
            )
        return Ok(outcome)

    # ─────────────────────────────────────────────────────────────────────────
    # Transaction
    # ─────────────────────────────────────────────────────────────────────────

    async def _product_names(self, items: Sequence[PayloadItem]) -> dict[str, str]:
        missing = {i.product_id for i in items if not i.product_name}
        if not missing:
            return {}
        products = await self._catalog.products_by_ids(missing)
        return {pid: p.name for pid, p in products.items()}

    async def _commit(
        self,
        event: CheckoutCompleted,
        order_type: OrderType,
        items: Sequence[PayloadItem],
        names: dict[str, str],
    ) -> ReconcileOutcome:
        async with self._session() as session:
            async with session.begin():
                claimed = await self._claim(session, event, order_type)
                if not claimed:
                    return ReconcileOutcome(order_id=event.session_id, duplicate=True, order_type=order_type)

                session.add_all(
                    OrderItemTable(
                        order_id=event.session_id,
                        position=n,
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        price_id=item.price_id,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                        total_price=item.total_price,
                        product_name=item.product_name or names.get(item.product_id) or item.product_id,
                        variant_name=item.variant_name,
                    )
                    for n, item in enumerate(items)
                )
                await session.flush()

                for item in items:
                    await CatalogRepository.increment_sold(session, ProductTable, item.product_id, item.quantity)
                    if item.variant_id:
                        await CatalogRepository.increment_sold(session, VariantTable, item.variant_id, item.quantity)

                deposit_id = event.metadata.get("deposit_order_id")
                if order_type is OrderType.PRE_ORDER_WITH_DEPOSIT and deposit_id:
                    await self._apply_deposit(session, deposit_id, event.session_id)

        return ReconcileOutcome(
            order_id=event.session_id,
            duplicate=False,
            order_type=order_type,
            items=len(items),
        )

    async def _claim(self, session: AsyncSession, event: CheckoutCompleted, order_type: OrderType) -> bool:
        meta: dict[str, Any] = {"order_type": order_type.value}
        for key in ("target_product_id", "target_variant_id", "deposit_order_id"):
            if event.metadata.get(key):
                meta[key] = event.metadata[key]

        address = event.shipping_address
        values: dict[str, Any] = {
            "id": event.session_id,
            "payment_reference": event.payment_reference,
            "customer_email": event.customer_email,
            "customer_name": event.customer_name,
            "status": OrderStatus.PAID.value,
            "order_type": order_type.value,
            "subtotal": event.subtotal,
            "tax": event.tax,
            "shipping": 0 if order_type is OrderType.DEPOSIT else event.shipping,
            "total": event.total,
            "currency": event.currency,
            "meta": meta,
        }
        if address is not None and order_type is not OrderType.DEPOSIT:
            values.update(
                shipping_name=address.name,
                shipping_address_line1=address.line1,
                shipping_address_line2=address.line2,
                shipping_city=address.city,
                shipping_state=address.state,
                shipping_postal_code=address.postal_code,
                shipping_country=address.country,
            )

        stmt = insert_ignore(session, OrderTable, values, ["id"])
        cursor = cast(CursorResult[Any], await session.execute(stmt))
        return cursor.rowcount > 0

    async def _apply_deposit(self, session: AsyncSession, deposit_id: str, order_id: str) -> None:
        stmt = (
            update(OrderTable)
            .where(OrderTable.id == deposit_id)
            .where(OrderTable.order_type == OrderType.DEPOSIT.value)
            .where(OrderTable.status == OrderStatus.PAID.value)
            .values(status=OrderStatus.APPLIED.value)
            .execution_options(synchronize_session=False)
        )
        cursor = cast(CursorResult[Any], await session.execute(stmt))
        if cursor.rowcount > 0:
            logger.info("Deposit marked as applied", extra=ctx(deposit_order=deposit_id, order_id=order_id))
        else:
            # Final payment already taken; the order stands either way
            logger.warning(
                "Deposit could not be applied (missing or not paid)",
                extra=ctx(deposit_order=deposit_id, order_id=order_id),
            )


def is_terminal(error: ShopError) -> bool:
    """True when redelivering the same event cannot succeed."""
    return not error.retriable and error.code is not ErrorCode.INTERNAL_ERROR


__all__ = ("OrderReconciler", "is_terminal")
