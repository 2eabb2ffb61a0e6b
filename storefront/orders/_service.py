"""
Order service — reads and lifecycle transitions.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, cast

from kungfu import Error, Ok, Result
from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.orm import selectinload

from storefront._types import Page
from storefront.db import SessionFactory
from storefront.errors import Errors, ShopError
from storefront.log import ctx
from storefront.orders._tables import OrderItemTable, OrderTable
from storefront.orders._types import (
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    can_transition,
)
from storefront.payments import ShippingAddress

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Row mapping
# ═══════════════════════════════════════════════════════════════════════════════

def _item(row: OrderItemTable) -> OrderItem:
    return OrderItem(
        position=row.position,
        product_id=row.product_id,
        variant_id=row.variant_id,
        price_id=row.price_id,
        quantity=row.quantity,
        unit_price=row.unit_price,
        total_price=row.total_price,
        product_name=row.product_name,
        variant_name=row.variant_name,
    )


def to_order(row: OrderTable, *, with_items: bool = True) -> Order:
    address = None
    if row.shipping_address_line1 or row.shipping_name:
        address = ShippingAddress(
            name=row.shipping_name,
            line1=row.shipping_address_line1,
            line2=row.shipping_address_line2,
            city=row.shipping_city,
            state=row.shipping_state,
            postal_code=row.shipping_postal_code,
            country=row.shipping_country,
        )
    return Order(
        id=row.id,
        customer_email=row.customer_email,
        customer_name=row.customer_name,
        status=OrderStatus(row.status),
        order_type=OrderType(row.order_type),
        subtotal=row.subtotal,
        tax=row.tax,
        shipping=row.shipping,
        total=row.total,
        currency=row.currency,
        payment_reference=row.payment_reference,
        shipping_address=address,
        tracking_number=row.tracking_number,
        shipped_at=row.shipped_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        meta=dict(row.meta or {}),
        items=tuple(_item(i) for i in row.items) if with_items else (),
    )


def _same_email(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════

class OrderService:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def get_order(self, order_id: str) -> Order | None:
        async with self._session() as session:
            row = await session.scalar(
                select(OrderTable)
                .where(OrderTable.id == order_id)
                .options(selectinload(OrderTable.items))
            )
            return to_order(row) if row else None

    async def lookup_order(self, email: str, order_id: str) -> Result[Order, ShopError]:
        """
        Customer self-service lookup.

        Note: a wrong email and a missing order give the same NOT_FOUND, so
        the endpoint cannot be used to enumerate order ids.
        """
        order = await self.get_order(order_id)
        if order is None or not _same_email(order.customer_email, email):
            return Error(Errors.not_found("Order", order_id))
        return Ok(order)

    async def orders_for_customer(self, email: str, page: Page = Page()) -> list[Order]:
        async with self._session() as session:
            rows = await session.scalars(
                select(OrderTable)
                .where(OrderTable.customer_email == email)
                .options(selectinload(OrderTable.items))
                .order_by(OrderTable.created_at.desc(), OrderTable.id)
                .limit(page.limit)
                .offset(page.offset)
            )
            return [to_order(r) for r in rows]

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        tracking_number: str | None = None,
    ) -> Result[Order, ShopError]:
        """
        Move an order along its lifecycle.

        The write is conditional on the status that was read, so two
        concurrent transitions cannot both win.
        """
        current = await self.get_order(order_id)
        if current is None:
            return Error(Errors.not_found("Order", order_id))

        if not can_transition(current.status, status):
            return Error(Errors.bad_request(
                f"Order cannot move from {current.status.value} to {status.value}",
                reason="invalid_transition",
                details={"from": current.status.value, "to": status.value},
            ))

        values: dict[str, Any] = {"status": status.value}
        if tracking_number:
            values["tracking_number"] = tracking_number
        if status is OrderStatus.SHIPPED:
            values["shipped_at"] = datetime.now(UTC).replace(tzinfo=None)

        async with self._session() as session:
            cursor = cast(CursorResult[Any], await session.execute(
                update(OrderTable)
                .where(OrderTable.id == order_id)
                .where(OrderTable.status == current.status.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            ))
            await session.commit()

        if cursor.rowcount == 0:
            return Error(Errors.conflict(
                "Order status changed concurrently, reload and retry",
                reason="status_changed",
                details={"id": order_id},
            ))

        logger.info(
            "Order status updated",
            extra=ctx(order_id=order_id, status_from=current.status.value, status_to=status.value),
        )
        updated = await self.get_order(order_id)
        return Ok(cast(Order, updated))

    # ─────────────────────────────────────────────────────────────────────────
    # Deposits
    # ─────────────────────────────────────────────────────────────────────────

    async def find_deposit(
        self,
        email: str,
        product_id: str,
        status: OrderStatus | None = None,
    ) -> Order | None:
        """Most recent deposit by ``email`` for ``product_id``, optionally with a given status."""
        stmt = (
            select(OrderTable)
            .where(OrderTable.customer_email == email)
            .where(OrderTable.order_type == OrderType.DEPOSIT.value)
            .options(selectinload(OrderTable.items))
            .order_by(OrderTable.created_at.desc(), OrderTable.id.desc())
        )
        if status is not None:
            stmt = stmt.where(OrderTable.status == status.value)

        async with self._session() as session:
            for row in await session.scalars(stmt):
                # JSON filtering differs per dialect; deposits per buyer are few
                if (row.meta or {}).get("target_product_id") == product_id:
                    return to_order(row)
        return None

    async def has_paid_deposit(self, email: str, product_id: str) -> bool:
        return await self.find_deposit(email, product_id, OrderStatus.PAID) is not None


__all__ = ("OrderService", "to_order")
