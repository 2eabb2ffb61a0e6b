"""
Order types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from storefront.payments import ShippingAddress


class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FULFILLED = "fulfilled"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDING = "refunding"
    REFUNDED = "refunded"
    APPLIED = "applied"


class OrderType(Enum):
    STANDARD = "standard"
    DEPOSIT = "pre-sale-deposit"
    PRE_ORDER_WITH_DEPOSIT = "pre-order-with-deposit"


TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({
        OrderStatus.FULFILLED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDING,
        OrderStatus.REFUNDED,
        OrderStatus.APPLIED,
    }),
    OrderStatus.REFUNDING: frozenset({OrderStatus.REFUNDED, OrderStatus.PAID}),
    OrderStatus.FULFILLED: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
    OrderStatus.APPLIED: frozenset(),
}
"""Allowed status moves. Terminal states map to the empty set."""


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


@dataclass(frozen=True, slots=True)
class OrderItem:
    position: int
    product_id: str
    quantity: int
    unit_price: int
    total_price: int
    product_name: str
    variant_id: str | None = None
    variant_name: str | None = None
    price_id: str | None = None


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    customer_email: str
    status: OrderStatus
    order_type: OrderType
    total: int
    subtotal: int = 0
    tax: int = 0
    shipping: int = 0
    currency: str = "usd"
    payment_reference: str | None = None
    customer_name: str | None = None
    shipping_address: ShippingAddress | None = None
    tracking_number: str | None = None
    shipped_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    items: tuple[OrderItem, ...] = ()


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    """
    Result of one webhook delivery.

    Note: duplicate=True means the session was already reconciled and this
    delivery changed nothing.
    """

    order_id: str
    duplicate: bool
    order_type: OrderType = OrderType.STANDARD
    items: int = 0


@dataclass(frozen=True, slots=True)
class RefundReceipt:
    order_id: str
    refund_id: str
    amount: int


__all__ = (
    "OrderStatus",
    "OrderType",
    "TRANSITIONS",
    "can_transition",
    "OrderItem",
    "Order",
    "ReconcileOutcome",
    "RefundReceipt",
)
