"""
Orders — reconciliation of paid sessions, refunds, and order lifecycle.

    reconciler = OrderReconciler(session_factory)
    match await reconciler.on_payment_completed(event):
        case Ok(outcome):
            ...  # outcome.duplicate tells a redelivery apart
        case Error(e):
            ...  # e.retriable decides whether the processor should retry
"""

from storefront.orders._reconcile import OrderReconciler, is_terminal
from storefront.orders._refund import refund
from storefront.orders._service import OrderService, to_order
from storefront.orders._tables import OrderItemTable, OrderTable
from storefront.orders._types import (
    TRANSITIONS,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    ReconcileOutcome,
    RefundReceipt,
    can_transition,
)

__all__ = (
    # Types
    "OrderStatus",
    "OrderType",
    "TRANSITIONS",
    "can_transition",
    "Order",
    "OrderItem",
    "ReconcileOutcome",
    "RefundReceipt",
    # Tables
    "OrderTable",
    "OrderItemTable",
    # Operations
    "OrderReconciler",
    "is_terminal",
    "OrderService",
    "to_order",
    "refund",
)
