"""Checkout — hand a validated cart (or a deposit) to the payment processor."""

from storefront.checkout._session import (
    DEPOSIT,
    ORDER_TYPE_KEY,
    PRE_ORDER_WITH_DEPOSIT,
    create_deposit_session,
    create_session,
)

__all__ = (
    "ORDER_TYPE_KEY",
    "DEPOSIT",
    "PRE_ORDER_WITH_DEPOSIT",
    "create_session",
    "create_deposit_session",
)
