"""
storefront — cart validation, checkout handoff and exactly-once order
reconciliation for a limited-edition hardware shop.

    from storefront import cart      # Cart validation against the catalog
    from storefront import checkout  # Hosted checkout sessions, deposits
    from storefront import orders    # Webhook reconciliation, refunds, lifecycle
    from storefront import saga as S # Steps with compensation

The HTTP surface lives in ``storefront.web`` and is imported on demand.
"""

from storefront import saga
from storefront import catalog
from storefront import cart
from storefront import payments
from storefront import checkout
from storefront import orders
from storefront._types import (
    Error,
    LazyCoroResult,
    Ok,
    Page,
)
from storefront.errors import ErrorCode, Errors, ShopError

__version__ = "0.1.0"

__all__ = (
    "saga",
    "catalog",
    "cart",
    "payments",
    "checkout",
    "orders",
    "Ok",
    "Error",
    "LazyCoroResult",
    "Page",
    "ErrorCode",
    "ShopError",
    "Errors",
)
