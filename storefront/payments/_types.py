"""
Payment processor boundary — the three calls this system makes, and their DTOs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class LineItem:
    """
    One charged line.

    Note: with ``price_id`` the processor's catalog price is charged. Without
    it the line is an ad-hoc price built from ``name`` and ``unit_amount``.
    """

    quantity: int
    price_id: str | None = None
    name: str | None = None
    unit_amount: int | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    name: str | None = None
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


@dataclass(frozen=True, slots=True)
class SessionRequest:
    line_items: tuple[LineItem, ...]
    customer_email: str
    success_url: str
    cancel_url: str
    metadata: dict[str, str] = field(default_factory=dict)
    currency: str = "usd"
    expires_in_hours: int = 24
    shipping_countries: tuple[str, ...] = ()
    require_billing_address: bool = True


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class CheckoutSession:
    id: str
    url: str | None


@dataclass(frozen=True, slots=True)
class Refund:
    id: str
    amount: int
    status: str | None = None


class SignatureError(Exception):
    """Webhook body could not be authenticated."""


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════

@runtime_checkable
class PaymentProcessor(Protocol):
    """
    Hosted payment processor.

    ``create_checkout_session`` and ``create_refund`` raise ``ShopError``
    (EXTERNAL_SERVICE_ERROR) when the processor rejects the call.
    ``verify_webhook`` raises ``SignatureError`` and returns the decoded
    event envelope otherwise.
    """

    async def create_checkout_session(self, request: SessionRequest) -> CheckoutSession: ...

    async def create_refund(self, payment_reference: str, amount: int) -> Refund: ...

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]: ...


__all__ = (
    "LineItem",
    "ShippingAddress",
    "SessionRequest",
    "CheckoutSession",
    "Refund",
    "SignatureError",
    "PaymentProcessor",
)
