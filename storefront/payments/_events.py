"""
Webhook events — a tagged union over the processor's event envelope.

Only the fields reconciliation needs are lifted out; everything else in the
envelope is ignored. Unknown event types parse to ``UnknownEvent`` rather
than failing.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from storefront.payments._payload import PayloadError
from storefront.payments._types import ShippingAddress

CHECKOUT_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"

PAID_STATUSES = frozenset({"paid", "no_payment_required"})


@dataclass(frozen=True, slots=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    payment_reference: str | None
    customer_email: str
    payment_status: str | None = None
    customer_name: str | None = None
    subtotal: int = 0
    tax: int = 0
    shipping: int = 0
    total: int = 0
    currency: str = "usd"
    metadata: dict[str, str] = field(default_factory=dict)
    shipping_address: ShippingAddress | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status is None or self.payment_status in PAID_STATUSES


@dataclass(frozen=True, slots=True)
class PaymentFailed:
    event_id: str
    payment_intent_id: str
    failure_message: str | None = None
    failure_code: str | None = None


@dataclass(frozen=True, slots=True)
class UnknownEvent:
    event_id: str
    type: str


type WebhookEvent = CheckoutCompleted | PaymentFailed | UnknownEvent


# ═══════════════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════════════

def _shipping(obj: Mapping[str, Any]) -> ShippingAddress | None:
    # Newer API versions nest shipping under collected_information
    details = obj.get("shipping_details") or (obj.get("collected_information") or {}).get("shipping_details")
    if not details:
        return None
    address = details.get("address") or {}
    return ShippingAddress(
        name=details.get("name") or None,
        line1=address.get("line1") or None,
        line2=address.get("line2") or None,
        city=address.get("city") or None,
        state=address.get("state") or None,
        postal_code=address.get("postal_code") or None,
        country=address.get("country") or None,
    )


def _reference(value: Any) -> str | None:
    # Expanded objects carry the id inside
    if isinstance(value, Mapping):
        return value.get("id")
    return value or None


def _checkout_completed(event_id: str, obj: Mapping[str, Any]) -> CheckoutCompleted:
    session_id = obj.get("id")
    if not session_id:
        raise PayloadError("Checkout session event without a session id")

    customer = obj.get("customer_details") or {}
    totals = obj.get("total_details") or {}

    return CheckoutCompleted(
        event_id=event_id,
        session_id=session_id,
        payment_reference=_reference(obj.get("payment_intent")),
        customer_email=obj.get("customer_email") or customer.get("email") or "",
        customer_name=customer.get("name") or None,
        payment_status=obj.get("payment_status"),
        subtotal=obj.get("amount_subtotal") or 0,
        tax=totals.get("amount_tax") or 0,
        shipping=totals.get("amount_shipping") or 0,
        total=obj.get("amount_total") or 0,
        currency=(obj.get("currency") or "usd").lower(),
        metadata={str(k): str(v) for k, v in (obj.get("metadata") or {}).items()},
        shipping_address=_shipping(obj),
    )


def _payment_failed(event_id: str, obj: Mapping[str, Any]) -> PaymentFailed:
    error = obj.get("last_payment_error") or {}
    return PaymentFailed(
        event_id=event_id,
        payment_intent_id=obj.get("id") or "",
        failure_message=error.get("message"),
        failure_code=error.get("code"),
    )


def parse_event(envelope: Mapping[str, Any]) -> WebhookEvent:
    """Turn a verified event envelope into a typed event."""
    event_id = envelope.get("id") or ""
    event_type = envelope.get("type") or ""
    obj = (envelope.get("data") or {}).get("object") or {}

    match event_type:
        case "checkout.session.completed" | "checkout.session.async_payment_succeeded":
            return _checkout_completed(event_id, obj)
        case "payment_intent.payment_failed":
            return _payment_failed(event_id, obj)
        case _:
            return UnknownEvent(event_id=event_id, type=event_type)


__all__ = (
    "CHECKOUT_COMPLETED",
    "ASYNC_PAYMENT_SUCCEEDED",
    "PAYMENT_FAILED",
    "CheckoutCompleted",
    "PaymentFailed",
    "UnknownEvent",
    "WebhookEvent",
    "parse_event",
)
