"""
Payments — processor protocol, Stripe adapter, cart payload codec, webhook events.

    processor = StripeProcessor(settings.stripe_secret_key, settings.stripe_webhook_secret)
    envelope = processor.verify_webhook(body, signature)
    match parse_event(envelope):
        case CheckoutCompleted() as event:
            ...
"""

from storefront.payments._events import (
    ASYNC_PAYMENT_SUCCEEDED,
    CHECKOUT_COMPLETED,
    PAYMENT_FAILED,
    CheckoutCompleted,
    PaymentFailed,
    UnknownEvent,
    WebhookEvent,
    parse_event,
)
from storefront.payments._payload import (
    CART_KEY,
    CHUNKS_KEY,
    CURRENT_VERSION,
    METADATA_VALUE_LIMIT,
    RESERVED_KEYS,
    VERSION_KEY,
    PayloadError,
    PayloadItem,
    decode_cart,
    encode_cart,
)
from storefront.payments._stripe import StripeProcessor, session_params
from storefront.payments._types import (
    CheckoutSession,
    LineItem,
    PaymentProcessor,
    Refund,
    SessionRequest,
    ShippingAddress,
    SignatureError,
)

__all__ = (
    # Protocol + DTOs
    "PaymentProcessor",
    "LineItem",
    "ShippingAddress",
    "SessionRequest",
    "CheckoutSession",
    "Refund",
    "SignatureError",
    # Stripe
    "StripeProcessor",
    "session_params",
    # Payload
    "CART_KEY",
    "VERSION_KEY",
    "CHUNKS_KEY",
    "CURRENT_VERSION",
    "METADATA_VALUE_LIMIT",
    "RESERVED_KEYS",
    "PayloadError",
    "PayloadItem",
    "encode_cart",
    "decode_cart",
    # Events
    "CHECKOUT_COMPLETED",
    "ASYNC_PAYMENT_SUCCEEDED",
    "PAYMENT_FAILED",
    "CheckoutCompleted",
    "PaymentFailed",
    "UnknownEvent",
    "WebhookEvent",
    "parse_event",
)
