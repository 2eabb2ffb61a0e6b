"""
Stripe adapter.

Note: the stripe SDK is blocking. Calls run in a worker thread so the event
loop keeps serving other requests. The API key is passed per call; nothing
is written to the SDK's module-level globals.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import stripe

from storefront.errors import Errors
from storefront.log import ctx
from storefront.payments._types import (
    CheckoutSession,
    LineItem,
    Refund,
    SessionRequest,
    SignatureError,
)

logger = logging.getLogger(__name__)

PAYMENT_METHOD_TYPES = ("card", "link")

WEBHOOK_TOLERANCE = 300
"""Seconds a signed webhook timestamp stays acceptable."""


def _line_item(item: LineItem, currency: str) -> dict[str, Any]:
    if item.price_id:
        return {"price": item.price_id, "quantity": item.quantity}

    product_data: dict[str, Any] = {"name": item.name or "Item"}
    if item.description:
        product_data["description"] = item.description
    return {
        "price_data": {
            "currency": currency,
            "product_data": product_data,
            "unit_amount": item.unit_amount or 0,
        },
        "quantity": item.quantity,
    }


def session_params(request: SessionRequest) -> dict[str, Any]:
    """Build ``checkout.Session.create`` parameters."""
    params: dict[str, Any] = {
        "mode": "payment",
        "payment_method_types": list(PAYMENT_METHOD_TYPES),
        "line_items": [_line_item(i, request.currency) for i in request.line_items],
        "customer_email": request.customer_email,
        "success_url": request.success_url,
        "cancel_url": request.cancel_url,
        "metadata": dict(request.metadata),
        "expires_at": int(time.time()) + 3600 * request.expires_in_hours,
    }
    if request.shipping_countries:
        params["shipping_address_collection"] = {"allowed_countries": list(request.shipping_countries)}
    if request.require_billing_address:
        params["billing_address_collection"] = "required"
    return params


class StripeProcessor:
    def __init__(self, secret_key: str | None, webhook_secret: str | None) -> None:
        if not secret_key:
            raise ValueError("STRIPE_SECRET_KEY is not set")
        self._api_key = secret_key
        self._webhook_secret = webhook_secret

    async def create_checkout_session(self, request: SessionRequest) -> CheckoutSession:
        params = session_params(request)
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create, api_key=self._api_key, **params
            )
        except stripe.StripeError as e:
            logger.warning(
                "Checkout session rejected",
                extra=ctx(email=request.customer_email, stripe_code=e.code, request_id=e.request_id),
            )
            raise Errors.external(
                f"Payment processor rejected the checkout session: {e.user_message or e}",
                reason="checkout_session_failed",
            ) from e

        return CheckoutSession(id=session.id, url=session.url)

    async def create_refund(self, payment_reference: str, amount: int) -> Refund:
        try:
            refund = await asyncio.to_thread(
                stripe.Refund.create,
                api_key=self._api_key,
                payment_intent=payment_reference,
                amount=amount,
            )
        except stripe.StripeError as e:
            logger.warning(
                "Refund rejected",
                extra=ctx(payment_intent=payment_reference, stripe_code=e.code, request_id=e.request_id),
            )
            raise Errors.external(
                f"Payment processor rejected the refund: {e.user_message or e}",
                reason="refund_failed",
            ) from e

        return Refund(id=refund.id, amount=refund.amount, status=refund.status)

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        if not self._webhook_secret:
            raise SignatureError("STRIPE_WEBHOOK_SECRET is not set")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, self._webhook_secret, tolerance=WEBHOOK_TOLERANCE
            )
        except UnicodeDecodeError as e:
            raise SignatureError("Webhook body is not UTF-8") from e
        except stripe.SignatureVerificationError as e:
            raise SignatureError(str(e)) from e

        try:
            envelope = json.loads(body)
        except json.JSONDecodeError as e:
            raise SignatureError("Signed webhook body is not JSON") from e
        if not isinstance(envelope, dict):
            raise SignatureError("Signed webhook body is not an event object")
        return envelope


__all__ = ("StripeProcessor", "session_params", "PAYMENT_METHOD_TYPES", "WEBHOOK_TOLERANCE")
