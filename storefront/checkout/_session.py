"""
Checkout session creation — hand a validated cart to the processor.

No re-validation happens here: callers run ``validate_cart`` first. The
processor's own price ids decide what the buyer is charged; the unit prices
in the cart only travel in the payload as the order snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from combinators import lift as L
from kungfu import Error, Ok, Result

from storefront.cart import CartLine
from storefront.catalog import CatalogRepository
from storefront.config import Settings
from storefront.errors import Errors, ShopError
from storefront.log import ctx
from storefront.payments import (
    CART_KEY,
    RESERVED_KEYS,
    CheckoutSession,
    LineItem,
    PayloadError,
    PayloadItem,
    PaymentProcessor,
    SessionRequest,
    ShippingAddress,
    encode_cart,
)

logger = logging.getLogger(__name__)

ORDER_TYPE_KEY = "order_type"
DEPOSIT = "pre-sale-deposit"
PRE_ORDER_WITH_DEPOSIT = "pre-order-with-deposit"


def _as_shop_error(e: Exception) -> ShopError:
    if isinstance(e, ShopError):
        return e
    return Errors.external(f"Checkout session could not be created: {e}", reason="checkout_session_failed")


def _caller_metadata(metadata: Mapping[str, str] | None) -> dict[str, str]:
    # Cart keys are reserved; a caller cannot overwrite the payload
    return {
        k: v
        for k, v in (metadata or {}).items()
        if k not in RESERVED_KEYS and not k.startswith(f"{CART_KEY}_") and k != ORDER_TYPE_KEY
    }


# ═══════════════════════════════════════════════════════════════════════════════
# Cart checkout
# ═══════════════════════════════════════════════════════════════════════════════

async def create_session(
    processor: PaymentProcessor,
    settings: Settings,
    lines: Sequence[CartLine],
    buyer_email: str,
    shipping_address: ShippingAddress | None = None,
    metadata: Mapping[str, str] | None = None,
    *,
    deposit_order_id: str | None = None,
) -> Result[CheckoutSession, ShopError]:
    """
    Create a hosted checkout session for ``lines``.

    With ``deposit_order_id`` the session is the final payment of a
    pre-order, and the referenced deposit is marked applied on reconciliation.
    """
    if not lines:
        return Error(Errors.validation("Cart must have at least one item", reason="empty_cart"))

    unpriced = [line.product_id for line in lines if not line.price_id]
    if unpriced:
        return Error(Errors.validation(
            "Cart items are missing a processor price id",
            reason="missing_price_id",
            details={"products": unpriced},
        ))

    if (
        shipping_address is not None
        and shipping_address.country
        and settings.shipping_countries
        and shipping_address.country.upper() not in settings.shipping_countries
    ):
        return Error(Errors.validation(
            f"We do not ship to {shipping_address.country}",
            reason="unsupported_country",
            details={"allowed": list(settings.shipping_countries)},
        ))

    try:
        payload = encode_cart([
            PayloadItem(
                product_id=line.product_id,
                variant_id=line.variant_id,
                price_id=line.price_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                product_name=line.name or None,
                variant_name=line.variant_name,
            )
            for line in lines
        ])
    except PayloadError as e:
        return Error(Errors.validation(str(e), reason="cart_too_large"))

    session_metadata = _caller_metadata(metadata)
    if deposit_order_id:
        session_metadata[ORDER_TYPE_KEY] = PRE_ORDER_WITH_DEPOSIT
        session_metadata["deposit_order_id"] = deposit_order_id
    session_metadata.update(payload)

    request = SessionRequest(
        line_items=tuple(LineItem(price_id=line.price_id, quantity=line.quantity) for line in lines),
        customer_email=buyer_email,
        success_url=settings.success_url,
        cancel_url=settings.cancel_url,
        metadata=session_metadata,
        currency=settings.currency,
        expires_in_hours=settings.checkout_expiry_hours,
        shipping_countries=settings.shipping_countries,
    )

    result = await L.catching_async(
        lambda: processor.create_checkout_session(request),
        on_error=_as_shop_error,
    )

    match result:
        case Ok(session):
            logger.info(
                "Checkout session created",
                extra=ctx(session_id=session.id, email=buyer_email, lines=len(lines), deposit_order=deposit_order_id),
            )
        case Error(e):
            logger.warning(
                "Checkout session failed",
                extra=ctx(email=buyer_email, reason=e.reason, error=e.message),
            )
    return result


# ═══════════════════════════════════════════════════════════════════════════════
# Pre-sale deposit
# ═══════════════════════════════════════════════════════════════════════════════

async def create_deposit_session(
    processor: PaymentProcessor,
    settings: Settings,
    catalog: CatalogRepository,
    product_id: str,
    buyer_email: str,
    *,
    variant_id: str | None = None,
    quantity: int = 1,
) -> Result[CheckoutSession, ShopError]:
    """
    Charge a refundable deposit that reserves pre-sale pricing.

    Amount is ``(deposit_price + variant deposit_modifier) * quantity``,
    charged as an ad-hoc price. Nothing is shipped, so no address is collected.
    """
    if quantity <= 0:
        return Error(Errors.validation("Quantity must be positive", reason="bad_quantity"))

    product = await catalog.get_product(product_id)
    if product is None:
        return Error(Errors.not_found("Product", product_id))

    per_unit = product.deposit_price
    if variant_id is not None:
        variant = await catalog.get_variant(variant_id)
        if variant is None or variant.product_id != product_id:
            return Error(Errors.not_found("Variant", variant_id))
        per_unit = variant.deposit(product)

    if not per_unit:
        return Error(Errors.validation(
            "Product does not have a deposit price configured",
            reason="no_deposit_price",
        ))

    metadata = {ORDER_TYPE_KEY: DEPOSIT, "target_product_id": product_id}
    if variant_id:
        metadata["target_variant_id"] = variant_id

    request = SessionRequest(
        line_items=(
            LineItem(
                quantity=1,
                name="Pre-Sale Deposit",
                description="Refundable deposit to secure wholesale pricing",
                unit_amount=per_unit * quantity,
            ),
        ),
        customer_email=buyer_email,
        success_url=settings.success_url,
        cancel_url=settings.product_url(product_id),
        metadata=metadata,
        currency=settings.currency,
        expires_in_hours=settings.checkout_expiry_hours,
        require_billing_address=False,
    )

    result = await L.catching_async(
        lambda: processor.create_checkout_session(request),
        on_error=_as_shop_error,
    )

    match result:
        case Ok(session):
            logger.info(
                "Deposit session created",
                extra=ctx(session_id=session.id, email=buyer_email, product=product_id, amount=per_unit * quantity),
            )
        case Error(e):
            logger.warning("Deposit session failed", extra=ctx(email=buyer_email, product=product_id, reason=e.reason))
    return result


__all__ = (
    "ORDER_TYPE_KEY",
    "DEPOSIT",
    "PRE_ORDER_WITH_DEPOSIT",
    "create_session",
    "create_deposit_session",
)
