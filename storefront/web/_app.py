"""
FastAPI application.

Handlers are thin: parse the request model, call the operation, render its
``Result`` through the envelope. Collaborators live on ``app.state.services``;
``create_app`` accepts them ready-made (tests) or builds them from settings
at startup.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from kungfu import Error, Ok
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

import storefront
from storefront.cart import validate_cart
from storefront.catalog import CatalogRepository
from storefront.checkout import create_deposit_session, create_session
from storefront.config import Settings
from storefront.db import SessionFactory, create_database, ping
from storefront.errors import ErrorCode, ShopError
from storefront.log import ctx
from storefront.orders import OrderReconciler, OrderService, OrderStatus, refund
from storefront.payments import (
    CheckoutCompleted,
    PayloadError,
    PaymentFailed,
    PaymentProcessor,
    SignatureError,
    StripeProcessor,
    UnknownEvent,
    parse_event,
)
from storefront.web._responses import (
    failure,
    from_error,
    on_request_validation,
    on_shop_error,
    success,
)
from storefront.web._schemas import (
    CartValidateIn,
    CartVerdictOut,
    CheckoutSessionIn,
    DepositCheckIn,
    DepositCheckoutIn,
    DepositStatusOut,
    OrderLookupIn,
    OrderOut,
    RefundIn,
    RefundOut,
    SessionOut,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"


@dataclass(slots=True)
class Services:
    settings: Settings
    session_factory: SessionFactory
    processor: PaymentProcessor
    catalog: CatalogRepository
    orders: OrderService
    reconciler: OrderReconciler

    @classmethod
    def build(cls, settings: Settings, session_factory: SessionFactory, processor: PaymentProcessor) -> Services:
        catalog = CatalogRepository(session_factory)
        return cls(
            settings=settings,
            session_factory=session_factory,
            processor=processor,
            catalog=catalog,
            orders=OrderService(session_factory),
            reconciler=OrderReconciler(session_factory, catalog),
        )


def _services(request: Request) -> Services:
    return request.app.state.services


# ═══════════════════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════════════════

async def validate_cart_route(req: CartValidateIn, request: Request) -> JSONResponse:
    svc = _services(request)
    verdict = await validate_cart(
        svc.catalog,
        req.to_domain(),
        low_stock_threshold=svc.settings.low_stock_threshold,
    )
    return success(CartVerdictOut.from_domain(verdict).dump())


async def checkout_session_route(req: CheckoutSessionIn, request: Request) -> JSONResponse:
    svc = _services(request)
    result = await create_session(
        svc.processor,
        svc.settings,
        req.lines(),
        req.customer_email,
        req.shipping_address.to_domain() if req.shipping_address else None,
        req.metadata,
        deposit_order_id=req.deposit_order_id,
    )
    match result:
        case Ok(session):
            return success(SessionOut.from_domain(session).dump())
        case Error(e):
            return from_error(e)


async def checkout_deposit_route(req: DepositCheckoutIn, request: Request) -> JSONResponse:
    svc = _services(request)
    result = await create_deposit_session(
        svc.processor,
        svc.settings,
        svc.catalog,
        req.product_id,
        req.email,
        variant_id=req.variant_id,
        quantity=req.quantity,
    )
    match result:
        case Ok(session):
            return success(SessionOut.from_domain(session).dump())
        case Error(e):
            return from_error(e)


async def order_lookup_route(req: OrderLookupIn, request: Request) -> JSONResponse:
    match await _services(request).orders.lookup_order(req.email, req.order_id):
        case Ok(order):
            return success(OrderOut.from_domain(order).dump())
        case Error(e):
            return from_error(e)


async def refund_route(req: RefundIn, request: Request) -> JSONResponse:
    svc = _services(request)
    result = await refund(
        svc.session_factory,
        svc.processor,
        order_id=req.order_id,
        buyer_email=req.email,
        product_id=req.product_id,
        reason=req.reason,
    )
    match result:
        case Ok(receipt):
            return success(RefundOut.from_domain(receipt).dump())
        case Error(e):
            return from_error(e)


async def deposit_check_route(req: DepositCheckIn, request: Request) -> JSONResponse:
    deposit = await _services(request).orders.find_deposit(req.email, req.product_id, status=OrderStatus.PAID)
    return success(DepositStatusOut.from_domain(deposit).dump())


async def health_route(request: Request) -> JSONResponse:
    timestamp = datetime.now(UTC).isoformat()
    try:
        await ping(_services(request).session_factory)
    except (SQLAlchemyError, OSError) as e:
        logger.error("Health check failed: %s", e)
        return JSONResponse(
            {"status": "error", "timestamp": timestamp, "database": "disconnected", "error": str(e)},
            status_code=503,
        )
    return JSONResponse({
        "status": "ok",
        "timestamp": timestamp,
        "database": "connected",
        "version": storefront.__version__,
    })


# ═══════════════════════════════════════════════════════════════════════════════
# Webhook
# ═══════════════════════════════════════════════════════════════════════════════

async def stripe_webhook_route(request: Request) -> JSONResponse:
    """
    Processor webhook.

    400 when the signature is missing or wrong (the reconciler never runs),
    500 on any failure after verification so the processor redelivers,
    200 ``{"received": true}`` otherwise, including ignored event types.
    """
    svc = _services(request)
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    if not signature:
        return failure(ErrorCode.BAD_REQUEST, "Missing Stripe signature")

    try:
        envelope = svc.processor.verify_webhook(body, signature)
    except SignatureError as e:
        logger.error("Webhook signature verification failed: %s", e)
        return failure(ErrorCode.BAD_REQUEST, "Invalid webhook signature")

    try:
        event = parse_event(envelope)
    except PayloadError as e:
        logger.critical(
            "Verified webhook could not be parsed, manual investigation required: %s", e,
            extra=ctx(event_id=envelope.get("id"), event_type=envelope.get("type")),
        )
        return failure(ErrorCode.INTERNAL_ERROR, "Webhook processing failed", 500)

    match event:
        case CheckoutCompleted(is_paid=False):
            logger.info(
                "Checkout completed without payment yet, waiting for async payment",
                extra=ctx(session_id=event.session_id, payment_status=event.payment_status),
            )
        case CheckoutCompleted():
            match await svc.reconciler.on_payment_completed(event):
                case Error(e):
                    return _webhook_failure(e)
                case Ok(_):
                    pass
        case PaymentFailed():
            logger.warning(
                "Payment failed",
                extra=ctx(
                    payment_intent=event.payment_intent_id,
                    failure_code=event.failure_code,
                    error=event.failure_message,
                ),
            )
        case UnknownEvent():
            logger.info("Unhandled webhook event type", extra=ctx(event_type=event.type, event_id=event.event_id))

    return success({"received": True})


def _webhook_failure(e: ShopError) -> JSONResponse:
    """
    Answer a failed reconciliation with 500, terminal failures included.

    Note: the processor redelivers every non-2xx until it gives up. A paid
    session that could not become an order stays in its retry queue and
    dashboard until someone refunds or repairs it; the CRITICAL log from the
    reconciler is the other half of that signal.
    """
    return failure(e.code, "Webhook processing failed", 500, {"reason": e.reason, "retriable": e.retriable})


# ═══════════════════════════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Settings | None = None,
    session_factory: SessionFactory | None = None,
    processor: PaymentProcessor | None = None,
) -> FastAPI:
    """
    Build the HTTP app.

    With ``session_factory`` and ``processor`` given, they are used as is.
    Otherwise the database and the Stripe processor are created from
    ``settings`` when the app starts, and disposed when it stops.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        engine: AsyncEngine | None = None
        if getattr(app.state, "services", None) is None:
            factory, engine = await create_database(settings.database_url)
            stripe_processor = processor or StripeProcessor(
                settings.stripe_secret_key, settings.stripe_webhook_secret
            )
            app.state.services = Services.build(settings, factory, stripe_processor)
            logger.info("Storefront started", extra=ctx(database=engine.url.render_as_string(hide_password=True)))
        try:
            yield
        finally:
            if engine is not None:
                await engine.dispose()

    app = FastAPI(title="storefront", version=storefront.__version__, lifespan=lifespan)
    app.state.services = (
        Services.build(settings, session_factory, processor)
        if session_factory is not None and processor is not None
        else None
    )

    app.add_exception_handler(RequestValidationError, on_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(ShopError, on_shop_error)  # type: ignore[arg-type]

    app.post("/api/cart/validate")(validate_cart_route)
    app.post("/api/checkout/session")(checkout_session_route)
    app.post("/api/checkout/deposit")(checkout_deposit_route)
    app.post("/api/webhooks/stripe")(stripe_webhook_route)
    app.post("/api/orders/lookup")(order_lookup_route)
    app.post("/api/orders/refund")(refund_route)
    app.post("/api/deposits/check")(deposit_check_route)
    app.get("/api/health")(health_route)

    return app


__all__ = ("Services", "create_app", "SIGNATURE_HEADER")
