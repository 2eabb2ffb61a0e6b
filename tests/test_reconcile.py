import asyncio
import logging
from dataclasses import replace

from kungfu import Error, Ok
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from conftest import item
from storefront.db import create_engine
from storefront.errors import ErrorCode
from storefront.orders import (
    OrderItemTable,
    OrderReconciler,
    OrderService,
    OrderStatus,
    OrderTable,
    OrderType,
    is_terminal,
)


def _ok(result):
    match result:
        case Ok(outcome):
            return outcome
        case Error(e):
            raise AssertionError(f"expected Ok, got {e!r}")


def _err(result):
    match result:
        case Error(e):
            return e
        case Ok(v):
            raise AssertionError(f"expected an error, got {v!r}")


async def _count(db, table):
    async with db() as session:
        return await session.scalar(select(func.count()).select_from(table))


async def _sold(catalog, product_id=None, variant_id=None):
    if variant_id:
        return (await catalog.get_variant(variant_id)).sold_quantity
    return (await catalog.get_product(product_id)).sold_quantity


# ═══════════════════════════════════════════════════════════════════════════════
# Happy path and idempotency
# ═══════════════════════════════════════════════════════════════════════════════

async def test_paid_session_becomes_an_order(db, catalog, make_event):
    event = make_event([
        item("ctrl", 1, 12900, name="Controller"),
        item("panel", 2, 39900, variant_id="panel-warm"),
    ])
    outcome = _ok(await OrderReconciler(db, catalog).on_payment_completed(event))

    assert not outcome.duplicate
    assert outcome.items == 2
    assert outcome.order_type is OrderType.STANDARD

    order = await OrderService(db).get_order(event.session_id)
    assert order.status is OrderStatus.PAID
    assert order.total == 12900 + 2 * 39900
    assert order.payment_reference == event.payment_reference
    assert order.shipping_address.city == "Portland"
    assert [(i.product_id, i.variant_id, i.quantity, i.total_price) for i in order.items] == [
        ("ctrl", None, 1, 12900),
        ("panel", "panel-warm", 2, 79800),
    ]
    # Name falls back to the catalog when the payload has none
    assert order.items[1].product_name == "Light Panel"

    assert await _sold(catalog, "ctrl") == 1
    assert await _sold(catalog, "panel") == 2
    assert await _sold(catalog, variant_id="panel-warm") == 2


async def test_redelivery_changes_nothing(db, catalog, make_event):
    reconciler = OrderReconciler(db, catalog)
    event = make_event([item("ctrl", 3)])

    first = _ok(await reconciler.on_payment_completed(event))
    second = _ok(await reconciler.on_payment_completed(event))

    assert not first.duplicate
    assert second.duplicate
    assert second.order_id == first.order_id
    assert await _count(db, OrderTable) == 1
    assert await _count(db, OrderItemTable) == 1
    assert await _sold(catalog, "ctrl") == 3


async def test_concurrent_redeliveries_reconcile_once(db, catalog, make_event):
    reconciler = OrderReconciler(db, catalog)
    event = make_event([item("ctrl", 2)])

    results = await asyncio.gather(*(reconciler.on_payment_completed(event) for _ in range(5)))
    outcomes = [_ok(r) for r in results]

    assert sum(not o.duplicate for o in outcomes) == 1
    assert await _count(db, OrderTable) == 1
    assert await _sold(catalog, "ctrl") == 2


async def test_concurrent_buyers_lose_no_updates(db, catalog, make_event):
    reconciler = OrderReconciler(db, catalog)
    events = [make_event([item("cable", 1), item("ctrl", 1)]) for _ in range(8)]

    results = await asyncio.gather(*(reconciler.on_payment_completed(e) for e in events))

    assert all(isinstance(r, Ok) for r in results)
    assert await _sold(catalog, "cable") == 8
    assert await _sold(catalog, "ctrl") == 8


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory caps and rollback
# ═══════════════════════════════════════════════════════════════════════════════

async def test_last_unit_goes_to_exactly_one_buyer(db, catalog, make_event):
    reconciler = OrderReconciler(db, catalog)
    events = [make_event([item("pendant", 1)]) for _ in range(4)]

    results = await asyncio.gather(*(reconciler.on_payment_completed(e) for e in events))

    winners = [r for r in results if isinstance(r, Ok)]
    losers = [r for r in results if isinstance(r, Error)]
    assert len(winners) == 1
    assert len(losers) == 3
    for loser in losers:
        e = _err(loser)
        assert e.code is ErrorCode.CONFLICT
        assert e.reason == "oversold"
        assert is_terminal(e)

    assert await _sold(catalog, "pendant") == 1
    assert await _count(db, OrderTable) == 1


async def test_oversold_line_rolls_back_the_whole_order(db, catalog, make_event):
    event = make_event([
        item("ctrl", 1),
        item("panel", 4, variant_id="panel-warm"),
    ])
    e = _err(await OrderReconciler(db, catalog).on_payment_completed(event))

    assert e.code is ErrorCode.CONFLICT
    assert e.details["variant"] == "panel-warm"
    assert await _count(db, OrderTable) == 0
    assert await _count(db, OrderItemTable) == 0
    assert await _sold(catalog, "ctrl") == 0
    assert await _sold(catalog, "panel") == 0


async def test_rolled_back_order_can_be_redelivered_after_restock(db, catalog, make_event):
    reconciler = OrderReconciler(db, catalog)
    event = make_event([item("gone", 1)])

    assert isinstance(await reconciler.on_payment_completed(event), Error)

    product = await catalog.get_product("gone")
    await catalog.upsert_product(replace(product, max_quantity=3))

    outcome = _ok(await reconciler.on_payment_completed(event))
    assert not outcome.duplicate
    assert await _sold(catalog, "gone") == 3


async def test_product_gone_from_the_catalog_still_records_the_order(db, catalog, make_event, caplog):
    event = make_event([item("ctrl", 1), item("ghost", 2, name="Discontinued Lamp")])

    with caplog.at_level(logging.WARNING, logger="storefront.catalog"):
        outcome = _ok(await OrderReconciler(db, catalog).on_payment_completed(event))

    assert outcome.items == 2
    assert await _count(db, OrderTable) == 1
    assert await _count(db, OrderItemTable) == 2
    assert await _sold(catalog, "ctrl") == 1
    assert any("no longer in the catalog" in r.getMessage() for r in caplog.records)

    order = await OrderService(db).get_order(event.session_id)
    assert order.items[1].product_id == "ghost"
    assert order.items[1].product_name == "Discontinued Lamp"


# ═══════════════════════════════════════════════════════════════════════════════
# Payload and infrastructure failures
# ═══════════════════════════════════════════════════════════════════════════════

async def test_missing_cart_payload(db, catalog, make_event):
    event = make_event(metadata={"campaign": "spring"}, total=1000)
    e = _err(await OrderReconciler(db, catalog).on_payment_completed(event))

    assert e.code is ErrorCode.BAD_REQUEST
    assert e.reason == "malformed_payload"
    assert is_terminal(e)
    assert await _count(db, OrderTable) == 0


async def test_unknown_order_type(db, catalog, make_event):
    event = make_event([item("ctrl", 1)], metadata={"order_type": "gift-card"})
    e = _err(await OrderReconciler(db, catalog).on_payment_completed(event))
    assert e.reason == "malformed_payload"


async def test_database_outage_is_retriable(tmp_path, make_event):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'shop.db'}")
    try:
        reconciler = OrderReconciler(async_sessionmaker(engine, expire_on_commit=False))
        e = _err(await reconciler.on_payment_completed(make_event([item("ctrl", 1, name="Controller")])))
    finally:
        await engine.dispose()

    assert e.code is ErrorCode.INTERNAL_ERROR
    assert e.retriable
    assert not is_terminal(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Deposits
# ═══════════════════════════════════════════════════════════════════════════════

async def test_deposit_order_has_no_items_and_no_inventory(db, catalog, make_event):
    event = make_event(
        metadata={"order_type": "pre-sale-deposit", "target_product_id": "panel", "target_variant_id": "panel-warm"},
        total=30000,
    )
    outcome = _ok(await OrderReconciler(db, catalog).on_payment_completed(event))

    assert outcome.order_type is OrderType.DEPOSIT
    assert outcome.items == 0

    order = await OrderService(db).get_order(event.session_id)
    assert order.order_type is OrderType.DEPOSIT
    assert order.total == 30000
    assert order.items == ()
    assert order.shipping_address is None
    assert order.meta["target_product_id"] == "panel"
    assert await _sold(catalog, "panel") == 0


async def test_deposit_without_target_is_malformed(db, catalog, make_event):
    event = make_event(metadata={"order_type": "pre-sale-deposit"}, total=25000)
    e = _err(await OrderReconciler(db, catalog).on_payment_completed(event))
    assert e.reason == "malformed_payload"


async def test_final_payment_applies_the_deposit(db, catalog, make_event):
    reconciler = OrderReconciler(db, catalog)
    deposit = make_event(metadata={"order_type": "pre-sale-deposit", "target_product_id": "panel"}, total=25000)
    _ok(await reconciler.on_payment_completed(deposit))

    final = make_event(
        [item("panel", 1, 14900, variant_id="panel-cool")],
        metadata={"order_type": "pre-order-with-deposit", "deposit_order_id": deposit.session_id},
    )
    outcome = _ok(await reconciler.on_payment_completed(final))

    assert outcome.order_type is OrderType.PRE_ORDER_WITH_DEPOSIT
    orders = OrderService(db)
    assert (await orders.get_order(deposit.session_id)).status is OrderStatus.APPLIED
    assert (await orders.get_order(final.session_id)).meta["deposit_order_id"] == deposit.session_id
    assert await _sold(catalog, variant_id="panel-cool") == 1


async def test_final_payment_with_unknown_deposit_still_records_the_order(db, catalog, make_event):
    final = make_event(
        [item("panel", 1, variant_id="panel-cool")],
        metadata={"order_type": "pre-order-with-deposit", "deposit_order_id": "cs_missing"},
    )
    outcome = _ok(await OrderReconciler(db, catalog).on_payment_completed(final))
    assert not outcome.duplicate
    assert await _count(db, OrderTable) == 1
