import pytest
from kungfu import Error, Ok

from conftest import item
from storefront._types import Page
from storefront.errors import ErrorCode
from storefront.orders import OrderReconciler, OrderService, OrderStatus, can_transition


async def _reconcile(db, catalog, event):
    match await OrderReconciler(db, catalog).on_payment_completed(event):
        case Ok(_):
            return event
        case Error(e):
            raise AssertionError(e)


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (OrderStatus.PAID, OrderStatus.FULFILLED, True),
        (OrderStatus.FULFILLED, OrderStatus.SHIPPED, True),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED, True),
        (OrderStatus.REFUNDING, OrderStatus.PAID, True),
        (OrderStatus.PAID, OrderStatus.SHIPPED, False),
        (OrderStatus.DELIVERED, OrderStatus.PAID, False),
        (OrderStatus.REFUNDED, OrderStatus.PAID, False),
        (OrderStatus.APPLIED, OrderStatus.REFUNDING, False),
    ],
)
def test_transitions(current, target, allowed):
    assert can_transition(current, target) is allowed


async def test_fulfilment_lifecycle(db, catalog, make_event):
    event = await _reconcile(db, catalog, make_event([item("ctrl", 1)]))
    orders = OrderService(db)

    assert isinstance(await orders.update_status(event.session_id, OrderStatus.FULFILLED), Ok)

    match await orders.update_status(event.session_id, OrderStatus.SHIPPED, tracking_number="1Z999"):
        case Ok(order):
            assert order.status is OrderStatus.SHIPPED
            assert order.tracking_number == "1Z999"
            assert order.shipped_at is not None
        case Error(e):
            raise AssertionError(e)

    match await orders.update_status(event.session_id, OrderStatus.DELIVERED):
        case Ok(order):
            assert order.status is OrderStatus.DELIVERED
        case Error(e):
            raise AssertionError(e)


async def test_invalid_transition(db, catalog, make_event):
    event = await _reconcile(db, catalog, make_event([item("ctrl", 1)]))

    match await OrderService(db).update_status(event.session_id, OrderStatus.DELIVERED):
        case Error(e):
            assert e.code is ErrorCode.BAD_REQUEST
            assert e.reason == "invalid_transition"
            assert e.details == {"from": "paid", "to": "delivered"}
        case Ok(_):
            raise AssertionError("paid orders cannot jump to delivered")


async def test_update_missing_order(db):
    match await OrderService(db).update_status("cs_nope", OrderStatus.FULFILLED):
        case Error(e):
            assert e.code is ErrorCode.NOT_FOUND
        case Ok(_):
            raise AssertionError("order does not exist")


async def test_lookup_is_case_insensitive_on_email(db, catalog, make_event):
    event = await _reconcile(db, catalog, make_event([item("ctrl", 1)], email="Buyer@Example.com"))

    match await OrderService(db).lookup_order(" buyer@example.COM ", event.session_id):
        case Ok(order):
            assert order.id == event.session_id
            assert len(order.items) == 1
        case Error(e):
            raise AssertionError(e)


async def test_lookup_with_wrong_email_looks_like_a_missing_order(db, catalog, make_event):
    event = await _reconcile(db, catalog, make_event([item("ctrl", 1)]))
    orders = OrderService(db)

    match await orders.lookup_order("mallory@example.com", event.session_id):
        case Error(wrong_email):
            pass
        case Ok(_):
            raise AssertionError("lookup must not leak other buyers' orders")
    match await orders.lookup_order("buyer@example.com", "cs_nope"):
        case Error(missing):
            pass
        case Ok(_):
            raise AssertionError("order does not exist")

    assert wrong_email.code is missing.code is ErrorCode.NOT_FOUND
    assert wrong_email.message == missing.message


async def test_orders_for_customer(db, catalog, make_event):
    for _ in range(3):
        await _reconcile(db, catalog, make_event([item("cable", 1)]))
    await _reconcile(db, catalog, make_event([item("cable", 1)], email="other@example.com"))

    orders = OrderService(db)
    assert len(await orders.orders_for_customer("buyer@example.com")) == 3
    assert len(await orders.orders_for_customer("buyer@example.com", Page(limit=2))) == 2
    assert len(await orders.orders_for_customer("buyer@example.com", Page(limit=2, offset=2))) == 1


async def test_find_deposit(db, catalog, make_event):
    deposit = await _reconcile(
        db,
        catalog,
        make_event(metadata={"order_type": "pre-sale-deposit", "target_product_id": "panel"}, total=25000),
    )
    orders = OrderService(db)

    found = await orders.find_deposit("buyer@example.com", "panel")
    assert found.id == deposit.session_id
    assert await orders.has_paid_deposit("buyer@example.com", "panel")
    assert not await orders.has_paid_deposit("buyer@example.com", "ctrl")
    assert not await orders.has_paid_deposit("other@example.com", "panel")
    assert await orders.find_deposit("buyer@example.com", "panel", status=OrderStatus.REFUNDED) is None
