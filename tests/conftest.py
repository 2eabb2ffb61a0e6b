import itertools
import json
from collections.abc import Sequence

import pytest

from storefront.catalog import (
    CatalogRepository,
    Category,
    DependencyRule,
    DependencyType,
    Product,
    SellStatus,
    Variant,
)
from storefront.config import Settings
from storefront.db import create_database
from storefront.payments import (
    CheckoutCompleted,
    CheckoutSession,
    PayloadItem,
    Refund,
    SessionRequest,
    ShippingAddress,
    SignatureError,
    encode_cart,
)

GOOD_SIGNATURE = "t=1,v1=valid"


def _product(pid, name, **kw):
    kw.setdefault("category", Category.UNIT)
    kw.setdefault("dev_status", 5)
    kw.setdefault("sell_status", SellStatus.FOR_SALE)
    kw.setdefault("base_price", 1000)
    kw.setdefault("price_id", f"price_{pid}")
    return Product(id=pid, name=name, **kw)


PRODUCTS = (
    _product("ctrl", "Controller", category=Category.CONTROL, base_price=12900, max_quantity=50, deposit_price=25000),
    _product("panel", "Light Panel", base_price=39900, has_variants=True, sell_status=SellStatus.PRE_ORDER, deposit_price=25000),
    _product("pendant", "Pendant", base_price=99900, max_quantity=1),
    _product("cable", "Cable", category=Category.CONNECTOR, base_price=900),
    _product("gone", "Gone Lamp", max_quantity=2, sold_quantity=2),
    _product("proto", "Prototype", category=Category.KIT, dev_status=3),
    _product("retired", "Retired Lamp", sell_status=SellStatus.SOLD_OUT),
    _product("hidden", "Hidden Lamp", is_active=False),
    _product("psu-5v", "5V Supply", category=Category.MATERIAL),
    _product("psu-24v", "24V Supply", category=Category.MATERIAL),
)

VARIANTS = (
    Variant(
        id="panel-warm",
        product_id="panel",
        variant_type="color_temp",
        variant_value="2700K",
        price_id="price_panel_warm",
        max_quantity=3,
        deposit_modifier=5000,
    ),
    Variant(
        id="panel-cool",
        product_id="panel",
        variant_type="color_temp",
        variant_value="5000K",
        price_id="price_panel_cool",
        price_modifier=2000,
    ),
)

RULES = (
    DependencyRule("panel", "ctrl", DependencyType.REQUIRES, "Light Panel needs a Controller"),
    DependencyRule("ctrl", "cable", DependencyType.SUGGESTS),
    DependencyRule("psu-5v", "psu-24v", DependencyType.INCOMPATIBLE),
)


# ═══════════════════════════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
async def db(tmp_path):
    # File-backed so concurrent sessions really use separate connections
    session_factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")
    yield session_factory
    await engine.dispose()


@pytest.fixture
async def catalog(db):
    repo = CatalogRepository(db)
    for product in PRODUCTS:
        await repo.upsert_product(product)
    for variant in VARIANTS:
        await repo.upsert_variant(variant)
    for rule in RULES:
        await repo.add_rule(rule)
    return repo


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        stripe_secret_key="sk_test_dummy",
        stripe_webhook_secret="whsec_dummy",
        public_base_url="https://shop.test",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Payment processor
# ═══════════════════════════════════════════════════════════════════════════════

class FakeProcessor:
    """In-memory processor. Set ``fail_with`` to make the next calls raise."""

    def __init__(self):
        self.sessions: list[SessionRequest] = []
        self.refunds: list[tuple[str, int]] = []
        self.fail_with: Exception | None = None

    async def create_checkout_session(self, request):
        if self.fail_with is not None:
            raise self.fail_with
        self.sessions.append(request)
        sid = f"cs_test_{len(self.sessions)}"
        return CheckoutSession(id=sid, url=f"https://checkout.test/{sid}")

    async def create_refund(self, payment_reference, amount):
        if self.fail_with is not None:
            raise self.fail_with
        self.refunds.append((payment_reference, amount))
        return Refund(id=f"re_{len(self.refunds)}", amount=amount, status="succeeded")

    def verify_webhook(self, payload, signature):
        if signature != GOOD_SIGNATURE:
            raise SignatureError("No signatures found matching the expected signature for payload")
        return json.loads(payload)


@pytest.fixture
def processor():
    return FakeProcessor()


# ═══════════════════════════════════════════════════════════════════════════════
# Events
# ═══════════════════════════════════════════════════════════════════════════════

ADDRESS = ShippingAddress(
    name="Ada Buyer",
    line1="1 Main St",
    city="Portland",
    state="OR",
    postal_code="97201",
    country="US",
)


@pytest.fixture
def make_event():
    counter = itertools.count(1)

    def build(
        items: Sequence[PayloadItem] = (),
        *,
        session_id: str | None = None,
        metadata: dict[str, str] | None = None,
        email: str = "buyer@example.com",
        total: int | None = None,
        payment_status: str = "paid",
    ) -> CheckoutCompleted:
        n = next(counter)
        sid = session_id or f"cs_live_{n}"
        meta = dict(metadata or {})
        if items:
            meta.update(encode_cart(items))
        amount = sum(i.total_price for i in items) if total is None else total
        return CheckoutCompleted(
            event_id=f"evt_{n}",
            session_id=sid,
            payment_reference=f"pi_{sid}",
            customer_email=email,
            customer_name="Ada Buyer",
            payment_status=payment_status,
            subtotal=amount,
            total=amount,
            metadata=meta,
            shipping_address=ADDRESS,
        )

    return build


def item(product_id, quantity=1, unit_price=1000, variant_id=None, name=None):
    return PayloadItem(
        product_id=product_id,
        quantity=quantity,
        unit_price=unit_price,
        variant_id=variant_id,
        price_id=f"price_{variant_id or product_id}",
        product_name=name,
    )
