import pytest
from kungfu import Error, Ok

from conftest import item
from storefront.cart import (
    VOLTAGE_MISMATCH_MESSAGE,
    CartErrorType,
    CartLine,
    CartWarningType,
    Voltage,
    validate_cart,
)
from storefront.catalog import Category, Product, SellStatus, Variant
from storefront.errors import ErrorCode
from storefront.orders import OrderReconciler


def _types(items):
    return [i.type for i in items]


@pytest.fixture
async def lamp(catalog):
    """Two lamps left across all finishes. Neither finish has its own cap."""
    await catalog.upsert_product(Product(
        id="lamp",
        name="Desk Lamp",
        category=Category.UNIT,
        dev_status=5,
        base_price=15900,
        has_variants=True,
        max_quantity=20,
        sold_quantity=18,
        sell_status=SellStatus.FOR_SALE,
    ))
    await catalog.upsert_variant(Variant("lamp-black", "lamp", "finish", "black"))
    await catalog.upsert_variant(Variant("lamp-white", "lamp", "finish", "white"))
    return catalog


@pytest.fixture
async def panel_runs(catalog):
    """Two capped finishes of an uncapped product: one sold out, one half sold."""
    await catalog.upsert_variant(Variant("panel-amber", "panel", "color_temp", "2200K", max_quantity=10, sold_quantity=10))
    await catalog.upsert_variant(Variant("panel-daylight", "panel", "color_temp", "6500K", max_quantity=10, sold_quantity=5))
    return catalog


async def test_empty_cart_is_valid(catalog):
    verdict = await validate_cart(catalog, [])
    assert verdict.valid
    assert verdict.errors == ()
    assert verdict.warnings == ()


async def test_clean_cart(catalog):
    verdict = await validate_cart(catalog, [CartLine("ctrl", 1), CartLine("cable", 2)])
    assert verdict.valid
    assert verdict.warnings == ()


async def test_unknown_and_unpurchasable_products_are_unavailable(catalog):
    lines = [
        CartLine("nope", 1),
        CartLine("proto", 1),
        CartLine("retired", 1),
        CartLine("hidden", 1),
    ]
    verdict = await validate_cart(catalog, lines)

    assert not verdict.valid
    assert _types(verdict.errors) == [CartErrorType.UNAVAILABLE] * 4
    assert verdict.errors[1].message == "Prototype is currently unavailable"
    assert verdict.errors[0].product_id == "nope"


async def test_pre_order_products_are_purchasable(catalog):
    verdict = await validate_cart(catalog, [CartLine("panel", 1, variant_id="panel-cool"), CartLine("ctrl", 1)])
    assert verdict.valid


async def test_variant_of_another_product_is_unavailable(catalog):
    verdict = await validate_cart(catalog, [CartLine("ctrl", 1, variant_id="panel-warm")])
    assert _types(verdict.errors) == [CartErrorType.UNAVAILABLE]
    assert verdict.errors[0].message == "The selected option of Controller is no longer available"


async def test_client_name_is_used_in_messages(catalog):
    verdict = await validate_cart(catalog, [CartLine("proto", 1, name="Dev Kit")])
    assert verdict.errors[0].message == "Dev Kit is currently unavailable"


# ═══════════════════════════════════════════════════════════════════════════════
# Stock
# ═══════════════════════════════════════════════════════════════════════════════

async def test_sold_out_cap(catalog):
    verdict = await validate_cart(catalog, [CartLine("gone", 1)])
    assert _types(verdict.errors) == [CartErrorType.OUT_OF_STOCK]
    assert verdict.errors[0].message == "Gone Lamp is sold out"


async def test_quantity_over_remaining(catalog):
    verdict = await validate_cart(
        catalog,
        [CartLine("panel", 4, variant_id="panel-warm"), CartLine("ctrl", 1)],
    )
    assert _types(verdict.errors) == [CartErrorType.OUT_OF_STOCK]
    assert verdict.errors[0].message == "Only 3 of Light Panel remaining"
    assert verdict.errors[0].variant_id == "panel-warm"


async def test_lines_for_the_same_unit_share_stock(catalog):
    lines = [
        CartLine("panel", 2, variant_id="panel-warm"),
        CartLine("panel", 2, variant_id="panel-warm"),
        CartLine("ctrl", 1),
    ]
    verdict = await validate_cart(catalog, lines)
    assert _types(verdict.errors) == [CartErrorType.OUT_OF_STOCK]


async def test_low_stock_is_a_warning(catalog):
    verdict = await validate_cart(catalog, [CartLine("pendant", 1)])
    assert verdict.valid
    assert _types(verdict.warnings) == [CartWarningType.LOW_STOCK]
    assert verdict.warnings[0].message == "Only 1 of Pendant remaining"


async def test_low_stock_threshold_is_configurable(catalog):
    verdict = await validate_cart(catalog, [CartLine("pendant", 1)], low_stock_threshold=0)
    assert verdict.warnings == ()


async def test_unlimited_products_skip_stock_checks(catalog):
    verdict = await validate_cart(catalog, [CartLine("cable", 10_000)])
    assert verdict.valid
    assert verdict.warnings == ()


async def test_deleted_variant_is_unavailable(catalog):
    verdict = await validate_cart(catalog, [CartLine("panel", 1, variant_id="panel-retired"), CartLine("ctrl", 1)])

    assert _types(verdict.errors) == [CartErrorType.UNAVAILABLE]
    assert verdict.errors[0].variant_id == "panel-retired"
    assert verdict.errors[0].message == "The selected option of Light Panel is no longer available"


async def test_sold_out_variant(panel_runs):
    verdict = await validate_cart(panel_runs, [CartLine("panel", 1, variant_id="panel-amber"), CartLine("ctrl", 1)])

    assert _types(verdict.errors) == [CartErrorType.OUT_OF_STOCK]
    assert verdict.errors[0].variant_id == "panel-amber"
    assert verdict.errors[0].message == "Light Panel is sold out"


async def test_variant_request_for_exactly_what_is_left(panel_runs):
    verdict = await validate_cart(panel_runs, [CartLine("panel", 5, variant_id="panel-daylight"), CartLine("ctrl", 1)])

    assert verdict.valid
    [low] = [w for w in verdict.warnings if w.type is CartWarningType.LOW_STOCK]
    assert low.variant_id == "panel-daylight"
    assert low.message == "Only 5 of Light Panel remaining"


async def test_finishes_share_the_product_run(lamp):
    verdict = await validate_cart(
        lamp,
        [CartLine("lamp", 2, variant_id="lamp-black"), CartLine("lamp", 1, variant_id="lamp-white")],
    )

    assert _types(verdict.errors) == [CartErrorType.OUT_OF_STOCK]
    assert verdict.errors[0].product_id == "lamp"
    assert verdict.errors[0].variant_id is None
    assert verdict.errors[0].message == "Only 2 of Desk Lamp remaining"


async def test_uncapped_finish_of_an_exhausted_run(lamp, db, make_event):
    verdict = await validate_cart(lamp, [CartLine("lamp", 2, variant_id="lamp-white")])
    assert verdict.valid
    assert _types(verdict.warnings) == [CartWarningType.LOW_STOCK]

    # A cart the validator accepts reconciles
    event = make_event([item("lamp", 2, 15900, variant_id="lamp-white")])
    assert isinstance(await OrderReconciler(db, lamp).on_payment_completed(event), Ok)

    verdict = await validate_cart(lamp, [CartLine("lamp", 1, variant_id="lamp-black")])
    assert _types(verdict.errors) == [CartErrorType.OUT_OF_STOCK]
    assert verdict.errors[0].message == "Desk Lamp is sold out"

    # and one it rejects would not
    event = make_event([item("lamp", 1, 15900, variant_id="lamp-black")])
    match await OrderReconciler(db, lamp).on_payment_completed(event):
        case Error(e):
            assert e.code is ErrorCode.CONFLICT
        case Ok(_):
            raise AssertionError("the run is exhausted")


# ═══════════════════════════════════════════════════════════════════════════════
# Voltage and dependencies
# ═══════════════════════════════════════════════════════════════════════════════

async def test_mixed_voltage_is_one_error(catalog):
    lines = [
        CartLine("cable", 1, voltage=Voltage.V5),
        CartLine("cable", 1, voltage=Voltage.V24),
        CartLine("ctrl", 1, voltage=Voltage.V24),
    ]
    verdict = await validate_cart(catalog, lines)
    assert _types(verdict.errors) == [CartErrorType.VOLTAGE_MISMATCH]
    assert verdict.errors[0].message == VOLTAGE_MISMATCH_MESSAGE


async def test_single_voltage_is_fine(catalog):
    lines = [CartLine("cable", 1, voltage=Voltage.V24), CartLine("ctrl", 1, voltage=Voltage.V24)]
    assert (await validate_cart(catalog, lines)).valid


async def test_missing_required_component_warns(catalog):
    verdict = await validate_cart(catalog, [CartLine("panel", 1, variant_id="panel-cool")])
    assert verdict.valid
    warning = verdict.warnings[0]
    assert warning.type is CartWarningType.MISSING_COMPONENT
    assert warning.message == "Light Panel needs a Controller"
    assert warning.suggested_product_id == "ctrl"


async def test_suggestion_without_message(catalog):
    verdict = await validate_cart(catalog, [CartLine("ctrl", 1)])
    assert _types(verdict.warnings) == [CartWarningType.SUGGESTED_PRODUCT]
    assert verdict.warnings[0].message == "Consider adding cable"


async def test_incompatible_pair_is_an_error(catalog):
    verdict = await validate_cart(catalog, [CartLine("psu-5v", 1), CartLine("psu-24v", 1)])
    assert _types(verdict.errors) == [CartErrorType.INCOMPATIBLE]
    assert verdict.errors[0].product_id == "psu-5v"


async def test_incompatible_rule_alone_is_fine(catalog):
    assert (await validate_cart(catalog, [CartLine("psu-5v", 1)])).valid


async def test_all_findings_are_reported_together(catalog):
    lines = [
        CartLine("proto", 1),
        CartLine("gone", 1),
        CartLine("psu-5v", 1, voltage=Voltage.V5),
        CartLine("psu-24v", 1, voltage=Voltage.V24),
    ]
    verdict = await validate_cart(catalog, lines)
    assert set(_types(verdict.errors)) == {
        CartErrorType.UNAVAILABLE,
        CartErrorType.OUT_OF_STOCK,
        CartErrorType.VOLTAGE_MISMATCH,
        CartErrorType.INCOMPATIBLE,
    }
