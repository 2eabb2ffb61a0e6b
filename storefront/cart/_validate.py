"""
Cart validation.

Read-only: it never writes, and its stock numbers may be stale by the time
the order is reconciled. It is a best-effort pre-check, not a reservation.
Business-rule violations come back as data; only infrastructure failures
(database unreachable) raise.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from storefront.cart._types import (
    CartErrorType,
    CartLine,
    CartVerdict,
    CartWarningType,
    ValidationError,
    ValidationWarning,
)
from storefront.catalog import CatalogRepository, DependencyRule, DependencyType, Product, Variant
from storefront.log import ctx

logger = logging.getLogger(__name__)

VOLTAGE_MISMATCH_MESSAGE = (
    "5V and 24V components cannot be combined in one order. "
    "Choose a single voltage system."
)


# ═══════════════════════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════════════════════

async def validate_cart(
    catalog: CatalogRepository,
    lines: Sequence[CartLine],
    *,
    low_stock_threshold: int = 10,
) -> CartVerdict:
    """
    Check a cart against the catalog.

    All checks run and their findings are merged: availability, stock,
    voltage, then dependency rules. ``valid`` depends on errors only.
    """
    if not lines:
        return CartVerdict()

    product_ids = [line.product_id for line in lines]
    products = await catalog.products_by_ids(product_ids)
    variants = await catalog.variants_by_ids(line.variant_id for line in lines if line.variant_id)
    rules = await catalog.rules_for_products(product_ids)

    errors: list[ValidationError] = []
    warnings: list[ValidationWarning] = []

    _check_availability(lines, products, variants, errors)
    _check_stock(lines, products, variants, low_stock_threshold, errors, warnings)
    _check_voltage(lines, errors)
    _check_dependencies(set(product_ids), rules, errors, warnings)

    verdict = CartVerdict(errors=tuple(errors), warnings=tuple(warnings))
    logger.debug(
        "Cart validated",
        extra=ctx(lines=len(lines), errors=len(errors), warnings=len(warnings)),
    )
    return verdict


# ═══════════════════════════════════════════════════════════════════════════════
# Checks
# ═══════════════════════════════════════════════════════════════════════════════

def _display_name(line: CartLine, product: Product | None) -> str:
    if line.name:
        return line.name
    return product.name if product else line.product_id


def _purchasable(product: Product | None) -> bool:
    return (
        product is not None
        and product.is_launched
        and product.is_active
        and product.sell_status.purchasable
    )


def _owned_variant(line: CartLine, variants: dict[str, Variant]) -> Variant | None:
    if line.variant_id is None:
        return None
    variant = variants.get(line.variant_id)
    if variant is None or variant.product_id != line.product_id:
        return None
    return variant


def _check_availability(
    lines: Sequence[CartLine],
    products: dict[str, Product],
    variants: dict[str, Variant],
    errors: list[ValidationError],
) -> None:
    for line in lines:
        product = products.get(line.product_id)
        name = _display_name(line, product)

        if not _purchasable(product):
            errors.append(ValidationError(
                product_id=line.product_id,
                variant_id=line.variant_id,
                type=CartErrorType.UNAVAILABLE,
                message=f"{name} is currently unavailable",
            ))
            continue

        # Variant deleted or re-parented since it was added to the cart
        if line.variant_id is not None and _owned_variant(line, variants) is None:
            errors.append(ValidationError(
                product_id=line.product_id,
                variant_id=line.variant_id,
                type=CartErrorType.UNAVAILABLE,
                message=f"The selected option of {name} is no longer available",
            ))


def _check_stock(
    lines: Sequence[CartLine],
    products: dict[str, Product],
    variants: dict[str, Variant],
    threshold: int,
    errors: list[ValidationError],
    warnings: list[ValidationWarning],
) -> None:
    # Lines for the same stock unit draw from one pool, and every line of a
    # product also draws from the product's combined cap
    by_unit: dict[tuple[str, str | None], list[CartLine]] = {}
    by_product: dict[str, list[CartLine]] = {}
    for line in lines:
        if line.product_id not in products:
            continue
        if line.variant_id is not None and _owned_variant(line, variants) is None:
            continue
        by_unit.setdefault((line.product_id, line.variant_id), []).append(line)
        by_product.setdefault(line.product_id, []).append(line)

    short: set[str] = set()
    for (product_id, variant_id), unit_lines in by_unit.items():
        if variant_id is None:
            continue
        first = unit_lines[0]
        if _judge_stock(
            first,
            _display_name(first, products[product_id]),
            sum(line.quantity for line in unit_lines),
            variants[variant_id].available,
            threshold,
            errors,
            warnings,
        ):
            short.add(product_id)

    for product_id, product_lines in by_product.items():
        product = products[product_id]
        if product.available is None or product_id in short:
            continue
        first = product_lines[0]
        if len({line.variant_id for line in product_lines}) == 1:
            name = _display_name(first, product)
        else:
            first, name = CartLine(product_id, first.quantity), product.name
        _judge_stock(
            first,
            name,
            sum(line.quantity for line in product_lines),
            product.available,
            threshold,
            errors,
            warnings,
            warn=not any(w.product_id == product_id for w in warnings),
        )


def _judge_stock(
    line: CartLine,
    name: str,
    quantity: int,
    available: int | None,
    threshold: int,
    errors: list[ValidationError],
    warnings: list[ValidationWarning],
    *,
    warn: bool = True,
) -> bool:
    """Record what ``quantity`` against ``available`` means. True when short."""
    if available is None:
        return False
    if available <= 0:
        errors.append(ValidationError(
            product_id=line.product_id,
            variant_id=line.variant_id,
            type=CartErrorType.OUT_OF_STOCK,
            message=f"{name} is sold out",
        ))
        return True
    if quantity > available:
        errors.append(ValidationError(
            product_id=line.product_id,
            variant_id=line.variant_id,
            type=CartErrorType.OUT_OF_STOCK,
            message=f"Only {available} of {name} remaining",
        ))
        return True
    if warn and available <= threshold:
        warnings.append(ValidationWarning(
            type=CartWarningType.LOW_STOCK,
            message=f"Only {available} of {name} remaining",
            product_id=line.product_id,
            variant_id=line.variant_id,
        ))
    return False


def _check_voltage(lines: Sequence[CartLine], errors: list[ValidationError]) -> None:
    voltages = {line.voltage for line in lines if line.voltage is not None}
    if len(voltages) > 1:
        errors.append(ValidationError(
            product_id="",
            type=CartErrorType.VOLTAGE_MISMATCH,
            message=VOLTAGE_MISMATCH_MESSAGE,
        ))


def _check_dependencies(
    in_cart: set[str],
    rules: Sequence[DependencyRule],
    errors: list[ValidationError],
    warnings: list[ValidationWarning],
) -> None:
    for rule in rules:
        present = rule.depends_on_id in in_cart

        match rule.dependency_type:
            case DependencyType.REQUIRES if not present:
                warnings.append(ValidationWarning(
                    type=CartWarningType.MISSING_COMPONENT,
                    message=rule.message or f"This product requires {rule.depends_on_id}",
                    product_id=rule.product_id,
                    suggested_product_id=rule.depends_on_id,
                ))
            case DependencyType.SUGGESTS if not present:
                warnings.append(ValidationWarning(
                    type=CartWarningType.SUGGESTED_PRODUCT,
                    message=rule.message or f"Consider adding {rule.depends_on_id}",
                    product_id=rule.product_id,
                    suggested_product_id=rule.depends_on_id,
                ))
            case DependencyType.INCOMPATIBLE if present:
                errors.append(ValidationError(
                    product_id=rule.product_id,
                    type=CartErrorType.INCOMPATIBLE,
                    message=rule.message or f"{rule.product_id} cannot be combined with {rule.depends_on_id}",
                ))
            case _:
                pass


__all__ = ("validate_cart", "VOLTAGE_MISMATCH_MESSAGE")
