"""
Catalog types — products, variants, dependency rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class Category(Enum):
    MATERIAL = "material"
    CONNECTOR = "connector"
    CONTROL = "control"
    DIFFUSER = "diffuser"
    KIT = "kit"
    INTERFACE = "interface"
    UNIT = "unit"
    ACCESSORY = "accessory"


class SellStatus(Enum):
    """
    Purchasability gate, independent of the unit cap.

    Note: SOLD_OUT is a manual switch. An exhausted cap does not flip it.
    """

    FOR_SALE = "for-sale"
    PRE_ORDER = "pre-order"
    SOLD_OUT = "sold-out"
    INTERNAL = "internal"

    @property
    def purchasable(self) -> bool:
        return self in (SellStatus.FOR_SALE, SellStatus.PRE_ORDER)


class DependencyType(Enum):
    REQUIRES = "requires"
    SUGGESTS = "suggests"
    INCOMPATIBLE = "incompatible"
    VOLTAGE_MATCH = "voltage_match"


LAUNCHED = 5
"""Readiness ordinal of a customer-visible product."""


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory math
# ═══════════════════════════════════════════════════════════════════════════════


def remaining(cap: int | None, sold: int) -> int | None:
    """Units left under a cap. None means unlimited."""
    if cap is None:
        return None
    return max(cap - sold, 0)


# ═══════════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    category: Category
    dev_status: int
    base_price: int
    requires_assembly: bool = False
    has_variants: bool = False
    max_quantity: int | None = None
    sold_quantity: int = 0
    sell_status: SellStatus = SellStatus.INTERNAL
    is_active: bool = True
    price_id: str | None = None
    deposit_price: int | None = None
    description: str | None = None

    @property
    def available(self) -> int | None:
        return remaining(self.max_quantity, self.sold_quantity)

    @property
    def is_launched(self) -> bool:
        return self.dev_status == LAUNCHED


@dataclass(frozen=True, slots=True)
class Variant:
    id: str
    product_id: str
    variant_type: str
    variant_value: str
    price_modifier: int = 0
    deposit_modifier: int = 0
    price_id: str | None = None
    max_quantity: int | None = None
    sold_quantity: int = 0

    @property
    def available(self) -> int | None:
        return remaining(self.max_quantity, self.sold_quantity)

    def deposit(self, product: Product) -> int | None:
        if product.deposit_price is None:
            return None
        return product.deposit_price + self.deposit_modifier


@dataclass(frozen=True, slots=True)
class DependencyRule:
    """(product_id) --dependency_type--> (depends_on_id)."""

    product_id: str
    depends_on_id: str
    dependency_type: DependencyType
    message: str | None = None


__all__ = (
    "Category",
    "SellStatus",
    "DependencyType",
    "LAUNCHED",
    "remaining",
    "Product",
    "Variant",
    "DependencyRule",
)
