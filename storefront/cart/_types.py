"""
Cart types — lines as the buyer submitted them, and the validator's verdict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Voltage(Enum):
    V5 = "5v"
    V24 = "24v"


class CartErrorType(Enum):
    OUT_OF_STOCK = "out_of_stock"
    VOLTAGE_MISMATCH = "voltage_mismatch"
    INCOMPATIBLE = "incompatible"
    UNAVAILABLE = "unavailable"


class CartWarningType(Enum):
    MISSING_COMPONENT = "missing_component"
    SUGGESTED_PRODUCT = "suggested_product"
    LOW_STOCK = "low_stock"


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One cart line. Transient: it lives in the buyer's session and in the
    checkout payload, never in its own table.

    Note: unit_price is the client's snapshot. The processor's price id is
    what actually gets charged.
    """

    product_id: str
    quantity: int
    unit_price: int = 0
    name: str = ""
    variant_id: str | None = None
    variant_name: str | None = None
    price_id: str | None = None
    voltage: Voltage | None = None
    remaining_quantity: int | None = None


@dataclass(frozen=True, slots=True)
class ValidationError:
    product_id: str
    type: CartErrorType
    message: str
    variant_id: str | None = None


@dataclass(frozen=True, slots=True)
class ValidationWarning:
    type: CartWarningType
    message: str
    product_id: str | None = None
    variant_id: str | None = None
    suggested_product_id: str | None = None


@dataclass(frozen=True, slots=True)
class CartVerdict:
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)
    warnings: tuple[ValidationWarning, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return not self.errors


__all__ = (
    "Voltage",
    "CartErrorType",
    "CartWarningType",
    "CartLine",
    "ValidationError",
    "ValidationWarning",
    "CartVerdict",
)
