"""
Cart — line types and the read-only validator.

    verdict = await validate_cart(catalog, lines)
    if not verdict.valid:
        ...
"""

from storefront.cart._types import (
    CartErrorType,
    CartLine,
    CartVerdict,
    CartWarningType,
    ValidationError,
    ValidationWarning,
    Voltage,
)
from storefront.cart._validate import VOLTAGE_MISMATCH_MESSAGE, validate_cart

__all__ = (
    "Voltage",
    "CartErrorType",
    "CartWarningType",
    "CartLine",
    "ValidationError",
    "ValidationWarning",
    "CartVerdict",
    "validate_cart",
    "VOLTAGE_MISMATCH_MESSAGE",
)
