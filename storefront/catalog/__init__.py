"""
Catalog — products, their variants, and the dependency rules between them.

Sold counts are only ever changed by ``CatalogRepository.increment_sold``
inside a reconciliation transaction.
"""

from storefront.catalog._repo import CatalogRepository
from storefront.catalog._tables import DependencyTable, ProductTable, VariantTable
from storefront.catalog._types import (
    LAUNCHED,
    Category,
    DependencyRule,
    DependencyType,
    Product,
    SellStatus,
    Variant,
    remaining,
)

__all__ = (
    # Types
    "Category",
    "SellStatus",
    "DependencyType",
    "LAUNCHED",
    "remaining",
    "Product",
    "Variant",
    "DependencyRule",
    # Tables
    "ProductTable",
    "VariantTable",
    "DependencyTable",
    # Repository
    "CatalogRepository",
)
