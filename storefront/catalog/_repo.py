"""
Catalog repository — read side for validation/checkout, guarded writes for
reconciliation, upserts for the content-sync job.

Note: reads open their own session. ``increment_sold`` never does: it only
runs inside the caller's reconciliation transaction.
"""

import logging
from collections.abc import Iterable
from typing import Any, cast

from sqlalchemy import or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog._tables import DependencyTable, ProductTable, VariantTable
from storefront.catalog._types import (
    Category,
    DependencyRule,
    DependencyType,
    Product,
    SellStatus,
    Variant,
)
from storefront.db import SessionFactory
from storefront.errors import Errors
from storefront.log import ctx

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Row mapping
# ═══════════════════════════════════════════════════════════════════════════════

def _product(row: ProductTable) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        category=Category(row.category),
        dev_status=row.dev_status,
        base_price=row.base_price,
        requires_assembly=row.requires_assembly,
        has_variants=row.has_variants,
        max_quantity=row.max_quantity,
        sold_quantity=row.sold_quantity,
        sell_status=SellStatus(row.sell_status),
        is_active=row.is_active,
        price_id=row.price_id,
        deposit_price=row.deposit_price,
        description=row.description,
    )


def _variant(row: VariantTable) -> Variant:
    return Variant(
        id=row.id,
        product_id=row.product_id,
        variant_type=row.variant_type,
        variant_value=row.variant_value,
        price_modifier=row.price_modifier,
        deposit_modifier=row.deposit_modifier,
        price_id=row.price_id,
        max_quantity=row.max_quantity,
        sold_quantity=row.sold_quantity,
    )


def _rule(row: DependencyTable) -> DependencyRule:
    return DependencyRule(
        product_id=row.product_id,
        depends_on_id=row.depends_on_id,
        dependency_type=DependencyType(row.dependency_type),
        message=row.message,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Repository
# ═══════════════════════════════════════════════════════════════════════════════

class CatalogRepository:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    async def products_by_ids(self, ids: Iterable[str]) -> dict[str, Product]:
        wanted = set(ids)
        if not wanted:
            return {}
        async with self._session() as session:
            rows = await session.scalars(select(ProductTable).where(ProductTable.id.in_(wanted)))
            return {row.id: _product(row) for row in rows}

    async def variants_by_ids(self, ids: Iterable[str]) -> dict[str, Variant]:
        wanted = set(ids)
        if not wanted:
            return {}
        async with self._session() as session:
            rows = await session.scalars(select(VariantTable).where(VariantTable.id.in_(wanted)))
            return {row.id: _variant(row) for row in rows}

    async def rules_for_products(self, ids: Iterable[str]) -> list[DependencyRule]:
        """Every rule whose subject is one of ``ids``."""
        wanted = set(ids)
        if not wanted:
            return []
        async with self._session() as session:
            rows = await session.scalars(
                select(DependencyTable)
                .where(DependencyTable.product_id.in_(wanted))
                .order_by(DependencyTable.id)
            )
            return [_rule(row) for row in rows]

    async def get_product(self, product_id: str) -> Product | None:
        async with self._session() as session:
            row = await session.get(ProductTable, product_id)
            return _product(row) if row else None

    async def get_variant(self, variant_id: str) -> Variant | None:
        async with self._session() as session:
            row = await session.get(VariantTable, variant_id)
            return _variant(row) if row else None

    # ─────────────────────────────────────────────────────────────────────────
    # Guarded increment (reconciliation only)
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    async def increment_sold(
        session: AsyncSession,
        table: type[ProductTable] | type[VariantTable],
        ident: str,
        quantity: int,
    ) -> bool:
        """
        Add ``quantity`` to a sold-count in one conditional UPDATE.

        The WHERE clause carries the cap check, so the database serializes
        concurrent writers on the row and a losing writer matches nothing.
        A cap that would be exceeded raises ``ShopError`` so the caller's
        transaction rolls back. A row that no longer exists is skipped and
        reported with ``False``: order items are snapshots and a paid order
        outlives its catalog entry.
        """
        stmt = (
            update(table)
            .where(table.id == ident)
            .where(
                or_(
                    table.max_quantity.is_(None),
                    table.sold_quantity + quantity <= table.max_quantity,
                )
            )
            .values(sold_quantity=table.sold_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        cursor = cast(CursorResult[Any], await session.execute(stmt))
        if cursor.rowcount > 0:
            return True

        kind = "product" if table is ProductTable else "variant"
        exists = await session.scalar(select(table.id).where(table.id == ident))
        if exists is None:
            logger.warning(
                "Sold %s is no longer in the catalog, count not updated",
                kind,
                extra=ctx(**{kind: ident}, quantity=quantity),
            )
            return False
        raise Errors.conflict(
            f"Not enough {kind} inventory left",
            reason="oversold",
            details={kind: ident, "quantity": quantity},
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Content sync
    # ─────────────────────────────────────────────────────────────────────────

    async def upsert_product(self, product: Product) -> None:
        """Insert or update a product. An existing sold_quantity is preserved."""
        async with self._session() as session:
            row = await session.get(ProductTable, product.id)
            if row is None:
                row = ProductTable(id=product.id, sold_quantity=product.sold_quantity)
                session.add(row)
            row.name = product.name
            row.category = product.category.value
            row.dev_status = product.dev_status
            row.description = product.description
            row.base_price = product.base_price
            row.price_id = product.price_id
            row.deposit_price = product.deposit_price
            row.requires_assembly = product.requires_assembly
            row.has_variants = product.has_variants
            row.is_active = product.is_active
            row.sell_status = product.sell_status.value
            row.max_quantity = product.max_quantity
            await session.commit()

    async def upsert_variant(self, variant: Variant) -> None:
        """Insert or update a variant. An existing sold_quantity is preserved."""
        async with self._session() as session:
            row = await session.get(VariantTable, variant.id)
            if row is None:
                row = VariantTable(id=variant.id, sold_quantity=variant.sold_quantity)
                session.add(row)
            row.product_id = variant.product_id
            row.price_id = variant.price_id
            row.variant_type = variant.variant_type
            row.variant_value = variant.variant_value
            row.price_modifier = variant.price_modifier
            row.deposit_modifier = variant.deposit_modifier
            row.max_quantity = variant.max_quantity
            await session.commit()

    async def add_rule(self, rule: DependencyRule) -> None:
        async with self._session() as session:
            session.add(
                DependencyTable(
                    product_id=rule.product_id,
                    depends_on_id=rule.depends_on_id,
                    dependency_type=rule.dependency_type.value,
                    message=rule.message,
                )
            )
            await session.commit()


__all__ = ("CatalogRepository",)
