"""
Catalog tables — products, variants, dependency rules.

Note: the cap invariant (sold_quantity <= max_quantity) is a CHECK constraint,
so even a buggy writer cannot oversell at the storage level.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.db import Base


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════

class ProductTable(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_products_base_price"),
        CheckConstraint("sold_quantity >= 0", name="ck_products_sold_nonneg"),
        CheckConstraint(
            "max_quantity IS NULL OR sold_quantity <= max_quantity",
            name="ck_products_cap",
        ),
        CheckConstraint("dev_status BETWEEN 0 AND 5", name="ck_products_dev_status"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    dev_status: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Pricing (minor units)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    price_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    deposit_price: Mapped[int | None] = mapped_column(Integer, nullable=True)

    requires_assembly: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_variants: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sell_status: Mapped[str] = mapped_column(String(20), nullable=False, default="internal")

    # Limited edition
    max_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sold_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    variants: Mapped[list["VariantTable"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Variants
# ═══════════════════════════════════════════════════════════════════════════════

class VariantTable(Base):
    __tablename__ = "product_variants"
    __table_args__ = (
        CheckConstraint("sold_quantity >= 0", name="ck_variants_sold_nonneg"),
        CheckConstraint(
            "max_quantity IS NULL OR sold_quantity <= max_quantity",
            name="ck_variants_cap",
        ),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    product_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    price_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    variant_type: Mapped[str] = mapped_column(String(50), nullable=False)
    variant_value: Mapped[str] = mapped_column(String(100), nullable=False)
    price_modifier: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deposit_modifier: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    max_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sold_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped[ProductTable] = relationship(back_populates="variants")


# ═══════════════════════════════════════════════════════════════════════════════
# Dependency rules
# ═══════════════════════════════════════════════════════════════════════════════

class DependencyTable(Base):
    __tablename__ = "product_dependencies"
    __table_args__ = (
        UniqueConstraint("product_id", "depends_on_id", "dependency_type", name="uq_dependency"),
        Index("ix_dependencies_product", "product_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    depends_on_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    dependency_type: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)


__all__ = ("ProductTable", "VariantTable", "DependencyTable")
