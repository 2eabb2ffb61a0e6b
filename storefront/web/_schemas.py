"""
HTTP request/response models.

Request models expose ``to_domain()``; response models build themselves with
``from_domain(...)``. Field names on the wire are camelCase.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from storefront.cart import CartLine, CartVerdict, Voltage
from storefront.orders import Order, RefundReceipt
from storefront.payments import CheckoutSession, ShippingAddress

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _In(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class _Out(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ═══════════════════════════════════════════════════════════════════════════════
# Cart validation
# ═══════════════════════════════════════════════════════════════════════════════

class CartLineIn(_In):
    product_id: str = Field(alias="productId", min_length=1)
    variant_id: str | None = Field(default=None, alias="variantId")
    name: str = ""
    price: int = Field(default=0, ge=0)
    price_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("stripePriceId", "price_id"),
    )
    quantity: int = Field(gt=0)
    voltage: Literal["5v", "24v"] | None = None
    remaining_quantity: int | None = Field(default=None, alias="remainingQuantity")
    variant_name: str | None = Field(default=None, alias="variantName")

    def to_domain(self) -> CartLine:
        return CartLine(
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            unit_price=self.price,
            name=self.name,
            variant_name=self.variant_name,
            price_id=self.price_id,
            voltage=Voltage(self.voltage) if self.voltage else None,
            remaining_quantity=self.remaining_quantity,
        )


class CartValidateIn(_In):
    items: list[CartLineIn] = Field(default_factory=list)

    def to_domain(self) -> list[CartLine]:
        return [i.to_domain() for i in self.items]


class CartErrorOut(_Out):
    product_id: str = Field(alias="productId")
    variant_id: str | None = Field(default=None, alias="variantId")
    type: str
    message: str


class CartWarningOut(_Out):
    type: str
    message: str
    product_id: str | None = Field(default=None, alias="productId")
    variant_id: str | None = Field(default=None, alias="variantId")
    suggested_product_id: str | None = Field(default=None, alias="suggestedProductId")


class CartVerdictOut(_Out):
    valid: bool
    errors: list[CartErrorOut]
    warnings: list[CartWarningOut]

    @classmethod
    def from_domain(cls, verdict: CartVerdict) -> CartVerdictOut:
        return cls(
            valid=verdict.valid,
            errors=[
                CartErrorOut(product_id=e.product_id, variant_id=e.variant_id, type=e.type.value, message=e.message)
                for e in verdict.errors
            ],
            warnings=[
                CartWarningOut(
                    type=w.type.value,
                    message=w.message,
                    product_id=w.product_id,
                    variant_id=w.variant_id,
                    suggested_product_id=w.suggested_product_id,
                )
                for w in verdict.warnings
            ],
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════

class ShippingAddressIn(_In):
    name: str = Field(min_length=1)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    address_line1: str = Field(alias="addressLine1", min_length=1)
    address_line2: str | None = Field(default=None, alias="addressLine2")
    city: str = Field(min_length=1)
    state: str = Field(min_length=2)
    postal_code: str = Field(alias="postalCode", min_length=5)
    country: str = Field(default="US", min_length=2, max_length=2)
    phone: str | None = None

    def to_domain(self) -> ShippingAddress:
        return ShippingAddress(
            name=self.name,
            line1=self.address_line1,
            line2=self.address_line2,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country.upper(),
        )


class CheckoutItemIn(_In):
    product_id: str = Field(alias="productId", min_length=1)
    variant_id: str | None = Field(default=None, alias="variantId")
    quantity: int = Field(gt=0)
    price: int = Field(ge=0)
    # Older clients send the price id as stripeProductId
    price_id: str = Field(
        validation_alias=AliasChoices("stripePriceId", "stripeProductId", "price_id"),
        min_length=1,
    )
    product_name: str = Field(alias="productName", min_length=1)
    variant_value: str | None = Field(default=None, alias="variantValue")

    def to_domain(self) -> CartLine:
        return CartLine(
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            unit_price=self.price,
            name=self.product_name,
            variant_name=self.variant_value,
            price_id=self.price_id,
        )


class CheckoutSessionIn(_In):
    items: list[CheckoutItemIn] = Field(min_length=1)
    customer_email: str = Field(alias="customerEmail", pattern=EMAIL_PATTERN)
    shipping_address: ShippingAddressIn | None = Field(default=None, alias="shippingAddress")
    metadata: dict[str, str] | None = None
    deposit_order_id: str | None = Field(default=None, alias="depositOrderId")

    def lines(self) -> list[CartLine]:
        return [i.to_domain() for i in self.items]


class DepositCheckoutIn(_In):
    product_id: str = Field(alias="productId", min_length=1)
    variant_id: str | None = Field(default=None, alias="variantId")
    email: str = Field(pattern=EMAIL_PATTERN)
    quantity: int = Field(default=1, gt=0)


class SessionOut(_Out):
    session_id: str = Field(alias="sessionId")
    url: str | None

    @classmethod
    def from_domain(cls, session: CheckoutSession) -> SessionOut:
        return cls(session_id=session.id, url=session.url)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

class OrderLookupIn(_In):
    email: str = Field(pattern=EMAIL_PATTERN)
    order_id: str = Field(alias="orderId", min_length=1)


class RefundIn(_In):
    order_id: str | None = Field(default=None, alias="orderId")
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    product_id: str | None = Field(default=None, alias="productId")
    reason: str | None = None


class DepositCheckIn(_In):
    email: str = Field(pattern=EMAIL_PATTERN)
    product_id: str = Field(alias="productId", min_length=1)


class OrderItemOut(_Out):
    product_id: str = Field(alias="productId")
    variant_id: str | None = Field(default=None, alias="variantId")
    product_name: str = Field(alias="productName")
    variant_name: str | None = Field(default=None, alias="variantName")
    quantity: int
    unit_price: int = Field(alias="unitPrice")
    total_price: int = Field(alias="totalPrice")


class AddressOut(_Out):
    name: str | None = None
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = Field(default=None, alias="postalCode")
    country: str | None = None


class OrderOut(_Out):
    id: str
    status: str
    order_type: str = Field(alias="orderType")
    customer_email: str = Field(alias="customerEmail")
    customer_name: str | None = Field(default=None, alias="customerName")
    subtotal: int
    tax: int
    shipping: int
    total: int
    currency: str
    shipping_address: AddressOut | None = Field(default=None, alias="shippingAddress")
    tracking_number: str | None = Field(default=None, alias="trackingNumber")
    shipped_at: str | None = Field(default=None, alias="shippedAt")
    created_at: str | None = Field(default=None, alias="createdAt")
    items: list[OrderItemOut]

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        address = order.shipping_address
        return cls(
            id=order.id,
            status=order.status.value,
            order_type=order.order_type.value,
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            subtotal=order.subtotal,
            tax=order.tax,
            shipping=order.shipping,
            total=order.total,
            currency=order.currency,
            shipping_address=AddressOut(
                name=address.name,
                line1=address.line1,
                line2=address.line2,
                city=address.city,
                state=address.state,
                postal_code=address.postal_code,
                country=address.country,
            ) if address else None,
            tracking_number=order.tracking_number,
            shipped_at=order.shipped_at.isoformat() if order.shipped_at else None,
            created_at=order.created_at.isoformat() if order.created_at else None,
            items=[
                OrderItemOut(
                    product_id=i.product_id,
                    variant_id=i.variant_id,
                    product_name=i.product_name,
                    variant_name=i.variant_name,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                    total_price=i.total_price,
                )
                for i in order.items
            ],
        )


class RefundOut(_Out):
    refund_id: str = Field(alias="refundId")
    order_id: str = Field(alias="orderId")
    amount: int
    message: str = "Refund issued. It will appear in 5-10 business days."

    @classmethod
    def from_domain(cls, receipt: RefundReceipt) -> RefundOut:
        return cls(refund_id=receipt.refund_id, order_id=receipt.order_id, amount=receipt.amount)


class DepositStatusOut(_Out):
    has_deposit: bool = Field(alias="hasDeposit")
    deposit_amount: int | None = Field(default=None, alias="depositAmount")
    order_id: str | None = Field(default=None, alias="orderId")

    @classmethod
    def from_domain(cls, deposit: Order | None) -> DepositStatusOut:
        if deposit is None:
            return cls(has_deposit=False)
        return cls(has_deposit=True, deposit_amount=deposit.total, order_id=deposit.id)


__all__ = (
    "CartLineIn",
    "CartValidateIn",
    "CartVerdictOut",
    "ShippingAddressIn",
    "CheckoutItemIn",
    "CheckoutSessionIn",
    "DepositCheckoutIn",
    "SessionOut",
    "OrderLookupIn",
    "RefundIn",
    "DepositCheckIn",
    "OrderOut",
    "RefundOut",
    "DepositStatusOut",
)
