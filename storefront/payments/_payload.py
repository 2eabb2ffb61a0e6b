"""
Cart payload — the cart carried through the processor's session metadata.

This is the only link between checkout and reconciliation, and sessions
created by older deployments may still be in flight, so every shape ever
written must keep decoding:

    cartItems = '[{...}, ...]'                        original, unversioned
    cartItems = '[...]', cartItemsVersion = '1'       current, fits one value
    cartItems_0..n, cartItemsChunks = 'n', version    current, split

Note: metadata values are capped at 500 characters by the processor.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

CART_KEY = "cartItems"
VERSION_KEY = "cartItemsVersion"
CHUNKS_KEY = "cartItemsChunks"
CURRENT_VERSION = "1"

METADATA_VALUE_LIMIT = 500
METADATA_KEY_LIMIT = 50

RESERVED_KEYS = frozenset({CART_KEY, VERSION_KEY, CHUNKS_KEY})


class PayloadError(ValueError):
    """Cart payload is absent, malformed, or from an unknown schema version."""


@dataclass(frozen=True, slots=True)
class PayloadItem:
    product_id: str
    quantity: int
    unit_price: int
    variant_id: str | None = None
    price_id: str | None = None
    product_name: str | None = None
    variant_name: str | None = None

    @property
    def total_price(self) -> int:
        return self.unit_price * self.quantity


# ═══════════════════════════════════════════════════════════════════════════════
# Wire model
# ═══════════════════════════════════════════════════════════════════════════════

class _WireItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: str = Field(alias="productId", min_length=1)
    variant_id: str | None = Field(default=None, alias="variantId")
    price_id: str | None = Field(default=None, alias="stripePriceId")
    quantity: int = Field(gt=0)
    unit_price: int = Field(alias="unitPrice", ge=0)
    product_name: str | None = Field(default=None, alias="productName")
    variant_name: str | None = Field(default=None, alias="variantName")

    @classmethod
    def from_domain(cls, item: PayloadItem) -> _WireItem:
        return cls(
            product_id=item.product_id,
            variant_id=item.variant_id,
            price_id=item.price_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            product_name=item.product_name,
            variant_name=item.variant_name,
        )

    def to_domain(self) -> PayloadItem:
        return PayloadItem(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            variant_id=self.variant_id,
            price_id=self.price_id,
            product_name=self.product_name,
            variant_name=self.variant_name,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Encode
# ═══════════════════════════════════════════════════════════════════════════════

def encode_cart(items: Sequence[PayloadItem]) -> dict[str, str]:
    """Serialize items into metadata entries, splitting across keys if needed."""
    if not items:
        raise PayloadError("Cart payload must contain at least one item")

    raw = json.dumps(
        [_WireItem.from_domain(i).model_dump(by_alias=True, exclude_none=True) for i in items],
        separators=(",", ":"),
    )

    if len(raw) <= METADATA_VALUE_LIMIT:
        return {CART_KEY: raw, VERSION_KEY: CURRENT_VERSION}

    chunks = [raw[i:i + METADATA_VALUE_LIMIT] for i in range(0, len(raw), METADATA_VALUE_LIMIT)]
    # Processor also caps the number of metadata keys; leave room for caller keys
    if len(chunks) > METADATA_KEY_LIMIT - 10:
        raise PayloadError(f"Cart too large for session metadata ({len(raw)} characters)")

    out = {f"{CART_KEY}_{n}": chunk for n, chunk in enumerate(chunks)}
    out[CHUNKS_KEY] = str(len(chunks))
    out[VERSION_KEY] = CURRENT_VERSION
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# Decode
# ═══════════════════════════════════════════════════════════════════════════════

def _joined(metadata: Mapping[str, str]) -> str:
    if CHUNKS_KEY not in metadata:
        raw = metadata.get(CART_KEY)
        if not raw:
            raise PayloadError("No cart items in session metadata")
        return raw

    try:
        count = int(metadata[CHUNKS_KEY])
    except ValueError:
        raise PayloadError(f"Bad {CHUNKS_KEY}: {metadata[CHUNKS_KEY]!r}") from None

    if count <= 0:
        raise PayloadError(f"Bad {CHUNKS_KEY}: {count}")

    parts: list[str] = []
    for n in range(count):
        part = metadata.get(f"{CART_KEY}_{n}")
        if part is None:
            raise PayloadError(f"Missing cart payload chunk {n} of {count}")
        parts.append(part)
    return "".join(parts)


def decode_cart(metadata: Mapping[str, str] | None) -> list[PayloadItem]:
    """
    Recover cart items from session metadata.

    Raises PayloadError for anything that is not a known, well-formed shape.
    """
    if not metadata:
        raise PayloadError("Session has no metadata")

    version = metadata.get(VERSION_KEY)
    if version is not None and version != CURRENT_VERSION:
        raise PayloadError(f"Unknown cart payload version: {version!r}")

    raw = _joined(metadata)

    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as e:
        raise PayloadError(f"Cart payload is not valid JSON: {e.msg}") from e

    if not isinstance(data, list) or not data:
        raise PayloadError("Cart payload must be a non-empty JSON array")

    items: list[PayloadItem] = []
    for n, entry in enumerate(data):
        try:
            items.append(_WireItem.model_validate(entry).to_domain())
        except ValidationError as e:
            raise PayloadError(f"Cart payload item {n} is invalid: {e.errors(include_url=False)}") from e
    return items


__all__ = (
    "CART_KEY",
    "VERSION_KEY",
    "CHUNKS_KEY",
    "CURRENT_VERSION",
    "METADATA_VALUE_LIMIT",
    "RESERVED_KEYS",
    "PayloadError",
    "PayloadItem",
    "encode_cart",
    "decode_cart",
)
