"""Settings loaded from the environment (and a local ``.env`` when present)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str = "sqlite+aiosqlite:///./storefront.db"
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    public_base_url: str = "http://localhost:3000"
    currency: str = "usd"
    low_stock_threshold: int = 10
    checkout_expiry_hours: int = 24
    shipping_countries: tuple[str, ...] = ("US", "CA")
    log_level: str = "INFO"

    @property
    def success_url(self) -> str:
        return f"{self.public_base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def cancel_url(self) -> str:
        return f"{self.public_base_url}/checkout"

    def product_url(self, product_id: str) -> str:
        return f"{self.public_base_url}/products/{product_id}"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> Settings:
        if dotenv:
            load_dotenv()

        defaults = cls()
        countries = os.getenv("SHIPPING_COUNTRIES")
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
            public_base_url=os.getenv("PUBLIC_BASE_URL", defaults.public_base_url).rstrip("/"),
            currency=os.getenv("CURRENCY", defaults.currency).lower(),
            low_stock_threshold=int(os.getenv("LOW_STOCK_THRESHOLD", defaults.low_stock_threshold)),
            checkout_expiry_hours=int(os.getenv("CHECKOUT_EXPIRY_HOURS", defaults.checkout_expiry_hours)),
            shipping_countries=(
                tuple(c.strip().upper() for c in countries.split(",") if c.strip())
                if countries
                else defaults.shipping_countries
            ),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )


__all__ = ("Settings",)
