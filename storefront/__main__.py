"""Run the storefront HTTP server: ``python -m storefront`` or ``storefront``."""

from __future__ import annotations

import logging
import os

import uvicorn

from storefront.config import Settings
from storefront.log import setup_logging

logger = logging.getLogger("storefront")


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    if not settings.stripe_secret_key:
        logger.error("STRIPE_SECRET_KEY is not set, checkout and refunds will fail")
    if not settings.stripe_webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not set, every webhook will be rejected")

    from storefront.web import create_app

    uvicorn.run(
        create_app(settings),
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
