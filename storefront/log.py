"""
Logging setup.

Modules log through ``logging.getLogger(__name__)`` and attach structured
context with ``extra={"ctx": {...}}``; the formatter renders it as
``key=value`` pairs after the message.
"""

from __future__ import annotations

import logging
from typing import Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ctx: dict[str, Any] | None = getattr(record, "ctx", None)
        if ctx:
            pairs = " ".join(f"{k}={v!r}" for k, v in ctx.items())
            line = f"{line} | {pairs}"
        return line


def ctx(**fields: Any) -> dict[str, Any]:
    """Build the ``extra`` mapping for a log call."""
    return {"ctx": {k: v for k, v in fields.items() if v is not None}}


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once per process."""
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # SQL echo stays off unless asked for explicitly
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


__all__ = ("LOG_FORMAT", "ContextFormatter", "ctx", "setup_logging")
