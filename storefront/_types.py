"""
Core types for storefront.

Re-exports from kungfu + shared value types.
"""

from __future__ import annotations

from dataclasses import dataclass

# Re-export from kungfu
from kungfu import Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Pagination
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Page:
    """Offset pagination for listing queries."""

    limit: int = 50
    offset: int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Ok",
    "Error",
    "LazyCoroResult",
    "Page",
)
