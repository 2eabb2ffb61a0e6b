"""
Error taxonomy.

Every public operation returns ``Result[T, ShopError]``. Internally a
``ShopError`` may be raised to abort a transaction; it is turned back into
``Error(...)`` at the operation boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Error classes exposed to callers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    CONFLICT = "CONFLICT"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ShopError(Exception):
    """
    Domain error.

    Note: reason is the fine-grained tag (``checkout_session_failed``,
    ``malformed_payload``, ``oversold``...). code is what callers branch on.
    retriable tells the webhook caller whether redelivery can help.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        reason: str | None = None,
        retriable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.reason = reason
        self.retriable = retriable
        self.details = details

    def __repr__(self) -> str:
        return f"ShopError({self.code.value}, {self.message!r}, reason={self.reason!r})"


class Errors:
    @staticmethod
    def validation(msg: str, *, reason: str | None = None, details: dict[str, Any] | None = None) -> ShopError:
        return ShopError(ErrorCode.VALIDATION_ERROR, msg, reason=reason, details=details)

    @staticmethod
    def not_found(entity: str, ident: str) -> ShopError:
        return ShopError(ErrorCode.NOT_FOUND, f"{entity} not found", details={"id": ident})

    @staticmethod
    def bad_request(msg: str, *, reason: str | None = None, details: dict[str, Any] | None = None) -> ShopError:
        return ShopError(ErrorCode.BAD_REQUEST, msg, reason=reason, details=details)

    @staticmethod
    def conflict(msg: str, *, reason: str | None = None, details: dict[str, Any] | None = None) -> ShopError:
        return ShopError(ErrorCode.CONFLICT, msg, reason=reason, details=details)

    @staticmethod
    def external(msg: str, *, reason: str | None = None) -> ShopError:
        return ShopError(ErrorCode.EXTERNAL_SERVICE_ERROR, msg, reason=reason)

    @staticmethod
    def internal(msg: str, *, retriable: bool = True) -> ShopError:
        return ShopError(ErrorCode.INTERNAL_ERROR, msg, retriable=retriable)


__all__ = ("ErrorCode", "ShopError", "Errors")
