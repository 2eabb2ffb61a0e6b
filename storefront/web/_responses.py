"""
Response envelope.

    success: {"success": true,  "data": ..., "meta": {"timestamp": ...}}
    failure: {"success": false, "error": {"code", "message", "details"?, "timestamp"}}
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.errors import ErrorCode, ShopError

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}


def _now() -> str:
    return datetime.now(UTC).isoformat()


def success(data: Any, status: int = 200) -> JSONResponse:
    return JSONResponse(
        {"success": True, "data": jsonable_encoder(data), "meta": {"timestamp": _now()}},
        status_code=status,
    )


def failure(
    code: ErrorCode,
    message: str,
    status: int | None = None,
    details: Any = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code.value, "message": message, "timestamp": _now()}
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return JSONResponse(
        {"success": False, "error": error},
        status_code=status or STATUS_BY_CODE[code],
    )


def from_error(e: ShopError, status: int | None = None) -> JSONResponse:
    return failure(e.code, e.message, status, e.details)


# ═══════════════════════════════════════════════════════════════════════════════
# Exception handlers
# ═══════════════════════════════════════════════════════════════════════════════

async def on_request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
    issues = [
        {
            "path": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg", ""),
            "code": err.get("type", ""),
        }
        for err in exc.errors()
    ]
    return failure(ErrorCode.VALIDATION_ERROR, "Validation failed", details={"issues": issues})


async def on_shop_error(_request: Request, exc: ShopError) -> JSONResponse:
    return from_error(exc)


__all__ = (
    "STATUS_BY_CODE",
    "success",
    "failure",
    "from_error",
    "on_request_validation",
    "on_shop_error",
)
