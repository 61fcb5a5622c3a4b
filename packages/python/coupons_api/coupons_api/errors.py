"""Translate ledger error codes into HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from coupon_ledger import ErrorCode, LedgerError

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.MISSING_FIELDS: 400,
    ErrorCode.INSUFFICIENT_PAYMENT: 400,
    ErrorCode.DUPLICATE_ORDER: 409,
    ErrorCode.ALREADY_ISSUED_TODAY: 409,
    ErrorCode.INSUFFICIENT_BALANCE: 409,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.STORE_UNAVAILABLE: 503,
    ErrorCode.STORE_FAILURE: 500,
}


def error_body(exc: LedgerError) -> dict[str, str]:
    return {"code": exc.code.value, "message": exc.message}


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status = STATUS_BY_CODE.get(exc.code, 500)
    logger.debug(
        "{method} {path} -> {status} {code}",
        method=request.method,
        path=request.url.path,
        status=status,
        code=exc.code.value,
    )
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=status, content=error_body(exc), headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
