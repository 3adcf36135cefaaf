from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.common.exceptions import (
    CurrencyMismatch,
    InsufficientStock,
    InvalidState,
    LedgerError,
    NotFound,
)
from app.logger_config import logger


# Most specific first: AlreadyConfirmed is matched through InvalidState.
STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidState, status.HTTP_409_CONFLICT),
    (InsufficientStock, status.HTTP_409_CONFLICT),
    (CurrencyMismatch, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def _error_body(message: str, status_code: int, **extra) -> dict:
    return {"success": False, "message": message, "status_code": status_code, **extra}


def status_for(error: LedgerError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def register_error_handlers(app: FastAPI):
    @app.exception_handler(LedgerError)
    async def handle_ledger_error(request: Request, e: LedgerError):
        status_code = status_for(e)
        logger.warning(f"{request.method} {request.url.path} rejected ({status_code}): {e.message}")

        extra = {"error": type(e).__name__}
        if isinstance(e, InsufficientStock):
            extra["product_id"] = e.product_id
        return JSONResponse(status_code=status_code, content=_error_body(e.message, status_code, **extra))

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, e: ValueError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(str(e), status.HTTP_400_BAD_REQUEST),
        )

    @app.exception_handler(Exception)
    async def handle_exception(request: Request, e: Exception):
        # Log the exception with traceback
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal Server Error", status.HTTP_500_INTERNAL_SERVER_ERROR, details=str(e)),
        )
