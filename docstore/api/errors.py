"""Exception-to-response mapping for the HTTP API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from docstore.exceptions import (
    ConflictError,
    DocumentStoreError,
    InternalServerError,
    NotFoundError,
    StorageUnavailableError,
    UpstreamProcessingError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

STORE_ERROR_STATUS: dict[type[DocumentStoreError], int] = {
    NotFoundError: 404,
    ConflictError: 409,
    UpstreamProcessingError: 502,
    StorageUnavailableError: 503,
}

# Messages of these never reach the client
OPAQUE_ERRORS: dict[type[Exception], tuple[int, str]] = {
    InternalServerError: (500, "Internal server error"),
    OperationalError: (503, "Database temporarily unavailable"),
    OSError: (500, "Storage operation failed"),
}


def _where(request: Request) -> str:
    return f"{request.method} {request.url.path}"


def store_error_status(exc: DocumentStoreError) -> int:
    """HTTP status for a sync engine failure; unknown subclasses map to 500."""
    for cls in type(exc).__mro__:
        if cls in STORE_ERROR_STATUS:
            return STORE_ERROR_STATUS[cls]
    return 500


async def _store_error(request: Request, exc: DocumentStoreError) -> JSONResponse:
    status_code = store_error_status(exc)
    log = logger.warning if status_code < 500 else logger.error
    log("%s in %s: %s", type(exc).__name__, _where(request), exc)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, **exc.context()})


async def _request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": str(err["loc"][-1]) if err.get("loc") else "unknown",
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    logger.warning("Rejected request body in %s: %s", _where(request), errors)
    return JSONResponse(status_code=422, content={"detail": errors})


async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
    logger.warning("Invalid input in %s: %s", _where(request), exc)
    return JSONResponse(status_code=422, content={"detail": str(exc) or "Invalid value"})


async def _opaque_error(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, (ConnectionError, TimeoutError)):
        raise exc
    status_code, detail = next(
        response for cls, response in OPAQUE_ERRORS.items() if isinstance(exc, cls)
    )
    logger.error("%s in %s: %s", type(exc).__name__, _where(request), exc, exc_info=exc)
    return JSONResponse(status_code=status_code, content={"detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the global handlers on ``app``."""
    app.add_exception_handler(DocumentStoreError, _store_error)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        _request_validation_error,  # type: ignore[arg-type]
    )
    app.add_exception_handler(ValueError, _value_error)  # type: ignore[arg-type]
    for exc_cls in OPAQUE_ERRORS:
        app.add_exception_handler(exc_cls, _opaque_error)
