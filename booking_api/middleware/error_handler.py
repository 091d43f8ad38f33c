"""Exception handlers rendering JSON error bodies."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from booking_api.core.exceptions import AppException, ValidationException

logger = structlog.get_logger(__name__)


def _error_body(request: Request, error: str, message: str) -> dict:
    return {"error": error, "message": message, "path": request.url.path}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Render application exceptions with their status code.

    Validation failures also carry every offending field under ``details``.
    """
    content = _error_body(request, exc.__class__.__name__, exc.message)
    if isinstance(exc, ValidationException):
        content["details"] = exc.errors

    if exc.status_code >= 500:
        logger.error("app_error", error=exc.__class__.__name__, message=exc.message)
    else:
        logger.info(
            "request_rejected",
            error=exc.__class__.__name__,
            status_code=exc.status_code,
            path=request.url.path,
        )
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render framework HTTP errors (404 routes, 405 methods)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "HTTPException", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Render request schema errors as field/message pairs."""
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part not in ("body", "query")),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    content = _error_body(request, "ValidationException", "Request validation failed")
    content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and hide their details from the client."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "InternalServerError", "An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach every handler to the application."""
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)
