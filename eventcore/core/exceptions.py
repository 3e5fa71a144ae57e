# eventcore/core/exceptions.py
# =============================================================================
# File: eventcore/core/exceptions.py
# Description: Exception handlers for FastAPI application
# =============================================================================

import os
import logging
from fastapi import Request
from eventcore.core.fastapi_types import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette import status
from starlette.responses import JSONResponse

from eventcore.common.exceptions.exceptions import (
    AggregateNotFound,
    AggregatePersistenceFailure,
    DomainError,
    EventCoreError,
    EventImmutable,
    LockTimeout,
)

logger = logging.getLogger("eventcore.exceptions")

# Most specific class first
EVENTCORE_STATUS_CODES = (
    (AggregateNotFound, status.HTTP_404_NOT_FOUND),
    (AggregatePersistenceFailure, 422),
    (LockTimeout, status.HTTP_409_CONFLICT),
    (EventImmutable, status.HTTP_409_CONFLICT),
    (DomainError, status.HTTP_409_CONFLICT),
)


def status_code_for(exc: EventCoreError) -> int:
    for exc_type, status_code in EVENTCORE_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""

    app.add_exception_handler(EventCoreError, eventcore_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")


async def eventcore_exception_handler(request: Request, exc: EventCoreError) -> JSONResponse:
    """Handle errors raised by the apply engine and domain events"""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on path {request.url.path}: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{type(exc).__name__} on path {request.url.path}: {exc.message}")

    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors"""
    logger.warning(f"Validation error on path {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        error_dict = {
            "loc": error["loc"],
            "msg": error["msg"],
            "type": error["type"],
        }

        if "ctx" in error:
            error_dict["ctx"] = {
                key: str(value) if isinstance(value, Exception) else value
                for key, value in error["ctx"].items()
            }

        errors.append(error_dict)

    return JSONResponse(
        status_code=422,
        content={"detail": errors},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general unhandled exceptions"""
    logger.error(f"Unhandled exception on path {request.url.path}: {str(exc)}", exc_info=True)

    if os.getenv("ENVIRONMENT", "development") == "production":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "An internal server error occurred."}
        )
    else:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc), "error": type(exc).__name__}
        )
