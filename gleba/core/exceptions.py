"""
@file exceptions.py
@brief Error types and centralized exception handlers
@details
Defines the error hierarchy raised by the geometry layer and provides
consistent JSON error responses for HTTP exceptions, validation errors,
geometry engine failures and unexpected server errors.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from fastapi import Request

logger = logging.getLogger(__name__)


class GlebaError(Exception):
    """Base class for errors raised by the gleba package."""


class GeometryEngineError(GlebaError):
    """
    @brief The underlying geometry backend failed

    @details
    Raised for malformed geometries, unsupported operations or unknown units.
    Services catch it and fall back to safe defaults; it never reaches the
    caller of a registry operation.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


async def http_exception_handler(request: Request, exc: HTTPException):
    """
    @brief Custom HTTP exception handler
    @details Provides consistent error responses across the API.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": str(exc.detail),
            "status_code": exc.status_code,
            "message": f"Request failed with HTTP {exc.status_code}"
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    @brief Custom validation error handler
    @details Provides user-friendly validation error messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation error",
            "details": jsonable_encoder(exc.errors()),
            "message": "Request validation failed. Check parameters and try again."
        }
    )


async def geometry_exception_handler(request: Request, exc: GeometryEngineError):
    """
    @brief Geometry engine error handler
    @details Malformed geometries are a client problem, reported as 422.
    """
    logger.warning(f"Geometry error handling {request.url}: {exc}")
    return JSONResponse(
        status_code=422,
        content={
            "error": "Geometry error",
            "operation": exc.operation,
            "message": str(exc)
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """
    @brief Catch-all exception handler
    @details
    Handles unexpected exceptions gracefully.
    Logs full error for debugging while returning safe message to client.
    """
    logger.exception(f"Unexpected error handling {request.url}: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
            "status": "error"
        }
    )
