"""
@file middleware.py
@brief Request middleware: database error translation and request logging

@details
Reference data lookups go through PostGIS; when the database drops mid
request the error is turned into a 503 maintenance response instead of a
bare 500. Every request is logged with its status and duration.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DatabaseError, OperationalError
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class DatabaseErrorMiddleware(BaseHTTPMiddleware):
    """
    @brief Translate unhandled database errors into 503 responses
    """

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except (OperationalError, DatabaseError) as e:
            logger.error(f"Database error handling {request.method} {request.url.path}: {e}")
            return JSONResponse(
                status_code=503,
                content={
                    "error": "Service unavailable",
                    "message": "Database connection failed. System is in maintenance mode.",
                    "status": "unavailable"
                }
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} → {response.status_code} ({elapsed_ms:.1f} ms)")
        return response
