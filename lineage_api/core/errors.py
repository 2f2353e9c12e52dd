from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TraceStoreError(RuntimeError):
    """The production database could not answer a traceability lookup.

    Raised for connectivity failures, statement timeouts and rejected queries.
    Distinct from a serial having no production record, which is reported as
    absence rather than an error.
    """

    def __init__(self, message: str, *, serial_number: str | None = None) -> None:
        super().__init__(message)
        self.serial_number = serial_number


def _error_body(code: str, message: str, request_id: str | None) -> dict:
    return {"error": {"code": code, "message": message, "request_id": request_id}}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=422,
            content=_error_body("validation_error", "Invalid request parameters.", request_id),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("http_error", str(exc.detail), request_id),
            headers=exc.headers,
        )

    @app.exception_handler(TraceStoreError)
    async def trace_store_exception_handler(request: Request, exc: TraceStoreError):
        request_id = getattr(request.state, "request_id", None)
        logger.warning(
            "Traceability lookup failed for serial=%s request_id=%s: %s",
            exc.serial_number,
            request_id,
            exc.__cause__ or exc,
        )
        return JSONResponse(
            status_code=503,
            content=_error_body(
                "trace_store_unavailable",
                "Could not load traceability data. Retry the lookup.",
                request_id,
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.exception("Unhandled server error: %s", exc)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "Unexpected server error. Contact support with request_id.",
                request_id,
            ),
        )
