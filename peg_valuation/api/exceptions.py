"""Request-rejection errors and the handlers that render them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /api/docs",
    "GET /api/valuation",
    "GET /api/valuation/batch",
]


class BadRequestError(Exception):
    """Malformed or incomplete request; rendered as HTTP 400."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": "Bad Request", "message": self.message, **self.details}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def bad_request_handler(request: Request, exc: BadRequestError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, reason=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "Not Found",
                "message": f"Endpoint {request.method} {request.url.path} not found",
                "availableEndpoints": AVAILABLE_ENDPOINTS,
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "message": str(exc.detail)},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": str(exc),
            "timestamp": _now_iso(),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BadRequestError, bad_request_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
