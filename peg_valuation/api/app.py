"""API application factory."""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from peg_valuation import __version__
from peg_valuation.api.exceptions import register_exception_handlers
from peg_valuation.api.routes import router

logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    """Create the FastAPI application with middleware, handlers, and routes."""
    app = FastAPI(
        title="PEG Stock Valuation Microservice",
        version=__version__,
        description="Fair value estimates from a PEG-based valuation model",
    )
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("http_request", method=request.method, path=request.url.path)
        return await call_next(request)

    register_exception_handlers(app)
    app.include_router(router)
    return app
