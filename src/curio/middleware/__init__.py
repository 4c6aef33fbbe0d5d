"""Middleware registration."""

from fastapi import FastAPI

from curio.config import Settings
from curio.middleware.cors import setup_cors
from curio.middleware.error_handler import setup_error_handlers
from curio.middleware.logging import setup_logging
from curio.middleware.rate_limit import RateLimitMiddleware
from curio.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs the last added outermost, so CORS goes last."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
