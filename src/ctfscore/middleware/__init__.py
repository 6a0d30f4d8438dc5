"""HTTP middleware stack.

Starlette runs middleware in reverse-add order, so the stack below reads
inside-out: rate limiter, then request context, then CORS as the outermost
layer so that 429 responses still carry CORS headers.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ctfscore.config import Settings
from ctfscore.middleware.error_handler import setup_error_handlers
from ctfscore.middleware.logging import setup_logging
from ctfscore.middleware.rate_limit import RateLimitMiddleware
from ctfscore.middleware.request_context import REQUEST_ID_HEADER, RequestContextMiddleware

EXPOSED_HEADERS = [REQUEST_ID_HEADER, "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging and error handlers, then install the middleware stack."""
    setup_logging(settings)
    setup_error_handlers(app)

    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=EXPOSED_HEADERS,
    )
