"""Middleware stack for the quest API.

Order, outermost first: CORS, request id, rate limit, then the route. CORS
wraps everything so 429 and error responses still carry the CORS headers
the web client needs; the request id is bound before the rate limiter logs.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from questhunt.config import Settings
from questhunt.middleware.error_handler import setup_error_handlers
from questhunt.middleware.logging import setup_logging
from questhunt.middleware.rate_limit import RateLimitMiddleware
from questhunt.middleware.request_id import RequestIdMiddleware

# Methods the quest, hunt and leaderboard routers expose.
CORS_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
CORS_REQUEST_HEADERS = ["Authorization", "Content-Type", "X-Request-Id"]
CORS_EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    setup_logging(settings)
    setup_error_handlers(app)
    # Starlette wraps in reverse-add order: the last one added is outermost.
    if settings.rate_limit_requests > 0:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_REQUEST_HEADERS,
        expose_headers=CORS_EXPOSED_HEADERS,
    )
