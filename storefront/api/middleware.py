"""HTTP middleware: CORS and rate limiting.

Middleware ordering (outermost first):
1. CORS -- answers OPTIONS preflight before anything else
2. Rate limiting -- per-client limits on checkout session creation
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from storefront.config import Settings

logger = logging.getLogger(__name__)

# Each session creation is a billable upstream call
CHECKOUT_RATE_LIMIT = "20/minute"


def create_limiter(settings: Settings) -> Limiter:
    """One limiter (and one in-memory counter store) per app."""
    return Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = getattr(exc, "retry_after", 60)
    logger.warning("Rate limit exceeded for %s on %s", get_remote_address(request), request.url.path)
    return JSONResponse(
        {"error": "Rate limit exceeded", "retry_after": retry_after},
        status_code=429,
        headers={"Retry-After": str(retry_after)},
    )


def install_middleware(app: FastAPI, settings: Settings) -> Limiter:
    """Install CORS and rate limiting on the app; returns the app's limiter.

    Middleware is added in reverse order (last added = outermost = runs first).
    """
    limiter = create_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    return limiter
