"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from storefront import __version__
from storefront.api import admin as admin_routes
from storefront.api import checkout as checkout_routes
from storefront.api import storefront as storefront_routes
from storefront.api.middleware import install_middleware
from storefront.config import Settings, get_settings
from storefront.errors import AuthenticationError, StorefrontError
from storefront.store import Store, create_store
from storefront.webhooks import handlers as webhook_handlers
from storefront.webhooks.idempotency import EventDeduplicator

logger = logging.getLogger(__name__)


async def _storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=headers)


def _describe_validation_error(exc: RequestValidationError) -> str:
    """First error as ``field: message`` (``body`` when the body itself is bad)."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        # loc carries the byte offset of the parse failure
        return f"body: {first.get('msg', 'invalid JSON')}"
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc) or "body"
    return f"{field}: {first.get('msg', 'invalid value')}"


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _describe_validation_error(exc)
    logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(
        {"error": message, "details": jsonable_encoder(exc.errors())},
        status_code=422,
    )


def create_app(
    settings: Settings | None = None,
    store: Store | None = None,
    deduplicator: EventDeduplicator | None = None,
) -> FastAPI:
    """Build the storefront app.

    Services default to the ones described by ``settings``; tests pass their
    own store and deduplicator.
    """
    settings = settings or get_settings()
    store = store or create_store(settings)
    deduplicator = deduplicator or EventDeduplicator(settings.redis_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(store.init_schema)
        yield

    app = FastAPI(title="Storefront", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.deduplicator = deduplicator

    limiter = install_middleware(app, settings)
    app.add_exception_handler(StorefrontError, _storefront_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    app.include_router(storefront_routes.router)
    app.include_router(checkout_routes.build_router(limiter))
    app.include_router(admin_routes.router)
    app.include_router(webhook_handlers.router)

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok", "version": __version__}

    return app
