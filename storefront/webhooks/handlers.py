"""Stripe webhook HTTP handler.

Flow per delivery:
1. Reject with 400 when the Stripe-Signature header is missing
2. Verify the signature over the raw body (400 on mismatch)
3. Parse the event; anything but checkout.session.completed is acknowledged
4. Skip events already processed (Redis fast path)
5. Apply fulfillment (atomic in the store) and acknowledge with 200

Any exception while parsing or touching the store answers 500 with the error
message, so Stripe redelivers; redelivery is harmless because fulfillment is
idempotent per session.
"""

from __future__ import annotations

import json
import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from storefront.errors import ConfigurationError
from storefront.webhooks.fulfillment import apply_completed_session, parse_completed_session
from storefront.webhooks.verification import SIGNATURE_HEADER, verify_stripe

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": (
        "Content-Type, Authorization, X-Client-Info, Apikey, stripe-signature"
    ),
}


def _respond(content: dict, status_code: int) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=_CORS_HEADERS)


def _log_webhook(event_type: str, event_id: str, status: str) -> None:
    """Audit log for webhook activity."""
    logger.info(
        "WEBHOOK_AUDIT provider=stripe event=%s id=%s status=%s",
        event_type,
        event_id,
        status,
    )


@router.options("/webhooks/stripe")
async def stripe_webhook_preflight() -> Response:
    return Response(status_code=200, headers=_CORS_HEADERS)


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request) -> JSONResponse:
    """Receive Stripe webhooks (signature-verified, idempotent)."""
    start = time.time()
    settings = request.app.state.settings
    store = request.app.state.store
    deduplicator = request.app.state.deduplicator

    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        _log_webhook("unknown", "unknown", "missing_signature")
        return _respond({"error": "No signature provided"}, 400)

    body = await request.body()

    try:
        if not settings.stripe_webhook_secret:
            raise ConfigurationError("Stripe webhook secret is not configured")
        if not verify_stripe(
            body,
            signature,
            settings.stripe_webhook_secret,
            tolerance=settings.webhook_tolerance_seconds,
        ):
            _log_webhook("unknown", "unknown", "signature_failed")
            return _respond({"error": "Invalid signature"}, 400)

        event = json.loads(body)
        event_type = str(event.get("type", "unknown"))
        event_id = str(event.get("id") or "")

        session = parse_completed_session(event)
        if session is None:
            _log_webhook(event_type, event_id, "ignored")
            return _respond({"received": True}, 200)

        if await run_in_threadpool(deduplicator.is_duplicate, event_id):
            _log_webhook(event_type, event_id, "duplicate")
            return _respond({"received": True}, 200)

        outcome = await run_in_threadpool(apply_completed_session, store, session)
        await run_in_threadpool(deduplicator.mark_seen, event_id)
        _log_webhook(event_type, event_id, outcome.value if outcome else "no_product")
    except Exception as e:
        logger.exception("Webhook error")
        return _respond({"error": str(e)}, 500)

    elapsed_ms = (time.time() - start) * 1000
    logger.debug("Webhook processed in %.1fms", elapsed_ms)
    return _respond({"received": True}, 200)
