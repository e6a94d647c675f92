"""Checkout fulfillment: turns a completed Stripe session into stock and order changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from storefront.models import FulfillmentOutcome
from storefront.store import Store

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"

_CENTS = Decimal("0.01")


@dataclass
class CompletedSession:
    """The fields of a completed checkout session that fulfillment needs."""

    session_id: str
    product_id: UUID | None
    total_amount: Decimal


def _parse_product_id(raw: Any) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        logger.warning("Ignoring checkout session with malformed productId %r", raw)
        return None


def parse_completed_session(event: dict[str, Any]) -> CompletedSession | None:
    """Extract the session from a ``checkout.session.completed`` event.

    Returns None for any other event type. Raises ValueError if a completed
    event has no session object or id.
    """
    if event.get("type") != CHECKOUT_COMPLETED:
        return None

    session = (event.get("data") or {}).get("object")
    if not isinstance(session, dict) or not session.get("id"):
        raise ValueError("checkout.session.completed event without a session")

    metadata = session.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    amount_total = int(session.get("amount_total") or 0)
    return CompletedSession(
        session_id=str(session["id"]),
        product_id=_parse_product_id(metadata.get("productId")),
        total_amount=(Decimal(amount_total) / 100).quantize(_CENTS),
    )


def apply_completed_session(store: Store, session: CompletedSession) -> FulfillmentOutcome | None:
    """Decrement stock by one and record the order, at most once per session.

    Returns None when the session carries no product reference. A missing or
    sold-out product is reported as an outcome, not raised: the customer has
    already paid and the provider must not keep redelivering.
    """
    if session.product_id is None:
        logger.info("Checkout session %s has no productId, nothing to fulfill", session.session_id)
        return None

    outcome = store.fulfill_order(session.session_id, session.product_id, session.total_amount)
    if outcome is FulfillmentOutcome.APPLIED:
        logger.info(
            "Order recorded for session %s (product %s, amount %s)",
            session.session_id,
            session.product_id,
            session.total_amount,
        )
    elif outcome is FulfillmentOutcome.DUPLICATE:
        logger.info("Session %s already fulfilled, skipping", session.session_id)
    else:
        # Paid but not fulfillable; needs manual follow-up (refund or restock)
        logger.warning(
            "Paid session %s not fulfilled: product %s is %s",
            session.session_id,
            session.product_id,
            outcome.value,
        )
    return outcome
