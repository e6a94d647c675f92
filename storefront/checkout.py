"""Checkout session initiator: Stripe Checkout (hosted payment page).

Builds a single-line-item payment session tagged with the product id, so the
fulfillment webhook can find the product once payment completes. No retries:
failures are reported straight back to the caller.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable
from uuid import UUID

import stripe

from storefront.config import Settings
from storefront.errors import ConfigurationError, ProviderError, ValidationError

logger = logging.getLogger(__name__)

# Stripe substitutes the real session id into this placeholder
_SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def to_minor_units(price: Decimal) -> int:
    """Convert a decimal price to integer cents, rounding half up."""
    return int((Decimal(price) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def build_session_params(
    settings: Settings, product_id: UUID | str, product_name: str, price: Decimal
) -> dict[str, Any]:
    """Stripe ``checkout.sessions.create`` parameters for one unit of a product."""
    base = settings.base_url
    return {
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": settings.checkout_currency,
                    "product_data": {"name": product_name},
                    "unit_amount": to_minor_units(price),
                },
                "quantity": 1,
            }
        ],
        "mode": "payment",
        "success_url": f"{base}/success?session_id={_SESSION_ID_PLACEHOLDER}",
        "cancel_url": base,
        "metadata": {"productId": str(product_id)},
    }


def create_checkout_session(
    settings: Settings,
    product_id: UUID | str,
    product_name: str,
    price: Decimal,
    *,
    client_factory: Callable[..., Any] | None = None,
) -> str:
    """Open a hosted payment session and return its redirect URL.

    Raises:
        ValidationError: price is not positive (checked before any provider call)
        ConfigurationError: STRIPE_SECRET_KEY is not set
        ProviderError: Stripe rejected the session
    """
    if price is None or Decimal(price) <= 0:
        raise ValidationError("Price must be positive")
    if not settings.stripe_secret_key:
        logger.error("STRIPE_SECRET_KEY not set, cannot create checkout session")
        raise ConfigurationError("Stripe is not configured")

    params = build_session_params(settings, product_id, product_name, price)
    client = (client_factory or stripe.StripeClient)(api_key=settings.stripe_secret_key)
    try:
        session = client.checkout.sessions.create(params=params)
    except stripe.StripeError as e:
        message = e.user_message or str(e)
        logger.warning("Stripe rejected checkout session for product %s: %s", product_id, message)
        raise ProviderError(message) from e

    logger.info(
        "Checkout session %s created for product %s (%d %s)",
        session.id,
        product_id,
        params["line_items"][0]["price_data"]["unit_amount"],
        settings.checkout_currency,
    )
    return session.url
