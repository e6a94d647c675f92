"""Checkout route: opens a Stripe Checkout session for one product."""

import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter

from storefront.api.deps import get_settings, get_store
from storefront.api.middleware import CHECKOUT_RATE_LIMIT
from storefront.checkout import create_checkout_session
from storefront.config import Settings
from storefront.errors import ConflictError, NotFoundError
from storefront.models import CheckoutRequest, CheckoutResponse
from storefront.store import Store

logger = logging.getLogger(__name__)


def create_checkout(
    request: Request,
    payload: CheckoutRequest,
    settings: Settings = Depends(get_settings),
    store: Store = Depends(get_store),
):
    """Create a hosted payment session and return its redirect URL.

    The catalog's name and price are charged; the client-sent values are
    only checked for drift.
    """
    product = store.get_product(payload.product_id)
    if product is None or not product.active:
        raise NotFoundError("Product not found")
    if not product.in_stock:
        raise ConflictError("Product is out of stock")
    if payload.price != product.price:
        logger.warning(
            "Checkout price mismatch for product %s: client=%s catalog=%s",
            product.id,
            payload.price,
            product.price,
        )

    url = create_checkout_session(settings, product.id, product.name, product.price)
    return CheckoutResponse(url=url)


def build_router(limiter: Limiter) -> APIRouter:
    """Checkout router with the endpoint rate limited by the app's limiter."""
    router = APIRouter(prefix="/api", tags=["checkout"])
    router.add_api_route(
        "/create-checkout",
        limiter.limit(CHECKOUT_RATE_LIMIT)(create_checkout),
        methods=["POST"],
        response_model=CheckoutResponse,
    )
    return router
