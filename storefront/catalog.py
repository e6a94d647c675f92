"""Catalog service: storefront listing, offers carousel, back-office helpers."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from storefront.errors import NotFoundError
from storefront.models import (
    CarouselOffer,
    DashboardStats,
    MoveDirection,
    Offer,
    OfferIn,
    Product,
)
from storefront.store import Store

logger = logging.getLogger(__name__)

RECENT_ORDERS_WINDOW = timedelta(days=7)
LATEST_ORDERS_LIMIT = 5


def list_catalog(
    store: Store,
    *,
    category: str | None = None,
    search: str | None = None,
    in_stock_only: bool = False,
) -> list[Product]:
    """Active products, newest first, optionally filtered."""
    products = store.list_products(active_only=True)
    if category:
        wanted = category.casefold()
        products = [p for p in products if p.category.casefold() == wanted]
    if search:
        needle = search.strip().casefold()
        products = [
            p
            for p in products
            if needle in p.name.casefold() or needle in p.description.casefold()
        ]
    if in_stock_only:
        products = [p for p in products if p.in_stock]
    return products


def list_categories(store: Store) -> list[str]:
    return sorted({p.category for p in store.list_products(active_only=True) if p.category})


def carousel_offers(store: Store) -> list[CarouselOffer]:
    """Active offers in display order, each with its product if still on sale."""
    result = []
    for offer in store.list_offers(active_only=True):
        product = store.get_product(offer.product_id) if offer.product_id else None
        if product is not None and not product.active:
            product = None
        result.append(CarouselOffer(**offer.model_dump(), product=product))
    return result


def create_offer(store: Store, data: OfferIn) -> Offer:
    """Append a new offer at the end of the display order."""
    return store.create_offer(data, order_position=store.count_offers())


def move_offer(store: Store, offer_id: UUID, direction: MoveDirection) -> list[Offer]:
    """Swap an offer with its neighbour and renumber every offer 0..n-1.

    Moving the first offer up or the last one down leaves the order unchanged.
    Returns the offers in their new order.
    """
    offers = store.list_offers()
    index = next((i for i, o in enumerate(offers) if o.id == offer_id), None)
    if index is None:
        raise NotFoundError("Offer not found")

    target = index - 1 if direction is MoveDirection.UP else index + 1
    if target < 0 or target >= len(offers):
        return offers

    offers[index], offers[target] = offers[target], offers[index]
    positions = {offer.id: position for position, offer in enumerate(offers)}
    store.set_offer_positions(positions)
    logger.info("Offer %s moved %s to position %d", offer_id, direction.value, target)
    return [o.model_copy(update={"order_position": positions[o.id]}) for o in offers]


def dashboard(store: Store, *, low_stock_threshold: int = 5) -> DashboardStats:
    since = datetime.now(timezone.utc) - RECENT_ORDERS_WINDOW
    return DashboardStats(
        total_products=store.count_products(),
        low_stock_products=store.count_products(max_stock=low_stock_threshold),
        recent_orders=store.count_orders(since=since),
        active_offers=store.count_offers(active_only=True),
        latest_orders=store.list_orders(limit=LATEST_ORDERS_LIMIT),
    )
