"""Back-office routes (bearer-token protected).

Products, offers (including display reordering), store appearance, orders
and the dashboard summary.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from storefront import catalog
from storefront.api.deps import get_settings, get_store, require_admin
from storefront.config import Settings
from storefront.errors import NotFoundError, ValidationError
from storefront.models import (
    DashboardStats,
    Offer,
    OfferIn,
    OfferMove,
    OfferUpdate,
    OrderSummary,
    Product,
    ProductIn,
    ProductUpdate,
    StoreSettings,
    StoreSettingsUpdate,
)
from storefront.store import Store

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


def _non_null(changes: dict[str, Any], nullable: frozenset[str] = frozenset()) -> dict[str, Any]:
    """Drop explicit nulls, except for columns that may legitimately be cleared."""
    return {k: v for k, v in changes.items() if v is not None or k in nullable}


def _check_linked_product(store: Store, product_id: UUID | None) -> None:
    if product_id is not None and store.get_product(product_id) is None:
        raise ValidationError("Linked product does not exist")


# ── Products ──────────────────────────────────────────────────────────────


@router.get("/products", response_model=list[Product])
def list_products(store: Store = Depends(get_store)):
    return store.list_products()


@router.post("/products", response_model=Product, status_code=201)
def create_product(payload: ProductIn, store: Store = Depends(get_store)):
    product = store.create_product(payload)
    logger.info("Product created: %s (%s)", product.id, product.name)
    return product


@router.get("/products/{product_id}", response_model=Product)
def get_product(product_id: UUID, store: Store = Depends(get_store)):
    product = store.get_product(product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


@router.patch("/products/{product_id}", response_model=Product)
def update_product(product_id: UUID, payload: ProductUpdate, store: Store = Depends(get_store)):
    changes = _non_null(payload.model_dump(exclude_unset=True))
    product = store.update_product(product_id, changes)
    if product is None:
        raise NotFoundError("Product not found")
    logger.info("Product updated: %s fields=%s", product_id, sorted(changes))
    return product


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: UUID, store: Store = Depends(get_store)):
    if not store.delete_product(product_id):
        raise NotFoundError("Product not found")
    logger.info("Product deleted: %s", product_id)
    return Response(status_code=204)


# ── Offers ────────────────────────────────────────────────────────────────


@router.get("/offers", response_model=list[Offer])
def list_offers(store: Store = Depends(get_store)):
    return store.list_offers()


@router.post("/offers", response_model=Offer, status_code=201)
def create_offer(payload: OfferIn, store: Store = Depends(get_store)):
    _check_linked_product(store, payload.product_id)
    return catalog.create_offer(store, payload)


@router.patch("/offers/{offer_id}", response_model=Offer)
def update_offer(offer_id: UUID, payload: OfferUpdate, store: Store = Depends(get_store)):
    changes = _non_null(payload.model_dump(exclude_unset=True), frozenset({"product_id"}))
    _check_linked_product(store, changes.get("product_id"))
    offer = store.update_offer(offer_id, changes)
    if offer is None:
        raise NotFoundError("Offer not found")
    return offer


@router.delete("/offers/{offer_id}", status_code=204)
def delete_offer(offer_id: UUID, store: Store = Depends(get_store)):
    if not store.delete_offer(offer_id):
        raise NotFoundError("Offer not found")
    return Response(status_code=204)


@router.post("/offers/{offer_id}/move", response_model=list[Offer])
def move_offer(offer_id: UUID, payload: OfferMove, store: Store = Depends(get_store)):
    return catalog.move_offer(store, offer_id, payload.direction)


# ── Settings, orders, dashboard ───────────────────────────────────────────


@router.get("/settings", response_model=StoreSettings)
def get_store_settings(store: Store = Depends(get_store)):
    return store.get_store_settings()


@router.put("/settings", response_model=StoreSettings)
def update_store_settings(payload: StoreSettingsUpdate, store: Store = Depends(get_store)):
    changes = _non_null(payload.model_dump(exclude_unset=True))
    return store.update_store_settings(changes)


@router.get("/orders", response_model=list[OrderSummary])
def list_orders(limit: int = Query(default=50, ge=1, le=500), store: Store = Depends(get_store)):
    return store.list_orders(limit=limit)


@router.get("/dashboard", response_model=DashboardStats)
def get_dashboard(
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    return catalog.dashboard(store, low_stock_threshold=settings.low_stock_threshold)
