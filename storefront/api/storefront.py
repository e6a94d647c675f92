"""Public storefront routes: catalog, carousel, appearance, order status."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from storefront import catalog
from storefront.api.deps import get_store
from storefront.errors import NotFoundError
from storefront.models import CarouselOffer, Product, StoreSettings
from storefront.store import Store

router = APIRouter(prefix="/api", tags=["storefront"])


@router.get("/products", response_model=list[Product])
def list_products(
    category: str | None = Query(default=None, max_length=100),
    search: str | None = Query(default=None, max_length=200),
    in_stock: bool = False,
    store: Store = Depends(get_store),
):
    return catalog.list_catalog(store, category=category, search=search, in_stock_only=in_stock)


@router.get("/products/{product_id}", response_model=Product)
def get_product(product_id: UUID, store: Store = Depends(get_store)):
    product = store.get_product(product_id)
    if product is None or not product.active:
        raise NotFoundError("Product not found")
    return product


@router.get("/categories", response_model=list[str])
def list_categories(store: Store = Depends(get_store)):
    return catalog.list_categories(store)


@router.get("/offers", response_model=list[CarouselOffer])
def list_offers(store: Store = Depends(get_store)):
    return catalog.carousel_offers(store)


@router.get("/settings", response_model=StoreSettings)
def get_store_settings(store: Store = Depends(get_store)):
    return store.get_store_settings()


@router.get("/orders/session/{session_id}")
def order_status(session_id: str, store: Store = Depends(get_store)):
    """Order status for the success page; ``pending`` until the webhook lands."""
    order = store.get_order_by_session(session_id)
    return {
        "session_id": session_id,
        "status": order.status if order else "pending",
        "order_id": str(order.id) if order else None,
    }
