"""In-memory store.

Same contract as ``PostgresStore``; every operation runs under one lock so
fulfillment is atomic across threads. Foreign keys follow the database
semantics: deleting a product nulls ``product_id`` on offers and orders.
"""

from __future__ import annotations

import itertools
import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from storefront.models import (
    ORDER_STATUS_COMPLETED,
    FulfillmentOutcome,
    Offer,
    OfferIn,
    Order,
    OrderSummary,
    Product,
    ProductIn,
    StoreSettings,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore:
    """``Store`` kept in process memory."""

    def __init__(self):
        self._lock = threading.RLock()
        self._seq = itertools.count()
        self._products: dict[UUID, Product] = {}
        self._offers: dict[UUID, Offer] = {}
        self._orders: dict[str, Order] = {}  # stripe_session_id -> Order
        self._settings: StoreSettings | None = None
        # Insertion order breaks created_at ties
        self._order_of: dict[UUID, int] = {}

    def init_schema(self) -> None:
        return None

    def _stamp(self, key: UUID) -> None:
        self._order_of[key] = next(self._seq)

    # ── Products ──────────────────────────────────────────────────────────

    def list_products(self, *, active_only: bool = False) -> list[Product]:
        with self._lock:
            products = [p for p in self._products.values() if p.active or not active_only]
            return sorted(
                products,
                key=lambda p: (p.created_at, self._order_of[p.id]),
                reverse=True,
            )

    def get_product(self, product_id: UUID) -> Product | None:
        with self._lock:
            return self._products.get(product_id)

    def create_product(self, data: ProductIn) -> Product:
        now = _now()
        product = Product(id=uuid.uuid4(), created_at=now, updated_at=now, **data.model_dump())
        with self._lock:
            self._products[product.id] = product
            self._stamp(product.id)
        return product

    def update_product(self, product_id: UUID, changes: dict[str, Any]) -> Product | None:
        with self._lock:
            current = self._products.get(product_id)
            if current is None:
                return None
            if not changes:
                return current
            updated = current.model_copy(update={**changes, "updated_at": _now()})
            self._products[product_id] = updated
            return updated

    def delete_product(self, product_id: UUID) -> bool:
        with self._lock:
            if self._products.pop(product_id, None) is None:
                return False
            for offer in list(self._offers.values()):
                if offer.product_id == product_id:
                    self._offers[offer.id] = offer.model_copy(update={"product_id": None})
            for session_id, order in list(self._orders.items()):
                if order.product_id == product_id:
                    self._orders[session_id] = order.model_copy(update={"product_id": None})
            return True

    def count_products(self, *, max_stock: int | None = None) -> int:
        with self._lock:
            if max_stock is None:
                return len(self._products)
            return sum(1 for p in self._products.values() if p.stock <= max_stock)

    # ── Offers ────────────────────────────────────────────────────────────

    def list_offers(self, *, active_only: bool = False) -> list[Offer]:
        with self._lock:
            offers = [o for o in self._offers.values() if o.active or not active_only]
            return sorted(
                offers,
                key=lambda o: (o.order_position, o.created_at, self._order_of[o.id]),
            )

    def get_offer(self, offer_id: UUID) -> Offer | None:
        with self._lock:
            return self._offers.get(offer_id)

    def create_offer(self, data: OfferIn, order_position: int) -> Offer:
        offer = Offer(
            id=uuid.uuid4(),
            created_at=_now(),
            order_position=order_position,
            **data.model_dump(),
        )
        with self._lock:
            self._offers[offer.id] = offer
            self._stamp(offer.id)
        return offer

    def update_offer(self, offer_id: UUID, changes: dict[str, Any]) -> Offer | None:
        with self._lock:
            current = self._offers.get(offer_id)
            if current is None:
                return None
            updated = current.model_copy(update=changes)
            self._offers[offer_id] = updated
            return updated

    def delete_offer(self, offer_id: UUID) -> bool:
        with self._lock:
            return self._offers.pop(offer_id, None) is not None

    def set_offer_positions(self, positions: dict[UUID, int]) -> None:
        with self._lock:
            for offer_id, position in positions.items():
                offer = self._offers.get(offer_id)
                if offer is not None:
                    self._offers[offer_id] = offer.model_copy(update={"order_position": position})

    def count_offers(self, *, active_only: bool = False) -> int:
        with self._lock:
            return sum(1 for o in self._offers.values() if o.active or not active_only)

    # ── Store settings ────────────────────────────────────────────────────

    def get_store_settings(self) -> StoreSettings:
        with self._lock:
            if self._settings is None:
                self._settings = StoreSettings(updated_at=_now())
            return self._settings

    def update_store_settings(self, changes: dict[str, Any]) -> StoreSettings:
        with self._lock:
            current = self.get_store_settings()
            if changes:
                self._settings = current.model_copy(update={**changes, "updated_at": _now()})
            return self._settings

    # ── Orders ────────────────────────────────────────────────────────────

    def get_order_by_session(self, session_id: str) -> Order | None:
        with self._lock:
            return self._orders.get(session_id)

    def list_orders(self, limit: int = 50) -> list[OrderSummary]:
        with self._lock:
            orders = sorted(
                self._orders.values(),
                key=lambda o: (o.created_at, self._order_of[o.id]),
                reverse=True,
            )[:limit]
            summaries = []
            for order in orders:
                product = self._products.get(order.product_id) if order.product_id else None
                summaries.append(
                    OrderSummary(
                        **order.model_dump(),
                        product_name=product.name if product else None,
                    )
                )
            return summaries

    def count_orders(self, *, since: datetime | None = None) -> int:
        with self._lock:
            if since is None:
                return len(self._orders)
            return sum(1 for o in self._orders.values() if o.created_at >= since)

    def fulfill_order(
        self, session_id: str, product_id: UUID, total_amount: Decimal
    ) -> FulfillmentOutcome:
        with self._lock:
            if session_id in self._orders:
                return FulfillmentOutcome.DUPLICATE
            product = self._products.get(product_id)
            if product is None:
                return FulfillmentOutcome.NOT_FOUND
            if product.stock <= 0:
                return FulfillmentOutcome.DEPLETED

            now = _now()
            self._products[product_id] = product.model_copy(
                update={"stock": product.stock - 1, "updated_at": now}
            )
            order = Order(
                id=uuid.uuid4(),
                stripe_session_id=session_id,
                product_id=product_id,
                quantity=1,
                total_amount=total_amount,
                status=ORDER_STATUS_COMPLETED,
                created_at=now,
            )
            self._orders[session_id] = order
            self._stamp(order.id)
            return FulfillmentOutcome.APPLIED
