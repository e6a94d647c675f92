"""Persistence contract for the storefront.

Two backends implement ``Store``:

- ``PostgresStore``: production backend (psycopg, one connection per call).
- ``MemoryStore``: in-process backend for local development and tests.

``fulfill_order`` is the only operation with a correctness contract beyond
CRUD: it must decrement stock and record the order atomically, and a second
call with the same session id must change nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from storefront.config import Settings
from storefront.models import (
    FulfillmentOutcome,
    Offer,
    OfferIn,
    Order,
    OrderSummary,
    Product,
    ProductIn,
    StoreSettings,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class Store(Protocol):
    """Storage operations used by the catalog, admin and webhook layers."""

    def init_schema(self) -> None: ...

    # Products
    def list_products(self, *, active_only: bool = False) -> list[Product]: ...

    def get_product(self, product_id: UUID) -> Product | None: ...

    def create_product(self, data: ProductIn) -> Product: ...

    def update_product(self, product_id: UUID, changes: dict[str, Any]) -> Product | None: ...

    def delete_product(self, product_id: UUID) -> bool: ...

    def count_products(self, *, max_stock: int | None = None) -> int: ...

    # Offers
    def list_offers(self, *, active_only: bool = False) -> list[Offer]: ...

    def get_offer(self, offer_id: UUID) -> Offer | None: ...

    def create_offer(self, data: OfferIn, order_position: int) -> Offer: ...

    def update_offer(self, offer_id: UUID, changes: dict[str, Any]) -> Offer | None: ...

    def delete_offer(self, offer_id: UUID) -> bool: ...

    def set_offer_positions(self, positions: dict[UUID, int]) -> None: ...

    def count_offers(self, *, active_only: bool = False) -> int: ...

    # Store settings (singleton row)
    def get_store_settings(self) -> StoreSettings: ...

    def update_store_settings(self, changes: dict[str, Any]) -> StoreSettings: ...

    # Orders
    def get_order_by_session(self, session_id: str) -> Order | None: ...

    def list_orders(self, limit: int = 50) -> list[OrderSummary]: ...

    def count_orders(self, *, since: datetime | None = None) -> int: ...

    def fulfill_order(
        self, session_id: str, product_id: UUID, total_amount: Decimal
    ) -> FulfillmentOutcome: ...


def create_store(settings: Settings) -> Store:
    """Build the backend selected by ``DATABASE_URL``."""
    if settings.database_url:
        from storefront.store.postgres import PostgresStore

        logger.info("Using PostgreSQL store")
        return PostgresStore(settings.database_url)

    from storefront.store.memory import MemoryStore

    logger.warning("DATABASE_URL not set, using in-memory store (data is not persisted)")
    return MemoryStore()
