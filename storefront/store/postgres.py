"""PostgreSQL store (psycopg 3).

One short-lived connection per operation, autocommit for single statements,
an explicit transaction for fulfillment. Requires PostgreSQL 13+ for
``gen_random_uuid()``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

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

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS products (
        id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        name        TEXT NOT NULL,
        category    TEXT NOT NULL DEFAULT '',
        description TEXT NOT NULL DEFAULT '',
        price       NUMERIC(12, 2) NOT NULL CHECK (price >= 0),
        stock       INTEGER NOT NULL DEFAULT 0 CHECK (stock >= 0),
        image_url   TEXT NOT NULL DEFAULT '',
        active      BOOLEAN NOT NULL DEFAULT TRUE,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS offers (
        id             UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        title          TEXT NOT NULL,
        image_url      TEXT NOT NULL DEFAULT '',
        product_id     UUID REFERENCES products(id) ON DELETE SET NULL,
        active         BOOLEAN NOT NULL DEFAULT TRUE,
        order_position INTEGER NOT NULL DEFAULT 0,
        created_at     TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS offers_order_position_idx ON offers (order_position)",
    """
    CREATE TABLE IF NOT EXISTS store_settings (
        id                SMALLINT PRIMARY KEY DEFAULT 1 CHECK (id = 1),
        primary_color     TEXT NOT NULL DEFAULT '#1f3048',
        secondary_color   TEXT NOT NULL DEFAULT '#18b4dd',
        neutral_color     TEXT NOT NULL DEFAULT '#f5f8f9',
        store_name        TEXT NOT NULL DEFAULT 'ALI Commerce',
        store_description TEXT NOT NULL DEFAULT 'Sua loja online completa',
        show_offers       BOOLEAN NOT NULL DEFAULT TRUE,
        show_featured     BOOLEAN NOT NULL DEFAULT TRUE,
        updated_at        TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        stripe_session_id TEXT NOT NULL UNIQUE,
        product_id        UUID REFERENCES products(id) ON DELETE SET NULL,
        quantity          INTEGER NOT NULL DEFAULT 1 CHECK (quantity > 0),
        total_amount      NUMERIC(12, 2) NOT NULL,
        status            TEXT NOT NULL DEFAULT 'completed',
        created_at        TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS orders_created_at_idx ON orders (created_at DESC)",
)

# Columns an update may touch
_PRODUCT_COLUMNS = {"name", "category", "description", "price", "stock", "image_url", "active"}
_OFFER_COLUMNS = {"title", "image_url", "product_id", "active"}
_SETTINGS_COLUMNS = {
    "primary_color",
    "secondary_color",
    "neutral_color",
    "store_name",
    "store_description",
    "show_offers",
    "show_featured",
}


def _set_clause(changes: dict[str, Any], allowed: set[str]) -> tuple[sql.Composed, list[Any]]:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown columns: {sorted(unknown)}")
    names = sorted(changes)
    clause = sql.SQL(", ").join(
        sql.SQL("{} = %s").format(sql.Identifier(name)) for name in names
    )
    return clause, [changes[name] for name in names]


class PostgresStore:
    """``Store`` backed by PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn

    def _get_conn(self) -> psycopg.Connection:
        return psycopg.connect(self._dsn, autocommit=True, row_factory=dict_row)

    def init_schema(self) -> None:
        """Create tables and indexes if they don't exist.  Idempotent."""
        with self._get_conn() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info("Storefront tables initialized")

    # ── Products ──────────────────────────────────────────────────────────

    def list_products(self, *, active_only: bool = False) -> list[Product]:
        query = "SELECT * FROM products"
        if active_only:
            query += " WHERE active"
        query += " ORDER BY created_at DESC"
        with self._get_conn() as conn:
            rows = conn.execute(query).fetchall()
        return [Product(**r) for r in rows]

    def get_product(self, product_id: UUID) -> Product | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM products WHERE id = %s", (product_id,)
            ).fetchone()
        return Product(**row) if row else None

    def create_product(self, data: ProductIn) -> Product:
        with self._get_conn() as conn:
            row = conn.execute(
                """INSERT INTO products
                   (name, category, description, price, stock, image_url, active)
                   VALUES (%s, %s, %s, %s, %s, %s, %s)
                   RETURNING *""",
                (
                    data.name,
                    data.category,
                    data.description,
                    data.price,
                    data.stock,
                    data.image_url,
                    data.active,
                ),
            ).fetchone()
        return Product(**row)

    def update_product(self, product_id: UUID, changes: dict[str, Any]) -> Product | None:
        if not changes:
            return self.get_product(product_id)
        clause, params = _set_clause(changes, _PRODUCT_COLUMNS)
        query = sql.SQL(
            "UPDATE products SET {}, updated_at = now() WHERE id = %s RETURNING *"
        ).format(clause)
        with self._get_conn() as conn:
            row = conn.execute(query, (*params, product_id)).fetchone()
        return Product(**row) if row else None

    def delete_product(self, product_id: UUID) -> bool:
        with self._get_conn() as conn:
            result = conn.execute("DELETE FROM products WHERE id = %s", (product_id,))
            return result.rowcount > 0

    def count_products(self, *, max_stock: int | None = None) -> int:
        with self._get_conn() as conn:
            if max_stock is None:
                row = conn.execute("SELECT COUNT(*) AS n FROM products").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM products WHERE stock <= %s", (max_stock,)
                ).fetchone()
        return row["n"] if row else 0

    # ── Offers ────────────────────────────────────────────────────────────

    def list_offers(self, *, active_only: bool = False) -> list[Offer]:
        query = "SELECT * FROM offers"
        if active_only:
            query += " WHERE active"
        query += " ORDER BY order_position, created_at"
        with self._get_conn() as conn:
            rows = conn.execute(query).fetchall()
        return [Offer(**r) for r in rows]

    def get_offer(self, offer_id: UUID) -> Offer | None:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM offers WHERE id = %s", (offer_id,)).fetchone()
        return Offer(**row) if row else None

    def create_offer(self, data: OfferIn, order_position: int) -> Offer:
        with self._get_conn() as conn:
            row = conn.execute(
                """INSERT INTO offers (title, image_url, product_id, active, order_position)
                   VALUES (%s, %s, %s, %s, %s)
                   RETURNING *""",
                (data.title, data.image_url, data.product_id, data.active, order_position),
            ).fetchone()
        return Offer(**row)

    def update_offer(self, offer_id: UUID, changes: dict[str, Any]) -> Offer | None:
        if not changes:
            return self.get_offer(offer_id)
        clause, params = _set_clause(changes, _OFFER_COLUMNS)
        query = sql.SQL("UPDATE offers SET {} WHERE id = %s RETURNING *").format(clause)
        with self._get_conn() as conn:
            row = conn.execute(query, (*params, offer_id)).fetchone()
        return Offer(**row) if row else None

    def delete_offer(self, offer_id: UUID) -> bool:
        with self._get_conn() as conn:
            result = conn.execute("DELETE FROM offers WHERE id = %s", (offer_id,))
            return result.rowcount > 0

    def set_offer_positions(self, positions: dict[UUID, int]) -> None:
        if not positions:
            return
        with self._get_conn() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.executemany(
                        "UPDATE offers SET order_position = %s WHERE id = %s",
                        [(pos, offer_id) for offer_id, pos in positions.items()],
                    )

    def count_offers(self, *, active_only: bool = False) -> int:
        query = "SELECT COUNT(*) AS n FROM offers"
        if active_only:
            query += " WHERE active"
        with self._get_conn() as conn:
            row = conn.execute(query).fetchone()
        return row["n"] if row else 0

    # ── Store settings ────────────────────────────────────────────────────

    def get_store_settings(self) -> StoreSettings:
        with self._get_conn() as conn:
            conn.execute("INSERT INTO store_settings (id) VALUES (1) ON CONFLICT (id) DO NOTHING")
            row = conn.execute("SELECT * FROM store_settings WHERE id = 1").fetchone()
        return StoreSettings(**row)

    def update_store_settings(self, changes: dict[str, Any]) -> StoreSettings:
        if not changes:
            return self.get_store_settings()
        clause, params = _set_clause(changes, _SETTINGS_COLUMNS)
        query = sql.SQL(
            "UPDATE store_settings SET {}, updated_at = now() WHERE id = 1 RETURNING *"
        ).format(clause)
        with self._get_conn() as conn:
            conn.execute("INSERT INTO store_settings (id) VALUES (1) ON CONFLICT (id) DO NOTHING")
            row = conn.execute(query, params).fetchone()
        return StoreSettings(**row)

    # ── Orders ────────────────────────────────────────────────────────────

    def get_order_by_session(self, session_id: str) -> Order | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM orders WHERE stripe_session_id = %s", (session_id,)
            ).fetchone()
        return Order(**row) if row else None

    def list_orders(self, limit: int = 50) -> list[OrderSummary]:
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT o.*, p.name AS product_name
                   FROM orders o
                   LEFT JOIN products p ON p.id = o.product_id
                   ORDER BY o.created_at DESC
                   LIMIT %s""",
                (limit,),
            ).fetchall()
        return [OrderSummary(**r) for r in rows]

    def count_orders(self, *, since: datetime | None = None) -> int:
        with self._get_conn() as conn:
            if since is None:
                row = conn.execute("SELECT COUNT(*) AS n FROM orders").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM orders WHERE created_at >= %s", (since,)
                ).fetchone()
        return row["n"] if row else 0

    def fulfill_order(
        self, session_id: str, product_id: UUID, total_amount: Decimal
    ) -> FulfillmentOutcome:
        """Decrement stock and record the order in one transaction.

        The conditional UPDATE holds the product row lock until commit, so
        concurrent purchases of the same product serialize. The UNIQUE index on
        stripe_session_id serializes concurrent deliveries of one session; the
        loser rolls back its decrement.
        """
        outcome = FulfillmentOutcome.DUPLICATE
        with self._get_conn() as conn:
            with conn.transaction():
                seen = conn.execute(
                    "SELECT 1 FROM orders WHERE stripe_session_id = %s", (session_id,)
                ).fetchone()
                if seen:
                    return FulfillmentOutcome.DUPLICATE

                updated = conn.execute(
                    """UPDATE products
                       SET stock = stock - 1, updated_at = now()
                       WHERE id = %s AND stock > 0
                       RETURNING stock""",
                    (product_id,),
                ).fetchone()
                if updated is None:
                    exists = conn.execute(
                        "SELECT 1 FROM products WHERE id = %s", (product_id,)
                    ).fetchone()
                    return FulfillmentOutcome.DEPLETED if exists else FulfillmentOutcome.NOT_FOUND

                inserted = conn.execute(
                    """INSERT INTO orders
                       (stripe_session_id, product_id, quantity, total_amount, status)
                       VALUES (%s, %s, 1, %s, %s)
                       ON CONFLICT (stripe_session_id) DO NOTHING
                       RETURNING id""",
                    (session_id, product_id, total_amount, ORDER_STATUS_COMPLETED),
                ).fetchone()
                if inserted is None:
                    # Lost the race to a concurrent delivery of the same session
                    raise psycopg.Rollback()
                outcome = FulfillmentOutcome.APPLIED
        return outcome
