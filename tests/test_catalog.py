"""Tests for the catalog service (listing, carousel, offer ordering, dashboard)."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from freezegun import freeze_time

from storefront import catalog
from storefront.errors import NotFoundError
from storefront.models import MoveDirection, OfferIn


def _titles(offers):
    return [o.title for o in offers]


@pytest.fixture
def make_offer(store):
    def _make(title: str, **kwargs):
        return catalog.create_offer(store, OfferIn(title=title, **kwargs))

    return _make


class TestListCatalog:
    def test_only_active_newest_first(self, store, make_product):
        with freeze_time("2026-01-01"):
            older = make_product(name="Older")
        with freeze_time("2026-01-02"):
            newer = make_product(name="Newer")
            make_product(name="Hidden", active=False)

        assert [p.id for p in catalog.list_catalog(store)] == [newer.id, older.id]

    def test_category_filter_case_insensitive(self, store, make_product):
        make_product(name="Tee", category="Roupas")
        make_product(name="Mug", category="Casa")
        assert [p.name for p in catalog.list_catalog(store, category="roupas")] == ["Tee"]

    def test_search_name_and_description(self, store, make_product):
        make_product(name="Caneca Azul", description="cerâmica")
        make_product(name="Camiseta", description="Estampa AZUL")
        make_product(name="Boné", description="preto")
        names = {p.name for p in catalog.list_catalog(store, search="  azul ")}
        assert names == {"Caneca Azul", "Camiseta"}

    def test_in_stock_only(self, store, make_product):
        make_product(name="Available", stock=1)
        make_product(name="Sold out", stock=0)
        assert [p.name for p in catalog.list_catalog(store, in_stock_only=True)] == ["Available"]

    def test_categories(self, store, make_product):
        make_product(category="Roupas")
        make_product(category="Casa")
        make_product(category="Roupas")
        make_product(category="")
        make_product(category="Oculta", active=False)
        assert catalog.list_categories(store) == ["Casa", "Roupas"]


class TestOffers:
    def test_new_offers_append(self, make_offer):
        a = make_offer("A")
        b = make_offer("B")
        c = make_offer("C")
        assert [a.order_position, b.order_position, c.order_position] == [0, 1, 2]

    def test_move_up(self, store, make_offer):
        make_offer("A")
        make_offer("B")
        c = make_offer("C")

        result = catalog.move_offer(store, c.id, MoveDirection.UP)

        assert _titles(result) == ["A", "C", "B"]
        assert [o.order_position for o in result] == [0, 1, 2]
        assert _titles(store.list_offers()) == ["A", "C", "B"]

    def test_move_down(self, store, make_offer):
        a = make_offer("A")
        make_offer("B")
        catalog.move_offer(store, a.id, MoveDirection.DOWN)
        assert _titles(store.list_offers()) == ["B", "A"]

    def test_move_first_up_is_noop(self, store, make_offer):
        a = make_offer("A")
        make_offer("B")
        assert _titles(catalog.move_offer(store, a.id, MoveDirection.UP)) == ["A", "B"]
        assert _titles(store.list_offers()) == ["A", "B"]

    def test_move_last_down_is_noop(self, store, make_offer):
        make_offer("A")
        b = make_offer("B")
        catalog.move_offer(store, b.id, MoveDirection.DOWN)
        assert _titles(store.list_offers()) == ["A", "B"]

    def test_move_renumbers_after_gaps(self, store, make_offer):
        a = make_offer("A")
        b = make_offer("B")
        c = make_offer("C")
        store.delete_offer(b.id)

        catalog.move_offer(store, c.id, MoveDirection.UP)

        offers = store.list_offers()
        assert _titles(offers) == ["C", "A"]
        assert [o.order_position for o in offers] == [0, 1]
        assert store.get_offer(a.id).order_position == 1

    def test_move_unknown_offer(self, store):
        with pytest.raises(NotFoundError):
            catalog.move_offer(store, uuid.uuid4(), MoveDirection.UP)

    def test_position_after_delete_uses_count(self, store, make_offer):
        make_offer("A")
        b = make_offer("B")
        store.delete_offer(b.id)
        assert make_offer("C").order_position == 1


class TestCarousel:
    def test_active_offers_with_product(self, store, make_product, make_offer):
        product = make_product()
        make_offer("Linked", product_id=product.id)
        make_offer("Inactive", active=False)

        offers = catalog.carousel_offers(store)

        assert _titles(offers) == ["Linked"]
        assert offers[0].product.id == product.id

    def test_inactive_product_hidden(self, store, make_product, make_offer):
        product = make_product(active=False)
        make_offer("Linked", product_id=product.id)
        assert catalog.carousel_offers(store)[0].product is None

    def test_deleted_product_unlinks_offer(self, store, make_product, make_offer):
        product = make_product()
        offer = make_offer("Linked", product_id=product.id)
        store.delete_product(product.id)

        assert store.get_offer(offer.id).product_id is None
        assert catalog.carousel_offers(store)[0].product is None


class TestDashboard:
    def test_counts(self, store, make_product, make_offer):
        p1 = make_product(stock=2)
        make_product(stock=5)
        make_product(stock=50)
        make_offer("A")
        make_offer("B", active=False)

        with freeze_time("2026-03-01"):
            store.fulfill_order("cs_old", p1.id, Decimal("49.90"))
        with freeze_time("2026-03-20"):
            store.fulfill_order("cs_new", p1.id, Decimal("49.90"))
            stats = catalog.dashboard(store)

        assert stats.total_products == 3
        assert stats.low_stock_products == 2
        assert stats.recent_orders == 1
        assert stats.active_offers == 1
        assert [o.stripe_session_id for o in stats.latest_orders] == ["cs_new", "cs_old"]
        assert stats.latest_orders[0].product_name == "Camiseta Básica"

    def test_latest_orders_capped(self, store, make_product):
        product = make_product(stock=100)
        for i in range(8):
            store.fulfill_order(f"cs_{i}", product.id, Decimal("1.00"))
        stats = catalog.dashboard(store, low_stock_threshold=0)
        assert len(stats.latest_orders) == catalog.LATEST_ORDERS_LIMIT
        assert stats.latest_orders[0].stripe_session_id == "cs_7"
        assert stats.low_stock_products == 0

    def test_empty_store(self, store):
        stats = catalog.dashboard(store)
        assert stats.total_products == 0
        assert stats.recent_orders == 0
        assert stats.latest_orders == []
