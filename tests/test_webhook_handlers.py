"""Tests for the Stripe webhook endpoint (full request flow)."""

from __future__ import annotations

import json
import uuid
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from storefront.api import create_app

URL = "/webhooks/stripe"


def _post(client, body: bytes, signature: str | None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["stripe-signature"] = signature
    return client.post(URL, content=body, headers=headers)


class TestSignatureGate:
    def test_missing_signature(self, client, store, make_product, checkout_event):
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id)).encode()

        resp = _post(client, body, None)

        assert resp.status_code == 400
        assert resp.json() == {"error": "No signature provided"}
        assert store.get_product(product.id).stock == 3
        assert store.count_orders() == 0

    def test_invalid_signature(self, client, store, make_product, checkout_event):
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id)).encode()

        resp = _post(client, body, "t=123,v1=deadbeef")

        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid signature"}
        assert store.get_product(product.id).stock == 3
        assert store.count_orders() == 0

    def test_forged_event_signed_with_other_secret(
        self, client, store, make_product, checkout_event, sign
    ):
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id)).encode()

        resp = _post(client, body, sign(body, secret="whsec_attacker"))

        assert resp.status_code == 400
        assert store.count_orders() == 0

    def test_secret_not_configured(self, settings, store, make_product, checkout_event, sign):
        settings.stripe_webhook_secret = ""
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id)).encode()

        with TestClient(create_app(settings, store=store), raise_server_exceptions=False) as c:
            resp = _post(c, body, sign(body))

        assert resp.status_code == 500
        assert "not configured" in resp.json()["error"]
        assert store.count_orders() == 0


class TestCompletedCheckout:
    def test_fulfills_order(self, client, store, make_product, checkout_event, sign):
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id, amount_total=4990)).encode()

        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        assert resp.json() == {"received": True}
        assert store.get_product(product.id).stock == 2
        order = store.get_order_by_session("cs_test_001")
        assert order is not None
        assert str(order.total_amount) == "49.90"

    def test_redelivery_is_idempotent(self, client, store, make_product, checkout_event, sign):
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id)).encode()

        first = _post(client, body, sign(body))
        second = _post(client, body, sign(body))

        assert first.status_code == 200
        assert second.status_code == 200
        assert store.get_product(product.id).stock == 2
        assert store.count_orders() == 1

    def test_sold_out_product_acknowledged(self, client, store, make_product, checkout_event, sign):
        product = make_product(stock=0)
        body = json.dumps(checkout_event(product.id)).encode()

        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        assert store.get_product(product.id).stock == 0
        assert store.count_orders() == 0

    def test_unknown_product_acknowledged(self, client, store, checkout_event, sign):
        body = json.dumps(checkout_event(uuid.uuid4())).encode()
        resp = _post(client, body, sign(body))
        assert resp.status_code == 200
        assert store.count_orders() == 0

    def test_no_product_metadata(self, client, store, checkout_event, sign):
        body = json.dumps(checkout_event()).encode()
        resp = _post(client, body, sign(body))
        assert resp.status_code == 200
        assert store.count_orders() == 0

    def test_non_dict_metadata_acknowledged(self, client, store, checkout_event, sign):
        event = checkout_event()
        event["data"]["object"]["metadata"] = "productId=abc"
        body = json.dumps(event).encode()

        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        assert store.count_orders() == 0

    def test_other_event_type_ignored(self, client, store, make_product, checkout_event, sign):
        product = make_product(stock=3)
        event = checkout_event(product.id, event_type="payment_intent.succeeded")
        body = json.dumps(event).encode()

        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        assert resp.json() == {"received": True}
        assert store.get_product(product.id).stock == 3

    def test_store_failure_returns_500(self, client, store, make_product, checkout_event, sign):
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id)).encode()

        with patch.object(store, "fulfill_order", side_effect=RuntimeError("database is down")):
            resp = _post(client, body, sign(body))

        assert resp.status_code == 500
        assert resp.json() == {"error": "database is down"}

    def test_malformed_json_returns_500(self, client, sign):
        body = b"{not json"
        resp = _post(client, body, sign(body))
        assert resp.status_code == 500
        assert "error" in resp.json()


class TestDeduplication:
    def _client(self, settings, store, dedup):
        return TestClient(
            create_app(settings, store=store, deduplicator=dedup),
            raise_server_exceptions=False,
        )

    def test_seen_event_skipped(self, settings, store, make_product, checkout_event, sign):
        dedup = MagicMock()
        dedup.is_duplicate.return_value = True
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id, event_id="evt_seen")).encode()

        with self._client(settings, store, dedup) as c:
            resp = _post(c, body, sign(body))

        assert resp.status_code == 200
        dedup.is_duplicate.assert_called_once_with("evt_seen")
        dedup.mark_seen.assert_not_called()
        assert store.get_product(product.id).stock == 3

    def test_marked_after_processing(self, settings, store, make_product, checkout_event, sign):
        dedup = MagicMock()
        dedup.is_duplicate.return_value = False
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id, event_id="evt_new")).encode()

        with self._client(settings, store, dedup) as c:
            resp = _post(c, body, sign(body))

        assert resp.status_code == 200
        dedup.mark_seen.assert_called_once_with("evt_new")
        assert store.get_product(product.id).stock == 2

    def test_not_marked_when_processing_fails(
        self, settings, store, make_product, checkout_event, sign
    ):
        dedup = MagicMock()
        dedup.is_duplicate.return_value = False
        product = make_product(stock=3)
        body = json.dumps(checkout_event(product.id)).encode()

        with patch.object(store, "fulfill_order", side_effect=RuntimeError("boom")):
            with self._client(settings, store, dedup) as c:
                resp = _post(c, body, sign(body))

        assert resp.status_code == 500
        dedup.mark_seen.assert_not_called()


class TestCors:
    def test_preflight(self, client):
        resp = client.options(URL)
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "*"
        assert "stripe-signature" in resp.headers["access-control-allow-headers"]

    def test_cors_headers_on_error(self, client):
        resp = _post(client, b"{}", None)
        assert resp.headers["access-control-allow-origin"] == "*"
