"""Shared fixtures for the storefront test suite."""

from __future__ import annotations

import hashlib
import hmac
import time
from decimal import Decimal
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from storefront.api import create_app
from storefront.config import Settings
from storefront.models import Product, ProductIn
from storefront.store.memory import MemoryStore
from storefront.webhooks.idempotency import EventDeduplicator

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_TOKEN = "admin-test-token"


@pytest.fixture
def settings() -> Settings:
    """Fully configured settings; no .env, no database, no Redis."""
    return Settings(
        _env_file=None,
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        public_url="https://shop.example.com/",
        database_url="",
        redis_url="",
        admin_token=ADMIN_TOKEN,
        rate_limit_enabled=False,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_product(store: MemoryStore) -> Callable[..., Product]:
    """Factory that inserts a product into the store."""

    def _make(**overrides: Any) -> Product:
        data = {
            "name": "Camiseta Básica",
            "category": "Roupas",
            "description": "Algodão 100%",
            "price": Decimal("49.90"),
            "stock": 3,
            "image_url": "https://img.example.com/tee.png",
            "active": True,
        }
        data.update(overrides)
        return store.create_product(ProductIn(**data))

    return _make


@pytest.fixture
def app(settings: Settings, store: MemoryStore):
    return create_app(settings, store=store, deduplicator=EventDeduplicator(""))


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def sign() -> Callable[..., str]:
    """Build a valid Stripe-Signature header for a body."""

    def _sign(body: bytes, timestamp: int | None = None, secret: str = WEBHOOK_SECRET) -> str:
        ts = timestamp if timestamp is not None else int(time.time())
        signed_payload = f"{ts}.".encode() + body
        sig = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
        return f"t={ts},v1={sig}"

    return _sign


@pytest.fixture
def checkout_event() -> Callable[..., dict]:
    """Build a checkout.session.completed event payload."""

    def _event(
        product_id: Any = None,
        *,
        session_id: str = "cs_test_001",
        event_id: str = "evt_001",
        amount_total: int = 4990,
        event_type: str = "checkout.session.completed",
    ) -> dict:
        metadata = {"productId": str(product_id)} if product_id is not None else {}
        return {
            "id": event_id,
            "type": event_type,
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "amount_total": amount_total,
                    "currency": "brl",
                    "metadata": metadata,
                }
            },
        }

    return _event
