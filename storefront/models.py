"""Storefront records and API payloads.

Stored records (Product, Offer, StoreSettings, Order) are returned by every
store backend; the ``*In`` / ``*Update`` models are the admin write payloads.
Monetary values are ``Decimal`` internally and serialized as JSON numbers.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer

_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"

DEFAULT_PRIMARY_COLOR = "#1f3048"
DEFAULT_SECONDARY_COLOR = "#18b4dd"
DEFAULT_NEUTRAL_COLOR = "#f5f8f9"
DEFAULT_STORE_NAME = "ALI Commerce"
DEFAULT_STORE_DESCRIPTION = "Sua loja online completa"

ORDER_STATUS_COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class ProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: str = Field(default="", max_length=100)
    description: str = ""
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    image_url: str = ""
    active: bool = True


class ProductUpdate(BaseModel):
    """Partial product update; only fields that were sent are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: str | None = Field(default=None, max_length=100)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    stock: int | None = Field(default=None, ge=0)
    image_url: str | None = None
    active: bool | None = None


class Product(BaseModel):
    id: UUID
    name: str
    category: str = ""
    description: str = ""
    price: Decimal
    stock: int = Field(ge=0)
    image_url: str = ""
    active: bool = True
    created_at: datetime
    updated_at: datetime

    @field_serializer("price", when_used="json")
    def _price_as_number(self, value: Decimal) -> float:
        return float(value)

    @property
    def in_stock(self) -> bool:
        return self.stock > 0


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------


class OfferIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    image_url: str = ""
    product_id: UUID | None = None
    active: bool = True


class OfferUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    image_url: str | None = None
    product_id: UUID | None = None
    active: bool | None = None


class Offer(BaseModel):
    id: UUID
    title: str
    image_url: str = ""
    product_id: UUID | None = None
    active: bool = True
    order_position: int = 0
    created_at: datetime


class CarouselOffer(Offer):
    """An active offer with its linked product, if that product still exists."""

    product: Product | None = None


class MoveDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class OfferMove(BaseModel):
    direction: MoveDirection


# ---------------------------------------------------------------------------
# Store settings (singleton)
# ---------------------------------------------------------------------------


class StoreSettings(BaseModel):
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR
    neutral_color: str = DEFAULT_NEUTRAL_COLOR
    store_name: str = DEFAULT_STORE_NAME
    store_description: str = DEFAULT_STORE_DESCRIPTION
    show_offers: bool = True
    show_featured: bool = True
    updated_at: datetime | None = None


class StoreSettingsUpdate(BaseModel):
    primary_color: str | None = Field(default=None, pattern=_COLOR_PATTERN)
    secondary_color: str | None = Field(default=None, pattern=_COLOR_PATTERN)
    neutral_color: str | None = Field(default=None, pattern=_COLOR_PATTERN)
    store_name: str | None = Field(default=None, min_length=1, max_length=120)
    store_description: str | None = None
    show_offers: bool | None = None
    show_featured: bool | None = None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class Order(BaseModel):
    id: UUID
    stripe_session_id: str
    product_id: UUID | None = None
    quantity: int = 1
    total_amount: Decimal
    status: str = ORDER_STATUS_COMPLETED
    created_at: datetime

    @field_serializer("total_amount", when_used="json")
    def _amount_as_number(self, value: Decimal) -> float:
        return float(value)


class OrderSummary(Order):
    """Order joined with its product's name (None once the product is deleted)."""

    product_name: str | None = None


class FulfillmentOutcome(str, Enum):
    """Result of applying one completed checkout session."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    DEPLETED = "depleted"


class DashboardStats(BaseModel):
    total_products: int
    low_stock_products: int
    recent_orders: int
    active_offers: int
    latest_orders: list[OrderSummary] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: UUID = Field(alias="productId")
    product_name: str = Field(default="", alias="productName")
    price: Decimal = Field(gt=0)


class CheckoutResponse(BaseModel):
    url: str
