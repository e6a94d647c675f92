"""HTTP API: storefront, checkout, webhook and back-office routes."""

from storefront.api.app import create_app

__all__ = ["create_app"]
