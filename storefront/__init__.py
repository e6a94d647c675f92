"""Storefront service: catalog, admin back-office and Stripe checkout."""

__version__ = "0.3.0"
