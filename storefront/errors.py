"""Storefront exception hierarchy.

Every error carries the HTTP status the API layer answers with; the body is
always ``{"error": <message>}``.
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for storefront errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(StorefrontError):
    """A required credential or setting is missing."""

    status_code = 500


class ProviderError(StorefrontError):
    """The payment provider rejected a request."""

    status_code = 500


class ValidationError(StorefrontError):
    """Request rejected before any side effect (bad signature, bad price)."""

    status_code = 400


class AuthenticationError(StorefrontError):
    status_code = 401


class NotFoundError(StorefrontError):
    status_code = 404


class ConflictError(StorefrontError):
    status_code = 409
