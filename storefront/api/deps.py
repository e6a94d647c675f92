"""FastAPI dependencies: app-scoped services and admin authentication."""

from __future__ import annotations

import hmac

from fastapi import Depends, Request

from storefront.config import Settings
from storefront.errors import AuthenticationError, ConfigurationError
from storefront.store import Store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> Store:
    return request.app.state.store


def extract_bearer_token(auth_header: str | None) -> str | None:
    """Return the token from ``Authorization: Bearer <token>``, else None."""
    if not auth_header:
        return None
    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def require_admin(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """Guard for back-office routes: static bearer token, constant-time compare.

    No token configured -> every admin request fails (fail-closed).
    """
    if not settings.admin_token:
        raise ConfigurationError("Admin API is not configured")
    token = extract_bearer_token(request.headers.get("authorization"))
    if not token or not hmac.compare_digest(token, settings.admin_token):
        raise AuthenticationError("Authentication required")
