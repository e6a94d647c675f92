"""Stripe webhook signature verification (constant-time HMAC).

Security contract:
- Comparison uses hmac.compare_digest() (constant-time, no timing attacks)
- Missing secret -> verification always fails (fail-closed)
- Timestamp tolerance (default 300s) prevents replay of captured deliveries
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"

DEFAULT_TOLERANCE_SECONDS = 300


def parse_signature_header(signature_header: str) -> tuple[int | None, list[str]]:
    """Split ``t=<timestamp>,v1=<sig>[,v1=<sig>...][,v0=...]``.

    Returns (timestamp or None, list of v1 signatures).
    """
    timestamp: int | None = None
    v1_sigs: list[str] = []
    for item in signature_header.split(","):
        kv = item.strip().split("=", 1)
        if len(kv) != 2:
            continue
        key, value = kv
        if key == "t":
            try:
                timestamp = int(value)
            except (ValueError, TypeError):
                return None, []
        elif key == "v1":
            v1_sigs.append(value)
    return timestamp, v1_sigs


def compute_signature(secret: str, timestamp: int, body: bytes) -> str:
    """HMAC-SHA256 hex digest of ``{timestamp}.{body}``."""
    signed_payload = f"{timestamp}.".encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_stripe(
    body: bytes,
    signature_header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    """Verify a Stripe webhook signature (v1 scheme).

    Args:
        body: Raw request body bytes
        signature_header: Value of the Stripe-Signature header
        secret: Endpoint signing secret (whsec_...)
        tolerance: Maximum age/skew of the signed timestamp, in seconds

    Returns:
        True if one of the v1 signatures matches and the timestamp is within tolerance
    """
    if not secret:
        logger.warning("STRIPE_WEBHOOK_SECRET not set, rejecting webhook")
        return False
    if not signature_header:
        return False

    timestamp, v1_sigs = parse_signature_header(signature_header)
    if timestamp is None or not v1_sigs:
        return False

    if abs(time.time() - timestamp) > tolerance:
        logger.warning("Stripe webhook timestamp too old/future: %s", timestamp)
        return False

    expected = compute_signature(secret, timestamp, body)
    # Several v1 values are sent while a signing secret is being rolled
    return any(hmac.compare_digest(expected, sig) for sig in v1_sigs)
