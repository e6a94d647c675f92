"""Webhook idempotency: Redis fast path for redelivered events.

Contract:
- Stripe event ids are remembered in Redis for 24h once processed
- A seen event is acknowledged with 200 and not re-applied
- Events are marked only AFTER processing, so a failed delivery stays retryable
- Key pattern: webhook:seen:stripe:{event_id}
- Redis unset or down -> fail open; the orders.stripe_session_id UNIQUE
  constraint remains the authoritative guard
"""

from __future__ import annotations

import logging

import redis

logger = logging.getLogger(__name__)

_DEDUP_TTL_SECONDS = 86400  # 24 hours

_KEY_PREFIX = "webhook:seen"


def _key(provider: str, event_id: str) -> str:
    return f"{_KEY_PREFIX}:{provider}:{event_id}"


class EventDeduplicator:
    """Remembers processed webhook event ids in Redis."""

    def __init__(self, redis_url: str, provider: str = "stripe"):
        self._redis_url = redis_url
        self._provider = provider
        self._client: redis.Redis | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._redis_url)

    def _get_redis(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def is_duplicate(self, event_id: str) -> bool:
        """True if this event id was already processed."""
        if not event_id or not self.enabled:
            return False
        try:
            seen = self._get_redis().exists(_key(self._provider, event_id))
        except Exception:
            logger.warning(
                "Redis unavailable for webhook dedup, allowing %s/%s",
                self._provider,
                event_id,
                exc_info=True,
            )
            return False
        if seen:
            logger.info("Duplicate webhook skipped: %s/%s", self._provider, event_id)
            return True
        return False

    def mark_seen(self, event_id: str) -> None:
        """Record a processed event id (24h TTL)."""
        if not event_id or not self.enabled:
            return
        try:
            self._get_redis().set(_key(self._provider, event_id), "1", ex=_DEDUP_TTL_SECONDS)
        except Exception:
            logger.warning("Failed to mark webhook as seen: %s/%s", self._provider, event_id)
