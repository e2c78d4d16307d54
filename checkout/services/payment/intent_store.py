# checkout/services/payment/intent_store.py
"""
Short-lived registry of payment intents created by this service.

Keyed by (order_id, revision, method). A hit lets the payment endpoint reuse
an intent without searching the gateway. Entries expire after
INTENT_TTL_SECONDS; the in-memory backend expires lazily on read, the Redis
backend through the key TTL.
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional, Tuple

import redis

from checkout.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class StoredIntent:
    payment_id: str
    fingerprint: str
    created_at: float


def intent_key(order_id: str, revision: int, method: str) -> str:
    return f"{order_id}:{revision}:{method}"


class IntentStore(ABC):

    @abstractmethod
    def get(self, key: str) -> Optional[StoredIntent]:
        pass

    @abstractmethod
    def put(self, key: str, intent: StoredIntent) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class InMemoryIntentStore(IntentStore):
    """Per-process store. Not shared between workers."""

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._items: Dict[str, Tuple[StoredIntent, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[StoredIntent]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            intent, expires_at = item
            if self._clock() >= expires_at:
                del self._items[key]
                return None
            return intent

    def put(self, key: str, intent: StoredIntent) -> None:
        with self._lock:
            self._items[key] = (intent, self._clock() + self.ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


class RedisIntentStore(IntentStore):
    """Shared store; Redis failures degrade to a cache miss."""

    KEY_PREFIX = "checkout:intent:"

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def get(self, key: str) -> Optional[StoredIntent]:
        try:
            raw = self.client.get(self.KEY_PREFIX + key)
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable for intent lookup, skipping local dedup: {e}")
            return None
        if not raw:
            return None
        try:
            return StoredIntent(**json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed intent entry {key}: {e}")
            return None

    def put(self, key: str, intent: StoredIntent) -> None:
        try:
            self.client.setex(self.KEY_PREFIX + key, self.ttl_seconds, json.dumps(asdict(intent)))
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable, intent {intent.payment_id} not registered: {e}")

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self.KEY_PREFIX + key)
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable, intent {key} not deleted: {e}")


_store_instance: Optional[IntentStore] = None


def get_intent_store() -> IntentStore:
    """Get the process-wide intent store for the configured backend."""
    global _store_instance
    if _store_instance is None:
        if settings.INTENT_STORE_BACKEND.lower() == "redis":
            from checkout.db.redis import redis_client

            _store_instance = RedisIntentStore(redis_client, settings.INTENT_TTL_SECONDS)
            logger.info("Using Redis intent store")
        else:
            _store_instance = InMemoryIntentStore(settings.INTENT_TTL_SECONDS)
            logger.info("Using in-memory intent store")
    return _store_instance
