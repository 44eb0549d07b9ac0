"""
Redis-backed key/value cache.

Two namespaces live here: 'catalog' holds category and offer reads, and
'device:<id>' holds each device's persisted cart, wishlist and auth token.
Every call degrades to a miss when Redis is down or caching is disabled.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)

DECIMAL_MARKER = '__decimal__'


def _dumps(value: Any) -> str:
    def encode(obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return {DECIMAL_MARKER: str(obj)}
        raise TypeError(f"Cannot cache value of type {type(obj).__name__}")
    return json.dumps(value, default=encode)


def _loads(raw: str) -> Any:
    def decode(obj: dict) -> Any:
        if DECIMAL_MARKER in obj:
            return Decimal(obj[DECIMAL_MARKER])
        return obj
    return json.loads(raw, object_hook=decode)


class CacheService:
    """Keys are laid out as {prefix}:{namespace}:{key}; values are JSON with exact Decimals."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.prefix = 'ozo'
        self.default_ttl = 60
        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.prefix = app.config.get('CACHE_KEY_PREFIX', self.prefix)
        self.default_ttl = app.config.get('CACHE_DEFAULT_TTL', self.default_ttl)
        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Disabled via config")
            return

        url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        client = redis.from_url(url, decode_responses=True, socket_connect_timeout=3, socket_timeout=3)
        try:
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] ⚠ Redis unreachable at {url}: {e}. Running without cache.")
            return
        self.client = client
        logger.info(f"[CACHE] ✓ Redis connected: {url}")

    def attach_client(self, client) -> None:
        """Use an already-built Redis client."""
        self.client = client

    def is_available(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def key_for(self, namespace: str, key: str) -> str:
        return f"{self.prefix}:{namespace}:{key}"

    def get(self, namespace: str, key: str) -> Optional[Any]:
        if not self.is_available():
            return None
        try:
            raw = self.client.get(self.key_for(namespace, key))
            return None if raw is None else _loads(raw)
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] ✗ Read of {namespace}:{key} failed: {e}")
            return None

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.is_available():
            return False
        try:
            self.client.setex(self.key_for(namespace, key), ttl or self.default_ttl, _dumps(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] ✗ Write of {namespace}:{key} failed: {e}")
            return False

    def delete(self, namespace: str, key: str) -> bool:
        if not self.is_available():
            return False
        try:
            self.client.delete(self.key_for(namespace, key))
            return True
        except RedisError as e:
            logger.warning(f"[CACHE] ✗ Delete of {namespace}:{key} failed: {e}")
            return False

    def memoize(self, namespace: str, key: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or call loader_fn and cache what it returns."""
        cached = self.get(namespace, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(namespace, key, value, ttl)
        return value

    def invalidate_namespace(self, namespace: str) -> int:
        """Drop every key under a namespace; returns how many were removed."""
        if not self.is_available():
            return 0
        try:
            keys = list(self.client.scan_iter(match=self.key_for(namespace, '*'), count=100))
            if keys:
                self.client.delete(*keys)
        except RedisError as e:
            logger.warning(f"[CACHE] ✗ Invalidate of {namespace} failed: {e}")
            return 0
        logger.info(f"[CACHE] Invalidated {namespace} ({len(keys)} keys)")
        return len(keys)


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
