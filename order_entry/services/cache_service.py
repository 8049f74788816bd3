"""
Redis cache shared by POS workers.

Holds catalog snapshots (products, customers, discounts) so every terminal
process does not hit the backend on its own. Redis being down is never an
error: reads miss and writes are dropped.
"""

import logging
import json
from typing import Any, Callable, Dict, Optional
from datetime import date, datetime
from decimal import Decimal

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask

logger = logging.getLogger(__name__)

DECIMAL_MARKER = "__decimal__"


def _encode(value: Any) -> str:
    """JSON with exact Decimals ({"__decimal__": "1500.00"}) and ISO dates."""
    def default(obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return {DECIMAL_MARKER: str(obj)}
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"Cannot cache value of type {type(obj).__name__}")
    return json.dumps(value, default=default)


def _decode(raw: str) -> Any:
    def object_hook(obj: Dict[str, Any]) -> Any:
        if DECIMAL_MARKER in obj:
            return Decimal(obj[DECIMAL_MARKER])
        return obj
    return json.loads(raw, object_hook=object_hook)


class CacheService:
    """
    Scoped key/value cache on Redis.

    Keys: {prefix}:scope:{scope}:{module}:{key}, where scope is the shop or
    branch sharing one catalog.
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.enabled = False
        self.prefix = "pos"
        self.default_ttl = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect using CACHE_* / REDIS_URL settings; disable on failure."""
        self.enabled = app.config.get('CACHE_ENABLED', True)
        self.prefix = app.config.get('CACHE_KEY_PREFIX', 'pos')
        self.default_ttl = app.config.get('CACHE_DEFAULT_TTL', 60)
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self.enabled:
            logger.info("[CACHE] Disabled by configuration")
            return

        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CACHE] Redis unreachable ({e}); catalog loads go to the backend")
            self.enabled = False
            self.client = None

    def is_available(self) -> bool:
        if not self.enabled or self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def key(self, scope: str, module: str, key: str) -> str:
        return f"{self.prefix}:scope:{scope}:{module}:{key}"

    def get(self, scope: str, module: str, key: str) -> Optional[Any]:
        """Cached value, or None on a miss or any Redis problem."""
        if not self.is_available():
            return None
        try:
            raw = self.client.get(self.key(scope, module, key))
            return None if raw is None else _decode(raw)
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] Read failed for {module}:{key}: {e}")
            return None

    def set(self, scope: str, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.is_available():
            return False
        try:
            self.client.setex(self.key(scope, module, key), ttl or self.default_ttl, _encode(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write failed for {module}:{key}: {e}")
            return False

    def delete(self, scope: str, module: str, key: str) -> bool:
        if not self.is_available():
            return False
        try:
            self.client.delete(self.key(scope, module, key))
            return True
        except RedisError as e:
            logger.warning(f"[CACHE] Delete failed for {module}:{key}: {e}")
            return False

    def memoize(self, scope: str, module: str, key: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Cache-aside: return the cached value or load, store and return it."""
        cached = self.get(scope, module, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(scope, module, key, value, ttl)
        return value

    def invalidate_module(self, scope: str, module: str) -> int:
        """Delete every key of a module in a scope; returns how many were removed."""
        if not self.is_available():
            return 0
        pattern = self.key(scope, module, "*")
        removed = 0
        try:
            for cache_key in self.client.scan_iter(match=pattern, count=100):
                self.client.delete(cache_key)
                removed += 1
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate failed for {pattern}: {e}")
            return removed
        if removed:
            logger.info(f"[CACHE] INVALIDATE: {pattern} ({removed} keys)")
        return removed


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> CacheService:
    """Initialize cache service singleton."""
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service
    return _cache_service


def get_cache() -> CacheService:
    """Get cache service instance."""
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
