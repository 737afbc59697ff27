"""Redis-based key/value cache with per-namespace keys and TTL."""

import json
import logging
from typing import Any

import redis

from tools import load_redis_settings

_log = logging.getLogger(__name__)


class CacheService:
    """
    Redis-based cache with automatic fallback to no-cache mode.

    Every key is stored under ``{key_prefix}:{namespace}:{key}`` so that a
    namespace can be flushed on its own. Values are JSON encoded, which keeps
    lists and dicts intact across a round trip.
    """

    def __init__(
        self,
        namespace: str,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        key_prefix: str = "entity",
        enabled: bool = True,
        client: Any = None,
    ):
        """
        Initialize the cache.

        Args:
            namespace: Name of the cache (e.g. "json_ld_images")
            host: Redis host address
            port: Redis port number
            db: Redis database number
            key_prefix: Prefix for all cache keys
            enabled: Whether caching is enabled (can be disabled for debugging)
            client: Pre-built Redis client, used instead of connecting
        """
        self.namespace = namespace
        self.enabled = enabled
        self.key_prefix = key_prefix
        self._client = None

        if not self.enabled:
            return

        try:
            if client is None:
                client = redis.Redis(
                    host=host,
                    port=port,
                    db=db,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
            self._client = client
            # Test connection
            self._client.ping()
            _log.info(f"[cache:{namespace}] Connected to Redis at {host}:{port}")
        except Exception as e:
            _log.info(f"[cache:{namespace}] Redis connection failed: {e}")
            _log.info(" Running without cache")
            self._client = None
            self.enabled = False

    def _make_key(self, key: Any) -> str:
        """
        Create a full Redis key.

        Args:
            key: The key inside this namespace (ids are converted to str)

        Returns:
            Full Redis key with prefix and namespace
        """
        return f"{self.key_prefix}:{self.namespace}:{key}"

    def get(self, key: Any) -> Any | None:
        """
        Get a cached value.

        Args:
            key: The key to look up

        Returns:
            The decoded value if found, None otherwise
        """
        if not self.enabled or self._client is None:
            return None

        try:
            value = self._client.get(self._make_key(key))
        except redis.RedisError as e:
            _log.info(f"[cache:{self.namespace}] get error: {e}")
            return None

        if value is None:
            _log.debug(f"[cache:{self.namespace}] MISS {key}")
            return None

        try:
            decoded = json.loads(value)
        except (TypeError, ValueError):
            _log.info(f"[cache:{self.namespace}] Dropping undecodable entry {key}")
            return None

        _log.debug(f"[cache:{self.namespace}] HIT {key}")
        return decoded

    def set(self, key: Any, value: Any, ttl: int | None = None) -> bool:
        """
        Store a value in the cache.

        Args:
            key: The key to store under
            value: Any JSON-serializable value
            ttl: Time-to-live in seconds, None to keep the entry forever

        Returns:
            True if successful, False otherwise
        """
        if not self.enabled or self._client is None:
            return False

        payload = json.dumps(value, ensure_ascii=False)
        try:
            if ttl:
                self._client.setex(self._make_key(key), ttl, payload)
            else:
                self._client.set(self._make_key(key), payload)
        except redis.RedisError as e:
            _log.info(f"[cache:{self.namespace}] set error: {e}")
            return False

        _log.debug(f"[cache:{self.namespace}] STORE {key}")
        return True

    def delete(self, key: Any) -> bool:
        """
        Delete a cached value.

        Args:
            key: The key to delete

        Returns:
            True if successful, False otherwise
        """
        if not self.enabled or self._client is None:
            return False

        try:
            self._client.delete(self._make_key(key))
            return True
        except redis.RedisError as e:
            _log.info(f"[cache:{self.namespace}] delete error: {e}")
            return False

    def flush(self) -> bool:
        """
        Clear all cache entries in this namespace.

        Returns:
            True if successful, False otherwise
        """
        if not self.enabled or self._client is None:
            return False

        try:
            pattern = self._make_key("*")
            keys = list(self._client.scan_iter(match=pattern))
            if keys:
                self._client.delete(*keys)
            _log.info(f"[cache:{self.namespace}] Cleared {len(keys)} cache entries")
            return True
        except redis.RedisError as e:
            _log.info(f"[cache:{self.namespace}] flush error: {e}")
            return False

    def get_stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        if not self.enabled or self._client is None:
            return {
                "enabled": False,
                "connected": False,
                "entries": 0,
            }

        try:
            pattern = self._make_key("*")
            key_count = sum(1 for _ in self._client.scan_iter(match=pattern))

            return {
                "enabled": True,
                "connected": True,
                "entries": key_count,
                "namespace": self.namespace,
            }
        except redis.RedisError as e:
            _log.info(f"Stats error: {e}")
            return {
                "enabled": True,
                "connected": False,
                "error": str(e),
            }


# Global cache instances, one per namespace
_caches: dict[str, CacheService] = {}


def get_cache(namespace: str, enabled: bool = True) -> CacheService:
    """
    Get or create the process-wide cache instance for a namespace.

    Connection settings come from the ENTITY_REDIS_* environment variables.

    Args:
        namespace: Name of the cache
        enabled: Whether caching is enabled

    Returns:
        CacheService instance
    """
    if namespace not in _caches:
        _caches[namespace] = CacheService(
            namespace, enabled=enabled, **load_redis_settings()
        )
    return _caches[namespace]
