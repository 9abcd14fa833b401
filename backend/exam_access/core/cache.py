import json
import logging
from typing import Any, Optional

import redis

from .config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """Redis-backed cache. Every failure degrades to a miss, never to an error."""

    def __init__(self, redis_url: Optional[str] = None, default_ttl: Optional[int] = None,
                 enabled: Optional[bool] = None):
        self.redis_url = redis_url or settings.redis_url
        self.default_ttl = default_ttl or settings.policy_cache_ttl
        self.enabled = settings.policy_cache_enabled if enabled is None else enabled

        self._sync_client = None

    @property
    def sync_client(self) -> redis.Redis:
        if self._sync_client is None:
            self._sync_client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True
            )
        return self._sync_client

    def _serialize_value(self, value: Any) -> str:
        return json.dumps(value, default=str)

    def _deserialize_value(self, value: Optional[str]) -> Any:
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Cache deserialization error: {e}, value: {value}")
            return None

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            value = self.sync_client.get(key)
            return self._deserialize_value(value) if value else None
        except redis.RedisError as e:
            logger.warning(f"Cache get error for key '{key}': {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            ttl = ttl or self.default_ttl
            return bool(self.sync_client.setex(key, ttl, self._serialize_value(value)))
        except redis.RedisError as e:
            logger.warning(f"Cache set error for key '{key}': {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        if not self.enabled:
            return 0
        try:
            keys = list(self.sync_client.scan_iter(match=pattern))
            if keys:
                return self.sync_client.delete(*keys)
            return 0
        except redis.RedisError as e:
            logger.warning(f"Cache delete pattern error for '{pattern}': {e}")
            return 0

    def health_check(self) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(self.sync_client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        if self._sync_client is not None:
            self._sync_client.close()
            self._sync_client = None


cache = CacheManager()
