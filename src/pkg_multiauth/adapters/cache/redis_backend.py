import json
import logging
from typing import Optional

import redis

from ...domain.constants import DEFAULT_SHARED_CACHE_TTL
from ...domain.entities import StoredJWKS
from ...domain.ports import KeyCacheBackend

logger = logging.getLogger(__name__)


class RedisCacheBackend(KeyCacheBackend):
    """
    JWKS store shared by every worker that talks to the same Redis.

    Each slot expires after `ttl` seconds (24h by default) so abandoned
    issuers do not linger; freshness itself is decided by the key cache
    from the stored fetch time.
    """

    name = "redis"

    def __init__(self, client: redis.Redis, *, ttl: int = DEFAULT_SHARED_CACHE_TTL) -> None:
        self._client = client
        self._ttl = ttl

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        ttl: int = DEFAULT_SHARED_CACHE_TTL,
        socket_timeout: float = 2.0,
    ) -> "RedisCacheBackend":
        client = redis.Redis.from_url(
            url,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        return cls(client, ttl=ttl)

    def try_read(self, cache_key: str) -> Optional[StoredJWKS]:
        raw = self._client.get(cache_key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return StoredJWKS.from_document(json.loads(raw))

    def write(self, cache_key: str, stored: StoredJWKS) -> None:
        payload = json.dumps(stored.to_document(), separators=(",", ":"))
        self._client.set(cache_key, payload, ex=self._ttl)
        logger.debug("Stored JWKS in Redis slot %s", cache_key)
