import threading
from typing import Dict, Optional

from ...domain.entities import StoredJWKS
from ...domain.ports import KeyCacheBackend


class MemoryCacheBackend(KeyCacheBackend):
    """
    Process-local JWKS store.

    Shared by every validator in the process that is handed the same
    instance. For sharing across worker processes use the Redis or file
    backend instead.
    """

    name = "memory"

    def __init__(self) -> None:
        self._data: Dict[str, StoredJWKS] = {}
        self._lock = threading.Lock()

    def try_read(self, cache_key: str) -> Optional[StoredJWKS]:
        with self._lock:
            return self._data.get(cache_key)

    def write(self, cache_key: str, stored: StoredJWKS) -> None:
        with self._lock:
            self._data[cache_key] = stored

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
