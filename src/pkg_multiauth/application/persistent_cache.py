from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from ..domain.entities import StoredJWKS
from ..domain.ports import KeyCacheBackend

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PersistentKeyCache:
    """
    Ordered chain of JWKS storage backends (fast shared store first,
    durable store last).

    Contract:
      - `read` never raises: missing, corrupt or unreachable storage is a miss.
      - `read` returns the newest document across all backends; backends
        that missed or hold an older copy are brought up to date.
      - `write` never raises: failing to cache must not fail a validation.
    """

    backends: Sequence[KeyCacheBackend] = field(default_factory=list)
    clock: Callable[[], float] = time.time

    def read(self, cache_key: str) -> Optional[StoredJWKS]:
        found: List[Tuple[KeyCacheBackend, Optional[StoredJWKS]]] = []

        for backend in self.backends:
            try:
                stored = backend.try_read(cache_key)
            except Exception:
                logger.warning(
                    "JWKS cache read failed (backend=%s, key=%s); treating as miss",
                    backend.name,
                    cache_key,
                    exc_info=True,
                )
                stored = None
            found.append((backend, stored))

        hits = [(backend, stored) for backend, stored in found if stored is not None]
        if not hits:
            return None

        # earliest backend wins ties
        source, newest = max(hits, key=lambda hit: hit[1].fetched_at)
        logger.debug("JWKS cache hit (backend=%s, key=%s)", source.name, cache_key)

        outdated = [
            backend for backend, stored in found
            if stored is None or stored.fetched_at < newest.fetched_at
        ]
        self._backfill(outdated, cache_key, newest)
        return newest

    def write(
        self,
        cache_key: str,
        raw_jwks: Mapping[str, Any],
        fetched_at: Optional[float] = None,
    ) -> StoredJWKS:
        stored = StoredJWKS(
            jwks=raw_jwks,
            fetched_at=self.clock() if fetched_at is None else fetched_at,
        )
        for backend in self.backends:
            self._write_one(backend, cache_key, stored)
        return stored

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _backfill(
        self,
        backends: Sequence[KeyCacheBackend],
        cache_key: str,
        stored: StoredJWKS,
    ) -> None:
        # Keeps the original fetch time so freshness is not extended.
        for backend in backends:
            self._write_one(backend, cache_key, stored)

    @staticmethod
    def _write_one(backend: KeyCacheBackend, cache_key: str, stored: StoredJWKS) -> None:
        try:
            backend.write(cache_key, stored)
        except Exception:
            logger.warning(
                "JWKS cache write failed (backend=%s, key=%s)",
                backend.name,
                cache_key,
                exc_info=True,
            )
