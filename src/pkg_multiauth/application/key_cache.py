from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional

from ..adapters.jwks.parser import parse_key_set
from ..domain.entities import CacheEntry, IssuerProfile, KeySet
from ..domain.exceptions import JWKSFetchError, JWKSParseError
from ..domain.ports import JWKSFetcher
from ..domain.value_objects import issuer_cache_key
from .persistent_cache import PersistentKeyCache

logger = logging.getLogger(__name__)


class KeyCache:
    """
    Per-validator, in-memory JWKS cache layered over the persistent cache.

    Lookup order for `get_or_refresh`:
      1. in-memory entry, fresh and containing the token's kid
      2. persistent entry, fresh and containing the token's kid
      3. network fetch (stored in both layers)
      4. on fetch failure: newest known key set, however old

    A kid that is missing from an otherwise fresh key set is treated as a
    rotation signal and always goes to step 3.

    `max_stale_age` (seconds) caps how old a step-4 fallback may be;
    None means no cap. `refetch_interval` (seconds) throttles network
    attempts per issuer once any key set is known; 0 disables it.
    """

    def __init__(
        self,
        fetcher: JWKSFetcher,
        persistent: Optional[PersistentKeyCache] = None,
        *,
        clock: Callable[[], float] = time.time,
        max_stale_age: Optional[float] = None,
        refetch_interval: float = 0.0,
        parser: Callable[[Mapping[str, Any]], KeySet] = parse_key_set,
    ) -> None:
        self._fetcher = fetcher
        self._persistent = persistent
        self._clock = clock
        self._max_stale_age = max_stale_age
        self._refetch_interval = refetch_interval
        self._parse = parser

        self._entries: Dict[str, CacheEntry] = {}
        self._last_attempt: Dict[str, float] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def get_or_refresh(
        self,
        profile: IssuerProfile,
        required_kid: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> KeySet:
        """
        Return a key set for `profile`, fetching only when needed.

        Raises:
            JWKSFetchError if no usable key set exists at all.
        """
        cache_key = issuer_cache_key(profile.issuer_type)

        with self._lock_for(cache_key):
            now = self._clock()

            entry = self._entries.get(cache_key)
            if entry is not None and entry.is_fresh(profile.cache_ttl, now) and entry.satisfies(required_kid):
                return entry.key_set

            fallback = entry
            persisted = self._read_persistent(profile, cache_key)
            if persisted is not None:
                if persisted.is_fresh(profile.cache_ttl, now) and persisted.satisfies(required_kid):
                    logger.debug("Loaded JWKS for issuer %r from persistent cache", profile.issuer_type)
                    self._entries[cache_key] = persisted
                    return persisted.key_set
                if fallback is None or persisted.fetched_at > fallback.fetched_at:
                    fallback = persisted

            if fallback is not None and self._throttled(cache_key, now):
                return self._use_fallback(profile, cache_key, fallback, now, "refetch throttled")

            if entry is not None and required_kid is not None and not entry.satisfies(required_kid):
                logger.info(
                    "kid %r not in cached JWKS for issuer %r; refetching (possible key rotation)",
                    required_kid,
                    profile.issuer_type,
                )

            try:
                return self._fetch_and_store(profile, cache_key, timeout=timeout)
            except JWKSFetchError as exc:
                logger.warning(
                    "JWKS fetch failed for issuer %r from %s: %s",
                    profile.issuer_type,
                    profile.jwks_url,
                    exc,
                )
                if fallback is None:
                    raise JWKSFetchError(
                        f"No JWKS available for issuer {profile.issuer_type!r}"
                    ) from exc

            return self._use_fallback(profile, cache_key, fallback, now, "fetch failed")

    def refresh(self, profile: IssuerProfile, *, timeout: Optional[float] = None) -> KeySet:
        """Force a network fetch for `profile` and store it in both layers."""
        cache_key = issuer_cache_key(profile.issuer_type)
        with self._lock_for(cache_key):
            return self._fetch_and_store(profile, cache_key, timeout=timeout)

    def cached_entry(self, issuer_type: str) -> Optional[CacheEntry]:
        return self._entries.get(issuer_cache_key(issuer_type))

    def reset(self, issuer_type: Optional[str] = None) -> None:
        """Drop in-memory entries (all of them, or one issuer's)."""
        if issuer_type is None:
            self._entries.clear()
            self._last_attempt.clear()
            return
        cache_key = issuer_cache_key(issuer_type)
        self._entries.pop(cache_key, None)
        self._last_attempt.pop(cache_key, None)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _lock_for(self, cache_key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(cache_key)
            if lock is None:
                lock = self._locks[cache_key] = threading.Lock()
            return lock

    def _read_persistent(self, profile: IssuerProfile, cache_key: str) -> Optional[CacheEntry]:
        if self._persistent is None:
            return None

        stored = self._persistent.read(cache_key)
        if stored is None:
            return None

        try:
            key_set = self._parse(stored.jwks)
        except JWKSParseError as exc:
            logger.warning(
                "Ignoring unusable persisted JWKS for issuer %r: %s",
                profile.issuer_type,
                exc,
            )
            return None
        return CacheEntry(key_set=key_set, fetched_at=stored.fetched_at)

    def _throttled(self, cache_key: str, now: float) -> bool:
        if self._refetch_interval <= 0:
            return False
        last = self._last_attempt.get(cache_key)
        return last is not None and (now - last) < self._refetch_interval

    def _fetch_and_store(
        self,
        profile: IssuerProfile,
        cache_key: str,
        *,
        timeout: Optional[float],
    ) -> KeySet:
        self._last_attempt[cache_key] = self._clock()

        raw = self._fetcher.fetch(profile.jwks_url, timeout=timeout)
        key_set = self._parse(raw)

        fetched_at = self._clock()
        if self._persistent is not None:
            self._persistent.write(cache_key, raw, fetched_at=fetched_at)
        self._entries[cache_key] = CacheEntry(key_set=key_set, fetched_at=fetched_at)

        logger.info(
            "Fetched JWKS for issuer %r from %s (%d keys)",
            profile.issuer_type,
            profile.jwks_url,
            len(key_set),
        )
        return key_set

    def _use_fallback(
        self,
        profile: IssuerProfile,
        cache_key: str,
        fallback: CacheEntry,
        now: float,
        reason: str,
    ) -> KeySet:
        age = fallback.age(now)
        if self._max_stale_age is not None and age > self._max_stale_age:
            logger.error(
                "Refusing stale JWKS for issuer %r (%s): age %.0fs exceeds limit %.0fs",
                profile.issuer_type,
                reason,
                age,
                self._max_stale_age,
            )
            raise JWKSFetchError(
                f"Cached JWKS for issuer {profile.issuer_type!r} is too old to use"
            )

        logger.warning(
            "Using cached JWKS for issuer %r (%s, age %.0fs)",
            profile.issuer_type,
            reason,
            age,
        )
        self._entries[cache_key] = fallback
        return fallback.key_set
