from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .entities import StoredJWKS


class TokenDecoder(Protocol):
    """
    Port for decoding an access token into claims.

    Implemented by the multi-issuer validator.
    """

    def decode(self, token: str) -> Mapping[str, Any]:
        """
        Decode and verify the given token.

        Should:
          - verify signature
          - check expiry and basic claims
        Raises:
          - ValidationError subclasses
        """
        ...


class JWKSFetcher(Protocol):
    """Port for retrieving a raw JWKS document over the network."""

    def fetch(self, jwks_url: str, *, timeout: Optional[float] = None) -> dict[str, Any]:
        """
        Return the parsed JSON body (`{"keys": [...]}`).

        Raises:
          - JWKSFetchError on transport errors, non-2xx or malformed bodies
        """
        ...


class KeyCacheBackend(Protocol):
    """
    One storage strategy of the persistent key cache.

    Backends may raise on I/O or decoding errors; the composite cache
    turns those into misses.
    """

    name: str

    def try_read(self, cache_key: str) -> Optional[StoredJWKS]:
        ...

    def write(self, cache_key: str, stored: StoredJWKS) -> None:
        ...
