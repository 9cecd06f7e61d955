from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from ...adapters.cache.file_backend import FileCacheBackend
from ...adapters.jwks.fetcher import RequestsJWKSFetcher
from ...application.key_cache import KeyCache
from ...application.persistent_cache import PersistentKeyCache
from ...application.use_cases.validate import MultiIssuerJWTValidator
from ...config.env import settings_from_env
from ...config.settings import MultiAuthSettings
from ...domain.entities import ValidatedClaims, ValidationResult
from ...domain.ports import JWKSFetcher, KeyCacheBackend


@dataclass(slots=True)
class AuthDependencies:
    """
    Framework-agnostic auth facade.

    Integrations (FastAPI, Strawberry, etc.) adapt this to their own
    dependency / decorator systems.
    """

    validator: MultiIssuerJWTValidator

    def authenticate(self, token: str) -> ValidatedClaims:
        """Token -> ValidatedClaims (or raise ValidationError)."""
        return self.validator.decode(token)

    def validate(self, token: str) -> ValidationResult:
        """Token -> ValidationResult, never raises for bad tokens."""
        return self.validator.validate(token)


def build_cache_backends(settings: MultiAuthSettings) -> List[KeyCacheBackend]:
    """Shared fast store first (Redis), durable file store last."""
    backends: List[KeyCacheBackend] = []
    if settings.redis_url:
        # redis is an optional extra; only needed when a URL is configured
        from ...adapters.cache.redis_backend import RedisCacheBackend

        backends.append(RedisCacheBackend.from_url(settings.redis_url))
    if settings.file_cache:
        backends.append(FileCacheBackend(settings.cache_dir))
    return backends


def create_validator(
    settings: MultiAuthSettings,
    *,
    fetcher: Optional[JWKSFetcher] = None,
    backends: Optional[Sequence[KeyCacheBackend]] = None,
) -> MultiIssuerJWTValidator:
    """
    Settings -> fully wired validator (fetcher, persistent cache, key cache).

    `fetcher` and `backends` override the defaults, mostly for tests.
    """
    if fetcher is None:
        fetcher = RequestsJWKSFetcher(
            timeout=settings.fetch_timeout,
            verify=settings.verify_ssl,
        )
    if backends is None:
        backends = build_cache_backends(settings)

    persistent = PersistentKeyCache(backends=list(backends)) if backends else None
    key_cache = KeyCache(
        fetcher,
        persistent,
        max_stale_age=settings.max_stale_age,
        refetch_interval=settings.refetch_interval,
    )
    return MultiIssuerJWTValidator(
        settings.auth_servers.values(),
        key_cache,
        leeway=settings.leeway,
        fetch_timeout=settings.fetch_timeout,
    )


def create_auth_dependencies(
    *,
    auth_servers: Mapping[str, Any],
    cache_dir: Optional[str] = None,
    fetcher: Optional[JWKSFetcher] = None,
    backends: Optional[Sequence[KeyCacheBackend]] = None,
    **options: Any,
) -> AuthDependencies:
    """
    High-level factory: `auth_servers` config -> AuthDependencies.

        auth = create_auth_dependencies(
            auth_servers={
                "customer": {"issuer": "https://auth.example.com",
                             "jwks_url": "https://auth.example.com/auth/jwks"},
                "employee": {"issuer": "https://admin-auth.example.com",
                             "jwks_url": "https://admin-auth.example.com/auth/jwks"},
            },
            cache_dir="/var/cache/my-api",
        )

    Extra keyword options are passed to MultiAuthSettings.
    """
    settings = MultiAuthSettings.from_mapping(auth_servers, cache_dir=cache_dir, **options)
    validator = create_validator(settings, fetcher=fetcher, backends=backends)
    return AuthDependencies(validator=validator)


def create_auth_dependencies_from_env() -> AuthDependencies:
    """Same as `create_auth_dependencies`, configured from AUTH_SERVERS / JWKS_*."""
    return AuthDependencies(validator=create_validator(settings_from_env()))
