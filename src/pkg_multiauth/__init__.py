"""
pkg_multiauth

Multi-issuer JWT validation with persistent, rotation-aware JWKS caching.
Framework-agnostic core, with optional FastAPI / Strawberry integrations.
"""

__version__ = "0.1.0"

from .domain.constants import ValidationErrorKind
from .domain.entities import (
    CacheEntry,
    IssuerProfile,
    KeySet,
    StoredJWKS,
    ValidatedClaims,
    ValidationResult,
)
from .domain.exceptions import (
    AudienceMismatchError,
    AuthenticationError,
    ConfigurationError,
    InvalidSignatureError,
    JWKSFetchError,
    JWKSParseError,
    KeysUnavailableError,
    MalformedTokenError,
    MissingIssuerError,
    TokenExpiredError,
    TokenNotYetValidError,
    UnknownIssuerError,
    ValidationError,
)
from .domain.ports import JWKSFetcher, KeyCacheBackend, TokenDecoder
from .domain.value_objects import issuer_cache_key

from .application.key_cache import KeyCache
from .application.persistent_cache import PersistentKeyCache
from .application.use_cases.validate import MultiIssuerJWTValidator

from .adapters.cache.file_backend import FileCacheBackend
from .adapters.cache.memory_backend import MemoryCacheBackend
from .adapters.jwks.fetcher import RequestsJWKSFetcher
from .adapters.jwks.parser import parse_key_set

from .config import MultiAuthSettings, load_issuer_profiles, settings_from_env
from .integrations.common.auth_factory import (
    AuthDependencies,
    create_auth_dependencies,
    create_auth_dependencies_from_env,
    create_validator,
)

__all__ = [
    "__version__",
    # domain core
    "IssuerProfile",
    "KeySet",
    "CacheEntry",
    "StoredJWKS",
    "ValidatedClaims",
    "ValidationResult",
    "ValidationErrorKind",
    "TokenDecoder",
    "JWKSFetcher",
    "KeyCacheBackend",
    "issuer_cache_key",
    # exceptions
    "AuthenticationError",
    "ValidationError",
    "MalformedTokenError",
    "MissingIssuerError",
    "UnknownIssuerError",
    "KeysUnavailableError",
    "InvalidSignatureError",
    "TokenExpiredError",
    "TokenNotYetValidError",
    "AudienceMismatchError",
    "JWKSFetchError",
    "JWKSParseError",
    "ConfigurationError",
    # application
    "MultiIssuerJWTValidator",
    "KeyCache",
    "PersistentKeyCache",
    # adapters (RedisCacheBackend lives in adapters.cache.redis_backend)
    "RequestsJWKSFetcher",
    "FileCacheBackend",
    "MemoryCacheBackend",
    "parse_key_set",
    # configuration / wiring
    "MultiAuthSettings",
    "load_issuer_profiles",
    "settings_from_env",
    "AuthDependencies",
    "create_auth_dependencies",
    "create_auth_dependencies_from_env",
    "create_validator",
]
