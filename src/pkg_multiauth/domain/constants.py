from enum import Enum


DEFAULT_CACHE_TTL = 3600.0
DEFAULT_FETCH_TIMEOUT = 5.0
DEFAULT_SHARED_CACHE_TTL = 86400
CACHE_KEY_PREFIX = "pkg_multiauth_jwks_"

ISSUER_TYPE_CLAIM = "issuer_type"


class ValidationErrorKind(Enum):
    MALFORMED_TOKEN = "malformed_token"
    MISSING_ISSUER = "missing_issuer"
    UNKNOWN_ISSUER = "unknown_issuer"
    KEYS_UNAVAILABLE = "keys_unavailable"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    AUDIENCE_MISMATCH = "audience_mismatch"
