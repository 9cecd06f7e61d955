from __future__ import annotations

from typing import ClassVar, Optional

from .constants import ValidationErrorKind


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class ConfigurationError(RuntimeError):
    """Raised when issuer or cache configuration is invalid."""
    pass


class JWKSFetchError(Exception):
    """Raised when a JWKS document cannot be fetched or used."""
    pass


class JWKSParseError(JWKSFetchError):
    """Raised when a JWKS document contains no usable keys."""
    pass


class ValidationError(AuthenticationError):
    """
    Base class for every token rejection.

    `detail` is meant for logs only. Anything shown to an end user should
    use `public_message`, which is identical for every kind.
    """

    kind: ClassVar[ValidationErrorKind]
    public_message: ClassVar[str] = "Unauthorized"

    def __init__(
        self,
        detail: str = "",
        *,
        issuer: Optional[str] = None,
        kid: Optional[str] = None,
        issuer_type: Optional[str] = None,
    ) -> None:
        self.detail = detail or self.kind.value
        self.issuer = issuer
        self.kid = kid
        self.issuer_type = issuer_type
        super().__init__(self.detail)

    def with_context(
        self,
        *,
        issuer: Optional[str] = None,
        kid: Optional[str] = None,
        issuer_type: Optional[str] = None,
    ) -> "ValidationError":
        """Fill in context fields that are still empty and return self."""
        self.issuer = self.issuer or issuer
        self.kid = self.kid or kid
        self.issuer_type = self.issuer_type or issuer_type
        return self


class MalformedTokenError(ValidationError):
    """Wrong segment count, undecodable base64 or unparsable JSON."""
    kind = ValidationErrorKind.MALFORMED_TOKEN


class MissingIssuerError(ValidationError):
    """Payload has no `iss` claim."""
    kind = ValidationErrorKind.MISSING_ISSUER


class UnknownIssuerError(ValidationError):
    """`iss` does not match any configured issuer."""
    kind = ValidationErrorKind.UNKNOWN_ISSUER


class KeysUnavailableError(ValidationError):
    """No key set, fresh or stale, could be obtained for the issuer."""
    kind = ValidationErrorKind.KEYS_UNAVAILABLE


class InvalidSignatureError(ValidationError):
    """Signature did not verify against the issuer's keys."""
    kind = ValidationErrorKind.INVALID_SIGNATURE


class TokenExpiredError(ValidationError):
    """Raised when token has expired."""
    kind = ValidationErrorKind.EXPIRED


class TokenNotYetValidError(ValidationError):
    """`nbf` or `iat` lies in the future."""
    kind = ValidationErrorKind.NOT_YET_VALID


class AudienceMismatchError(ValidationError):
    """Configured audience is not in the token's `aud` claim."""
    kind = ValidationErrorKind.AUDIENCE_MISMATCH
