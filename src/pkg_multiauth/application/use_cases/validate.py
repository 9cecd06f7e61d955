from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Set

from ...adapters.pyjwt.jwt_verifier import decode_unverified, verify_signature
from ...domain.entities import IssuerProfile, ValidatedClaims, ValidationResult
from ...domain.exceptions import (
    AudienceMismatchError,
    ConfigurationError,
    JWKSFetchError,
    KeysUnavailableError,
    MissingIssuerError,
    UnknownIssuerError,
    ValidationError,
)
from ...domain.ports import TokenDecoder
from ...domain.value_objects import UnverifiedToken, audience_matches, normalize_audience
from ..key_cache import KeyCache

logger = logging.getLogger(__name__)


class MultiIssuerJWTValidator(TokenDecoder):
    """
    Validates JWTs from several trusted issuers.

    Each issuer has its own JWKS endpoint, optional audience and cache TTL.
    The issuer is resolved from the (unverified) `iss` claim BEFORE any
    signature check, so a token is only ever verified against the key set
    of the issuer it claims.

    Typical setup: a shared API accepting tokens from a customer auth server
    and an employee/admin auth server, with the caller applying different
    authorization rules depending on `claims.issuer_type`.
    """

    def __init__(
        self,
        profiles: Iterable[IssuerProfile],
        key_cache: KeyCache,
        *,
        leeway: float = 0,
        fetch_timeout: Optional[float] = None,
    ) -> None:
        by_type: dict[str, IssuerProfile] = {}
        by_issuer: dict[str, IssuerProfile] = {}
        for profile in profiles:
            if profile.issuer_type in by_type:
                raise ConfigurationError(f"Duplicate issuer type {profile.issuer_type!r}")
            if profile.issuer_url in by_issuer:
                raise ConfigurationError(
                    f"Issuer URL {profile.issuer_url!r} configured for both "
                    f"{by_issuer[profile.issuer_url].issuer_type!r} and {profile.issuer_type!r}"
                )
            by_type[profile.issuer_type] = profile
            by_issuer[profile.issuer_url] = profile

        self._profiles = MappingProxyType(by_type)
        self._by_issuer = by_issuer
        self._key_cache = key_cache
        self._leeway = leeway
        self._fetch_timeout = fetch_timeout

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def validate(self, token: str, *, timeout: Optional[float] = None) -> ValidationResult:
        """
        Validate `token`; never raises for a rejected token.

        Returns:
            ValidationResult with either `claims` or `error` set.
        """
        try:
            return ValidationResult(claims=self.decode(token, timeout=timeout))
        except ValidationError as exc:
            return ValidationResult(error=exc)

    def decode(self, token: str, *, timeout: Optional[float] = None) -> ValidatedClaims:
        """
        Validate `token` and return its claims tagged with `issuer_type`.

        Raises:
            MalformedTokenError
            MissingIssuerError
            UnknownIssuerError
            KeysUnavailableError
            InvalidSignatureError
            TokenExpiredError
            TokenNotYetValidError
            AudienceMismatchError
        """
        unverified: Optional[UnverifiedToken] = None
        profile: Optional[IssuerProfile] = None
        try:
            unverified = decode_unverified(token)
            profile = self._resolve_profile(unverified)
            return self._verify(unverified, profile, timeout=timeout)
        except ValidationError as exc:
            exc.with_context(
                issuer=unverified.payload.get("iss") if unverified is not None else None,
                kid=unverified.kid if unverified is not None else None,
                issuer_type=profile.issuer_type if profile is not None else None,
            )
            logger.warning(
                "JWT rejected [%s]: %s (iss=%r, kid=%r, issuer_type=%r)",
                exc.kind.value,
                exc.detail,
                exc.issuer,
                exc.kid,
                exc.issuer_type,
            )
            raise

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def issuer_profiles(self) -> Mapping[str, IssuerProfile]:
        return self._profiles

    @property
    def key_cache(self) -> KeyCache:
        return self._key_cache

    def has_issuer_type(self, issuer_type: str) -> bool:
        return issuer_type in self._profiles

    def list_issuer_types(self) -> Set[str]:
        return set(self._profiles)

    # ------------------------------------------------------------------ #
    # Internal steps
    # ------------------------------------------------------------------ #

    def _resolve_profile(self, unverified: UnverifiedToken) -> IssuerProfile:
        issuer = unverified.issuer
        if issuer is None:
            raise MissingIssuerError("Token has no 'iss' claim")

        # exact match only: no normalization, no trailing-slash tolerance
        profile = self._by_issuer.get(issuer)
        if profile is None:
            raise UnknownIssuerError(f"Unknown issuer {issuer!r}")
        return profile

    def _verify(
        self,
        unverified: UnverifiedToken,
        profile: IssuerProfile,
        *,
        timeout: Optional[float],
    ) -> ValidatedClaims:
        try:
            key_set = self._key_cache.get_or_refresh(
                profile,
                unverified.kid,
                timeout=timeout if timeout is not None else self._fetch_timeout,
            )
        except JWKSFetchError as exc:
            raise KeysUnavailableError(str(exc)) from exc

        payload = verify_signature(
            unverified.raw,
            key_set,
            kid=unverified.kid,
            leeway=self._leeway,
        )

        if profile.audience is not None and not audience_matches(payload.get("aud"), profile.audience):
            raise AudienceMismatchError(
                f"Invalid audience: expected {profile.audience!r}, "
                f"got {list(normalize_audience(payload.get('aud')))}"
            )

        return ValidatedClaims(payload, issuer_type=profile.issuer_type, kid=unverified.kid)
