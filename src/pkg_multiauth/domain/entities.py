from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, List, Optional, Tuple

from .constants import DEFAULT_CACHE_TTL, ISSUER_TYPE_CLAIM, ValidationErrorKind
from .exceptions import ConfigurationError, ValidationError
from .value_objects import normalize_audience


@dataclass(frozen=True, slots=True)
class IssuerProfile:
    """
    Static configuration of one trusted issuer.

    `issuer_type` is the configuration key ("customer", "employee", ...).
    The validator never interprets it, it only copies it into the claims.
    """
    issuer_type: str
    issuer_url: str
    jwks_url: str
    audience: Optional[str] = None
    cache_ttl: float = DEFAULT_CACHE_TTL

    def __post_init__(self) -> None:
        if not self.issuer_type:
            raise ConfigurationError("Issuer type must not be empty")
        if not self.issuer_url:
            raise ConfigurationError(f"Issuer {self.issuer_type!r}: missing issuer URL")
        if not self.jwks_url:
            raise ConfigurationError(f"Issuer {self.issuer_type!r}: missing jwks_url")
        if self.cache_ttl <= 0:
            raise ConfigurationError(
                f"Issuer {self.issuer_type!r}: cache_ttl must be positive, got {self.cache_ttl!r}"
            )

    @classmethod
    def from_mapping(cls, issuer_type: str, config: Mapping[str, Any]) -> "IssuerProfile":
        """
        Build a profile from a raw config entry:

            {"issuer": "...", "jwks_url": "...", "audience": "...", "cache_ttl": 3600}

        `issuer_url` is accepted as an alias of `issuer`.
        """
        if not isinstance(config, Mapping):
            raise ConfigurationError(f"Issuer {issuer_type!r}: config must be a mapping")

        issuer = config.get("issuer", config.get("issuer_url"))
        jwks_url = config.get("jwks_url")
        missing = [n for n, v in (("issuer", issuer), ("jwks_url", jwks_url)) if not v]
        if missing:
            raise ConfigurationError(
                f"Issuer {issuer_type!r}: missing {', '.join(missing)}"
            )

        raw_ttl = config.get("cache_ttl", DEFAULT_CACHE_TTL)
        try:
            cache_ttl = float(raw_ttl)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"Issuer {issuer_type!r}: invalid cache_ttl {raw_ttl!r}"
            ) from exc

        audience = config.get("audience")
        return cls(
            issuer_type=issuer_type,
            issuer_url=str(issuer),
            jwks_url=str(jwks_url),
            audience=str(audience) if audience else None,
            cache_ttl=cache_ttl,
        )


@dataclass(frozen=True, slots=True)
class KeySet:
    """
    Usable public keys of one issuer, indexed by `kid`.

    Values are PyJWT `PyJWK` objects; the domain layer treats them as opaque.
    A KeySet is built once from a whole JWKS document and never mutated.
    """
    keys: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __contains__(self, kid: object) -> bool:
        return kid in self.keys

    def __len__(self) -> int:
        return len(self.keys)

    @property
    def kids(self) -> Tuple[str, ...]:
        return tuple(self.keys)

    def get(self, kid: str) -> Any:
        return self.keys.get(kid)

    def candidates(self, kid: Optional[str]) -> List[Any]:
        """
        Keys to try for a token: the one named by `kid`, or every key when
        the token carries no `kid`.
        """
        if kid is None:
            return list(self.keys.values())
        key = self.keys.get(kid)
        return [key] if key is not None else []


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key_set: KeySet
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, ttl: float, now: float) -> bool:
        return self.age(now) < ttl

    def satisfies(self, required_kid: Optional[str]) -> bool:
        return required_kid is None or required_kid in self.key_set


@dataclass(frozen=True, slots=True)
class StoredJWKS:
    """
    Raw JWKS document as persisted by the cache backends.

    On disk / in Redis it is `{"jwks": <document>, "time": <unix ts>}`.
    """
    jwks: Mapping[str, Any]
    fetched_at: float

    def to_document(self) -> dict[str, Any]:
        return {"jwks": dict(self.jwks), "time": self.fetched_at}

    @classmethod
    def from_document(cls, data: Any) -> "StoredJWKS":
        if not isinstance(data, Mapping):
            raise ValueError("Cached JWKS entry is not an object")
        jwks = data.get("jwks")
        fetched_at = data.get("time")
        if not isinstance(jwks, Mapping):
            raise ValueError("Cached JWKS entry has no 'jwks' document")
        if isinstance(fetched_at, bool) or not isinstance(fetched_at, (int, float)):
            raise ValueError("Cached JWKS entry has no valid 'time'")
        return cls(jwks=jwks, fetched_at=float(fetched_at))


class ValidatedClaims(Mapping):
    """
    Verified token payload plus the injected `issuer_type`.

    Behaves like a read-only dict (so issuers can add any custom claim) and
    offers typed accessors for the registered claims the validator relies on.
    """

    __slots__ = ("_claims", "_kid")

    def __init__(
        self,
        claims: Mapping[str, Any],
        issuer_type: str,
        kid: Optional[str] = None,
    ) -> None:
        data = dict(claims)
        data[ISSUER_TYPE_CLAIM] = issuer_type
        self._claims = data
        self._kid = kid

    def __getitem__(self, key: str) -> Any:
        return self._claims[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def __repr__(self) -> str:
        return f"ValidatedClaims({self._claims!r})"

    def to_dict(self) -> dict[str, Any]:
        return dict(self._claims)

    # --- Typed accessors --------------------------------------------------

    @property
    def issuer_type(self) -> str:
        return self._claims[ISSUER_TYPE_CLAIM]

    @property
    def kid(self) -> Optional[str]:
        return self._kid

    @property
    def issuer(self) -> Optional[str]:
        return self._claims.get("iss")

    @property
    def subject(self) -> Any:
        return self._claims.get("sub")

    @property
    def audiences(self) -> Tuple[str, ...]:
        return normalize_audience(self._claims.get("aud"))

    @property
    def expires_at(self) -> Optional[int]:
        return self._claims.get("exp")

    @property
    def not_before(self) -> Optional[int]:
        return self._claims.get("nbf")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of `validate`: exactly one of `claims` / `error` is set."""
    claims: Optional[ValidatedClaims] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.claims is not None

    @property
    def kind(self) -> Optional[ValidationErrorKind]:
        return self.error.kind if self.error is not None else None
