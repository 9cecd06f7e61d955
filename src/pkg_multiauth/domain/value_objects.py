# src/pkg_multiauth/domain/value_objects.py

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from .constants import CACHE_KEY_PREFIX


# --- Token value objects -------------------------------------------------


@dataclass(frozen=True, slots=True)
class UnverifiedToken:
    """
    Header and payload of a JWT, decoded but NOT signature-checked.

    Only used to pick the issuer and the key id before verification.
    Never trust anything read from here for authorization.
    """
    raw: str
    header: Mapping[str, Any] = field(default_factory=dict)
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def kid(self) -> Optional[str]:
        return self.header.get("kid")

    @property
    def algorithm(self) -> Optional[str]:
        return self.header.get("alg")

    @property
    def issuer(self) -> Optional[str]:
        iss = self.payload.get("iss")
        return iss if isinstance(iss, str) and iss else None


# --- Cache identity ------------------------------------------------------


def issuer_cache_key(issuer_type: str, prefix: str = CACHE_KEY_PREFIX) -> str:
    """
    Stable cache slot name for an issuer type.

    Hashed so that arbitrary config keys are safe as file names and
    Redis keys.
    """
    digest = hashlib.sha256(issuer_type.encode("utf-8")).hexdigest()
    return f"{prefix}{digest}"


# --- Audience ------------------------------------------------------------


def normalize_audience(aud_claim: Any) -> Tuple[str, ...]:
    """
    `aud` may be a single string or a list of strings.
    Anything else normalizes to an empty tuple.
    """
    if isinstance(aud_claim, str):
        return (aud_claim,)
    if isinstance(aud_claim, (list, tuple)):
        return tuple(a for a in aud_claim if isinstance(a, str))
    return ()


def audience_matches(aud_claim: Any, expected: str) -> bool:
    return expected in normalize_audience(aud_claim)
