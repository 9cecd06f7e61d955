from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..domain.constants import DEFAULT_FETCH_TIMEOUT
from ..domain.entities import IssuerProfile
from ..domain.exceptions import ConfigurationError


def load_issuer_profiles(auth_servers: Mapping[str, Any]) -> Dict[str, IssuerProfile]:
    """
    Turn an `auth_servers` mapping into IssuerProfiles:

        {
            "customer": {"issuer": "https://auth.example.com",
                         "jwks_url": "https://auth.example.com/auth/jwks",
                         "audience": "my-api",
                         "cache_ttl": 3600},
            "employee": {...},
        }

    Values that are already IssuerProfile instances are kept as they are.
    """
    if not isinstance(auth_servers, Mapping):
        raise ConfigurationError("auth_servers must be a mapping of issuer type -> config")

    profiles: Dict[str, IssuerProfile] = {}
    seen_issuers: Dict[str, str] = {}
    for issuer_type, config in auth_servers.items():
        if isinstance(config, IssuerProfile):
            if config.issuer_type != issuer_type:
                raise ConfigurationError(
                    f"Profile for {issuer_type!r} has issuer_type {config.issuer_type!r}"
                )
            profile = config
        else:
            profile = IssuerProfile.from_mapping(str(issuer_type), config)

        other = seen_issuers.get(profile.issuer_url)
        if other is not None:
            raise ConfigurationError(
                f"Issuer URL {profile.issuer_url!r} configured for both {other!r} and {issuer_type!r}"
            )
        seen_issuers[profile.issuer_url] = profile.issuer_type
        profiles[profile.issuer_type] = profile

    return profiles


@dataclass(slots=True)
class MultiAuthSettings:
    """
    Validator + cache wiring settings.

    Host code decides how to construct this (env, config file, etc.).
    """
    auth_servers: Dict[str, IssuerProfile] = field(default_factory=dict)

    # Persistent cache
    cache_dir: Optional[str] = None
    file_cache: bool = True
    redis_url: Optional[str] = None

    # Fetching
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    verify_ssl: bool = True
    refetch_interval: float = 0.0

    # Verification
    leeway: float = 0.0
    max_stale_age: Optional[float] = None

    @classmethod
    def from_mapping(cls, auth_servers: Mapping[str, Any], **options: Any) -> "MultiAuthSettings":
        return cls(auth_servers=load_issuer_profiles(auth_servers), **options)
