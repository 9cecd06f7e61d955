from __future__ import annotations

import json
import os
from typing import Optional

from ..domain.constants import DEFAULT_FETCH_TIMEOUT
from ..domain.exceptions import ConfigurationError
from .settings import MultiAuthSettings, load_issuer_profiles


def settings_from_env() -> MultiAuthSettings:
    """
    Build settings from environment variables.

    AUTH_SERVERS (required) holds the issuer mapping as a JSON object.
    """
    def _bool(key: str, default: bool) -> bool:
        raw = os.getenv(key)
        if raw is None:
            return default
        return str(raw).strip().lower() in {"1", "true", "yes", "on"}

    def _float(key: str, default: Optional[float]) -> Optional[float]:
        raw = os.getenv(key)
        if raw is None or not raw.strip():
            return default
        try:
            return float(raw)
        except ValueError as exc:
            raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc

    raw_servers = os.getenv("AUTH_SERVERS")
    if not raw_servers:
        raise ConfigurationError("Missing multi-auth settings: AUTH_SERVERS")
    try:
        auth_servers = json.loads(raw_servers)
    except ValueError as exc:
        raise ConfigurationError("AUTH_SERVERS is not valid JSON") from exc

    return MultiAuthSettings(
        auth_servers=load_issuer_profiles(auth_servers),
        cache_dir=os.getenv("JWKS_CACHE_DIR") or None,
        file_cache=_bool("JWKS_FILE_CACHE", True),
        redis_url=os.getenv("JWKS_REDIS_URL") or None,
        fetch_timeout=_float("JWKS_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
        verify_ssl=_bool("VERIFY_SSL", True),
        refetch_interval=_float("JWKS_REFETCH_INTERVAL", 0.0),
        leeway=_float("JWT_LEEWAY", 0.0),
        max_stale_age=_float("JWKS_MAX_STALE_AGE", None),
    )
