"""
pkg_multiauth.config

- MultiAuthSettings: issuer profiles + cache/fetch options.
- load_issuer_profiles: raw `auth_servers` mapping -> IssuerProfiles.
- settings_from_env: AUTH_SERVERS / JWKS_* environment loader.
"""

from __future__ import annotations

from .env import settings_from_env
from .settings import MultiAuthSettings, load_issuer_profiles

__all__ = [
    "MultiAuthSettings",
    "load_issuer_profiles",
    "settings_from_env",
]
