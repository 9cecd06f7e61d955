from __future__ import annotations

from typing import Any, Mapping

from .decorators import FastAPIDecorators
from .deps import FastAPIAuthentication
from ..common.auth_factory import (
    AuthDependencies,
    create_auth_dependencies,
    create_auth_dependencies_from_env,
)


def create_fastapi_auth(
    *,
    auth_servers: Mapping[str, Any],
    cache_dir: str | None = None,
    cookie_name: str = "access_token",
    **options: Any,
) -> FastAPIAuthentication:
    """
    High-level helper for FastAPI apps:

    - Creates AuthDependencies from the issuer configuration
    - Wraps them in FastAPIAuthentication, exposing dependencies like:

        fastapi_auth.get_current_claims
        fastapi_auth.get_optional_claims
        fastapi_auth.decorators().authenticated
    """
    auth: AuthDependencies = create_auth_dependencies(
        auth_servers=auth_servers,
        cache_dir=cache_dir,
        **options,
    )
    return FastAPIAuthentication(auth=auth, cookie_name=cookie_name)


def create_fastapi_auth_from_env(*, cookie_name: str = "access_token") -> FastAPIAuthentication:
    return FastAPIAuthentication(auth=create_auth_dependencies_from_env(), cookie_name=cookie_name)


__all__ = [
    "FastAPIAuthentication",
    "FastAPIDecorators",
    "create_fastapi_auth",
    "create_fastapi_auth_from_env",
]
