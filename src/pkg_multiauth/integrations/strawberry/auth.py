from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Type

from graphql import GraphQLError
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from strawberry.permission import BasePermission
from strawberry.types import Info

from ...domain.entities import ValidatedClaims
from ...domain.exceptions import ValidationError
from ..common.auth_factory import AuthDependencies, create_auth_dependencies


# --------------------------------------------------------------------- #
# Context type used by Strawberry
# --------------------------------------------------------------------- #

@dataclass(slots=True)
class StrawberryAuthContext:
    """
    Default context type for Strawberry GraphQL.

    You can use this directly, or extend it in your app by adding more fields.
    """
    request: Request
    claims: Optional[ValidatedClaims] = None
    extra: Any = None  # host app can put UoW, services, etc. here if desired


# --------------------------------------------------------------------- #
# Helper: token extraction (header + cookie)
# --------------------------------------------------------------------- #

def _extract_token_from_request(
    request: Request,
    cookie_name: str,
) -> Optional[str]:
    """
    Framework-agnostic token extractor:

      1. Authorization: Bearer <token>
      2. Cookie: cookie_name
    """
    auth_header = request.headers.get("Authorization")
    scheme, _, token = (auth_header or "").partition(" ")
    if scheme.lower() == "bearer":  # scheme is case-insensitive
        token = token.strip()
        if token:
            return token

    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        return cookie_token

    return None


# --------------------------------------------------------------------- #
# Main integration: StrawberryAuth
# --------------------------------------------------------------------- #

@dataclass(slots=True)
class StrawberryAuth:
    """
    Strawberry GraphQL integration for pkg_multiauth.

    Responsibilities:
      - provide a `context_getter` for Strawberry's GraphQLRouter
      - provide a permission class for fields that need a valid token

    Callers that treat issuers differently read `context.claims.issuer_type`.
    """

    auth: AuthDependencies
    cookie_name: str = "access_token"

    def make_context_getter(
        self,
        *,
        optional: bool = True,
        extra_factory: Optional[Callable[[Request, Optional[ValidatedClaims]], Any]] = None,
    ):
        """
        Build an async function compatible with:

            strawberry.fastapi.GraphQLRouter(context_getter=...)

        Args:
            optional:
                - True:   missing/invalid tokens become `claims=None`
                - False:  they become a GraphQL "Unauthorized" error
            extra_factory:
                - Optional callable: (request, claims | None) -> Any,
                  stored on context.extra
        """

        def _anonymous(request: Request) -> StrawberryAuthContext:
            if not optional:
                raise GraphQLError("Unauthorized")
            extra = extra_factory(request, None) if extra_factory else None
            return StrawberryAuthContext(request=request, claims=None, extra=extra)

        async def _context_getter(request: Request) -> StrawberryAuthContext:
            token = _extract_token_from_request(request, self.cookie_name)
            if not token:
                return _anonymous(request)

            try:
                claims = await run_in_threadpool(self.auth.authenticate, token)
            except ValidationError:
                return _anonymous(request)

            extra = extra_factory(request, claims) if extra_factory else None
            return StrawberryAuthContext(request=request, claims=claims, extra=extra)

        return _context_getter

    def require_authenticated(self) -> Type[BasePermission]:
        """
        Permission: the request carried a valid token (context.claims is set).
        """

        class _RequireAuthenticated(BasePermission):
            message = "Unauthorized"

            def has_permission(self, source: Any, info: Info, **kwargs: Any) -> bool:
                ctx: StrawberryAuthContext = info.context
                return ctx.claims is not None

        return _RequireAuthenticated


# --------------------------------------------------------------------- #
# High-level helper
# --------------------------------------------------------------------- #

def create_strawberry_auth(
    *,
    auth_servers: Mapping[str, Any],
    cache_dir: str | None = None,
    cookie_name: str = "access_token",
    **options: Any,
) -> StrawberryAuth:
    """
    Convenience helper:

        strawberry_auth = create_strawberry_auth(
            auth_servers={
                "customer": {"issuer": "https://auth.example.com",
                             "jwks_url": "https://auth.example.com/auth/jwks"},
            },
        )
    """
    auth_deps: AuthDependencies = create_auth_dependencies(
        auth_servers=auth_servers,
        cache_dir=cache_dir,
        **options,
    )
    return StrawberryAuth(auth=auth_deps, cookie_name=cookie_name)
