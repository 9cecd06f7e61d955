from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from starlette.concurrency import run_in_threadpool

from .decorators import FastAPIDecorators
from .security import (
    DEFAULT_COOKIE_NAME,
    bearer_scheme,
    extract_token_from_request,
    find_token_in_request,
    unauthorized,
)
from ..common.auth_factory import AuthDependencies
from ...domain.entities import ValidatedClaims
from ...domain.exceptions import AuthenticationError


@dataclass(slots=True)
class FastAPIAuthentication:
    """
    FastAPI integration for pkg_multiauth.

    Validation may hit the network (JWKS refresh), so it runs in the
    threadpool instead of blocking the event loop.
    """

    auth: AuthDependencies
    cookie_name: str = DEFAULT_COOKIE_NAME

    async def get_current_claims(
            self,
            request: Request,
            credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    ) -> ValidatedClaims:
        """Dependency: Require a valid token."""
        token = extract_token_from_request(request, credentials, self.cookie_name)
        try:
            return await run_in_threadpool(self.auth.authenticate, token)
        except AuthenticationError as exc:
            raise unauthorized() from exc

    async def get_optional_claims(
            self,
            request: Request,
            credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    ) -> ValidatedClaims | None:
        """Dependency: Optional authentication."""
        token = find_token_in_request(request, credentials, self.cookie_name)
        if token is None:
            return None

        result = await run_in_threadpool(self.auth.validate, token)
        # bad token -> treat as anonymous
        return result.claims

    def decorators(self, cookie_name: str | None = None) -> FastAPIDecorators:
        return FastAPIDecorators(auth=self.auth, cookie_name=cookie_name or self.cookie_name)
