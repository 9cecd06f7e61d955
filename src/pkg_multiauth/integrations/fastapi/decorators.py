from __future__ import annotations

import inspect
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional, ParamSpec, TypeVar

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from ...domain.entities import ValidatedClaims
from ...domain.exceptions import AuthenticationError
from ..common.auth_factory import AuthDependencies
from .security import (
    DEFAULT_COOKIE_NAME,
    extract_token_from_request,
    find_token_in_request,
    unauthorized,
)

P = ParamSpec("P")
R = TypeVar("R")

CLAIMS_PARAM = "claims"


@dataclass(slots=True)
class FastAPIDecorators:
    """
    Decorator-based auth helpers for FastAPI route handlers.

    Built on top of the framework-agnostic `AuthDependencies` facade.

    Token extraction strategy:
      - Prefer `Authorization: Bearer <token>` header
      - Fallback to a cookie (default: 'access_token')

    Usage example in your FastAPI app:

        # app/auth.py
        from pkg_multiauth.integrations.fastapi import create_fastapi_auth_from_env

        fastapi_auth = create_fastapi_auth_from_env()
        auth_decorators = fastapi_auth.decorators()

        # app/routes.py
        from fastapi import APIRouter, Request
        from pkg_multiauth import ValidatedClaims
        from app.auth import auth_decorators

        router = APIRouter()

        @router.get("/me")
        @auth_decorators.authenticated
        async def me(request: Request, claims: ValidatedClaims):
            return {"sub": claims.subject, "issuer_type": claims.issuer_type}

    The handler must take `request: Request`. The `claims` parameter is
    filled in by the decorator and hidden from FastAPI's signature
    inspection. Every validation failure becomes the same 401.
    """

    auth: AuthDependencies
    cookie_name: str = DEFAULT_COOKIE_NAME  # name of the cookie to fall back to

    # ------------------------------------------------------------------ #
    # helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _extract_request(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Request:
        """Extract Request object from function arguments."""
        if "request" in kwargs and isinstance(kwargs["request"], Request):
            return kwargs["request"]

        for arg in args:
            if isinstance(arg, Request):
                return arg

        raise ValueError(
            "Request object not found. "
            "Ensure your route has a 'request: Request' parameter."
        )

    @staticmethod
    def _hide_claims_param(func: Callable[..., Any], wrapper: Callable[..., Any]) -> Callable[..., Any]:
        sig = inspect.signature(func)
        params = [p for name, p in sig.parameters.items() if name != CLAIMS_PARAM]
        wrapper.__signature__ = sig.replace(parameters=params)  # type: ignore[attr-defined]
        return wrapper

    def _require_claims(self, request: Request) -> ValidatedClaims:
        token = extract_token_from_request(request, None, self.cookie_name)
        try:
            return self.auth.authenticate(token)
        except AuthenticationError as exc:
            raise unauthorized() from exc

    def _optional_claims(self, request: Request) -> Optional[ValidatedClaims]:
        token = find_token_in_request(request, None, self.cookie_name)
        if token is None:
            return None
        return self.auth.validate(token).claims

    def _inject(
        self,
        func: Callable[P, R],
        resolve: Callable[[Request], Optional[ValidatedClaims]],
    ) -> Callable[P, Any]:
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_impl(*args: P.args, **kwargs: P.kwargs) -> Any:
                request = self._extract_request(args, kwargs)
                kwargs[CLAIMS_PARAM] = await run_in_threadpool(resolve, request)
                return await func(*args, **kwargs)  # type: ignore[misc]

            return self._hide_claims_param(func, async_impl)

        @wraps(func)
        def sync_impl(*args: P.args, **kwargs: P.kwargs) -> Any:
            request = self._extract_request(args, kwargs)
            kwargs[CLAIMS_PARAM] = resolve(request)
            return func(*args, **kwargs)

        return self._hide_claims_param(func, sync_impl)

    # ------------------------------------------------------------------ #
    # decorators
    # ------------------------------------------------------------------ #

    def authenticated(self, func: Callable[P, R]) -> Callable[P, Any]:
        """
        Decorator: require a valid token.

        Injects `claims: ValidatedClaims` into kwargs.
        """
        return self._inject(func, self._require_claims)

    def optional_auth(self, func: Callable[P, R]) -> Callable[P, Any]:
        """
        Decorator: optional authentication.

        Injects `claims: ValidatedClaims | None`; missing or invalid
        tokens give None.
        """
        return self._inject(func, self._optional_claims)
