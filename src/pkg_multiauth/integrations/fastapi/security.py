from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# Expose this so apps can plug it into dependencies if they want OpenAPI security
bearer_scheme = HTTPBearer(auto_error=False)

DEFAULT_COOKIE_NAME = "access_token"


def unauthorized() -> HTTPException:
    """
    The one 401 every validation failure maps to.

    The detail never says which check failed.
    """
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def find_token_in_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
    cookie_name: str = DEFAULT_COOKIE_NAME,
) -> Optional[str]:
    """
    Look for an access token in:

      1. HTTP Bearer auth header (preferred)
      2. A cookie (e.g. 'access_token')

    Returns None when there is none.
    """
    if credentials is not None:
        token = (credentials.credentials or "").strip()
        if token:
            return token

    # raw header, for routes that did not use bearer_scheme
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


def extract_token_from_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
    cookie_name: str = DEFAULT_COOKIE_NAME,
) -> str:
    """Like `find_token_in_request`, but raises the uniform 401 when missing."""
    token = find_token_in_request(request, credentials, cookie_name)
    if token is None:
        raise unauthorized()
    return token
