import json
from typing import Any, Dict, Mapping, Optional

import jwt
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    ImmatureSignatureError,
    InvalidAlgorithmError,
    InvalidKeyError,
    InvalidSignatureError as JWTInvalidSignatureError,
    InvalidTokenError as JWTInvalidTokenError,
)
from jwt.utils import base64url_decode

from ...domain.entities import KeySet
from ...domain.exceptions import (
    InvalidSignatureError,
    MalformedTokenError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from ...domain.value_objects import UnverifiedToken


# ---------------------------------------------------------------------- #
# Unverified decoding
# ---------------------------------------------------------------------- #

def _decode_segment(segment: str, label: str) -> Dict[str, Any]:
    try:
        data = json.loads(base64url_decode(segment))
    except (ValueError, RecursionError) as exc:
        # RecursionError: pathologically nested JSON
        raise MalformedTokenError(f"Token {label} is not base64url-encoded JSON") from exc

    if not isinstance(data, dict):
        raise MalformedTokenError(f"Token {label} is not a JSON object")
    return data


def decode_unverified(token: str) -> UnverifiedToken:
    """
    Split a compact JWT and decode header + payload WITHOUT checking
    the signature. Only used to route the token to the right issuer.
    """
    if not isinstance(token, str) or not token:
        raise MalformedTokenError("Token is empty")

    segments = token.split(".")
    if len(segments) != 3:
        raise MalformedTokenError(f"Token has {len(segments)} segments, expected 3")

    header = _decode_segment(segments[0], "header")
    payload = _decode_segment(segments[1], "payload")

    kid = header.get("kid")
    if kid is not None and not isinstance(kid, str):
        raise MalformedTokenError("Token header 'kid' is not a string")

    return UnverifiedToken(raw=token, header=header, payload=payload)


# ---------------------------------------------------------------------- #
# Verification
# ---------------------------------------------------------------------- #

# `sub` and `jti` are passed through whatever their JSON type
_DECODE_OPTIONS = {
    "verify_aud": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
}


def verify_signature(
    token: str,
    key_set: KeySet,
    *,
    kid: Optional[str],
    leeway: float = 0,
) -> Mapping[str, Any]:
    """
    Verify `token` against the issuer's key set and check time claims.

    The accepted algorithm is pinned to the algorithm of the selected JWK,
    so a token cannot pick its own (e.g. `none` or HMAC-with-public-key).
    Only signature and time claims are checked here; audience and issuer
    are checked by the caller, other registered claims are passed through.

    Raises:
        InvalidSignatureError
        TokenExpiredError
        TokenNotYetValidError
        MalformedTokenError
    """
    candidates = key_set.candidates(kid)
    if not candidates:
        raise InvalidSignatureError(f"No key with kid {kid!r} in issuer key set")

    last_error: Optional[Exception] = None
    for jwk in candidates:
        try:
            return jwt.decode(
                token,
                jwk.key,
                algorithms=[jwk.algorithm_name],
                options=_DECODE_OPTIONS,
                leeway=leeway,
            )
        except (JWTInvalidSignatureError, InvalidAlgorithmError, InvalidKeyError) as exc:
            last_error = exc
            continue
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except ImmatureSignatureError as exc:
            raise TokenNotYetValidError(f"Token is not yet valid: {exc}") from exc
        except DecodeError as exc:
            raise MalformedTokenError(f"Token could not be decoded: {exc}") from exc
        except JWTInvalidTokenError as exc:
            raise MalformedTokenError(f"Invalid token claims: {exc}") from exc

    raise InvalidSignatureError(
        f"Signature verification failed ({last_error})"
    ) from last_error
