import logging
from types import MappingProxyType
from typing import Any, Dict, Mapping

from jwt import PyJWK
from jwt.exceptions import InvalidKeyError, PyJWKError

from ...domain.entities import KeySet
from ...domain.exceptions import JWKSParseError

logger = logging.getLogger(__name__)


def parse_key_set(document: Mapping[str, Any]) -> KeySet:
    """
    Materialize a JWKS document into a KeySet.

    Keys without a `kid` and keys PyJWT cannot load (unsupported `kty`,
    broken parameters) are skipped. A document that yields no key at all
    is rejected.
    """
    if not isinstance(document, Mapping):
        raise JWKSParseError("JWKS document is not an object")
    entries = document.get("keys")
    if not isinstance(entries, list):
        raise JWKSParseError("JWKS document has no 'keys' list")

    keys: Dict[str, PyJWK] = {}
    for entry in entries:
        if not isinstance(entry, Mapping):
            logger.debug("Skipping non-object JWKS entry")
            continue

        kid = entry.get("kid")
        if not isinstance(kid, str) or not kid:
            logger.debug("Skipping JWK without kid (kty=%s)", entry.get("kty"))
            continue

        try:
            keys[kid] = PyJWK.from_dict(dict(entry))
        except (PyJWKError, InvalidKeyError, ValueError, TypeError) as exc:
            logger.warning("Skipping unusable JWK kid=%s: %s", kid, exc)

    if not keys:
        raise JWKSParseError("JWKS document contains no usable keys")

    return KeySet(keys=MappingProxyType(keys))
