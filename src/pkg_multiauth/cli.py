# src/pkg_multiauth/cli.py

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional, Sequence

from .application.use_cases.validate import MultiIssuerJWTValidator
from .config.env import settings_from_env
from .domain.exceptions import ConfigurationError, JWKSFetchError
from .integrations.common.auth_factory import create_validator


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pkg-multiauth",
        description="Inspect multi-issuer JWT configuration, validate tokens "
                    "and warm the JWKS cache (configured via AUTH_SERVERS / JWKS_*).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for diagnostics on stderr (default: WARNING).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("issuers", help="List configured issuer types.")

    validate = sub.add_parser("validate", help="Validate a token and print its claims.")
    validate.add_argument(
        "token",
        help="Compact JWT, or '-' to read it from stdin.",
    )

    sub.add_parser("warm", help="Fetch every issuer's JWKS into the caches.")

    return parser.parse_args(args=argv)


def _emit(payload: dict[str, Any]) -> None:
    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def _cmd_issuers(validator: MultiIssuerJWTValidator) -> int:
    _emit({
        "ok": True,
        "issuers": {
            issuer_type: {
                "issuer": profile.issuer_url,
                "jwks_url": profile.jwks_url,
                "audience": profile.audience,
                "cache_ttl": profile.cache_ttl,
            }
            for issuer_type, profile in sorted(validator.issuer_profiles.items())
        },
    })
    return 0


def _cmd_validate(validator: MultiIssuerJWTValidator, token: str) -> int:
    if token == "-":
        token = sys.stdin.read().strip()

    result = validator.validate(token)
    if result.ok:
        _emit({"ok": True, "claims": result.claims.to_dict()})
        return 0

    _emit({"ok": False, "error": result.kind.value})
    return 1


def _cmd_warm(validator: MultiIssuerJWTValidator) -> int:
    summary: dict[str, Any] = {}
    failed = False
    for issuer_type, profile in sorted(validator.issuer_profiles.items()):
        try:
            key_set = validator.key_cache.refresh(profile)
        except JWKSFetchError as exc:
            failed = True
            summary[issuer_type] = {"ok": False, "error": str(exc)}
        else:
            summary[issuer_type] = {"ok": True, "kids": list(key_set.kids)}

    _emit({"ok": not failed, "issuers": summary})
    return 1 if failed else 0


def main(argv: Sequence[str] | None = None, validator: Optional[MultiIssuerJWTValidator] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if validator is None:
        try:
            validator = create_validator(settings_from_env())
        except ConfigurationError as exc:
            _emit({"ok": False, "error": str(exc)})
            return 2

    if args.command == "issuers":
        return _cmd_issuers(validator)
    if args.command == "validate":
        return _cmd_validate(validator, args.token)
    return _cmd_warm(validator)


if __name__ == "__main__":
    sys.exit(main())
