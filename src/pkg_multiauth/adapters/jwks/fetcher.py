import logging
from typing import Any, Dict, Optional, Union

import requests
from requests import Session

from ...domain.constants import DEFAULT_FETCH_TIMEOUT
from ...domain.exceptions import JWKSFetchError
from ...domain.ports import JWKSFetcher

logger = logging.getLogger(__name__)


class RequestsJWKSFetcher(JWKSFetcher):
    """
    Adapter implementing the JWKSFetcher port with a shared requests Session.

    Every call is bounded by a timeout so a slow issuer cannot stall
    request processing.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        verify: Union[bool, str] = True,
    ) -> None:
        self._session = session or Session()
        self._timeout = timeout
        self._verify = verify

    def fetch(self, jwks_url: str, *, timeout: Optional[float] = None) -> Dict[str, Any]:
        effective_timeout = timeout if timeout is not None else self._timeout
        try:
            response = self._session.get(
                jwks_url,
                headers={"Accept": "application/json"},
                timeout=effective_timeout,
                verify=self._verify,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise JWKSFetchError(f"Failed to fetch JWKS from {jwks_url}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise JWKSFetchError(
                f"Unexpected status {response.status_code} fetching JWKS from {jwks_url}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise JWKSFetchError(f"JWKS response from {jwks_url} is not valid JSON") from exc

        if not isinstance(body, dict) or not isinstance(body.get("keys"), list):
            raise JWKSFetchError(f"JWKS response from {jwks_url} has no 'keys' list")

        logger.debug("Fetched JWKS from %s (%d keys)", jwks_url, len(body["keys"]))
        return body

    def close(self) -> None:
        self._session.close()
