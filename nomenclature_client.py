"""
Nomenclature API client.

Issues single GET requests against the product nomenclature endpoint and
classifies every failure as NetworkError, HttpError or ParseError. There is
no retry, backoff or caching here; the caller decides what a failure means.
"""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

from curl_cffi import requests
from curl_cffi.requests import exceptions as requests_exceptions

import harvester_config
from harvest_errors import HttpError, NetworkError, ParseError

logger = logging.getLogger(__name__)


class NomenclatureClient:
    """Thin async client for the nomenclature tree API."""

    def __init__(self, endpoint: Optional[str] = None, lang: Optional[str] = None,
                 timeout: Optional[float] = None, impersonate: Optional[str] = None,
                 session=None):
        """
        Initialize the client.

        Args:
            endpoint: Nomenclature endpoint URL (None = use config default)
            lang: Response language (None = use config default)
            timeout: Request timeout in seconds
            impersonate: curl_cffi browser fingerprint
            session: Pre-built AsyncSession (created lazily when omitted)
        """
        self.endpoint = endpoint or harvester_config.API_ENDPOINT
        self.lang = lang or harvester_config.LANG
        self.timeout = timeout if timeout is not None else harvester_config.REQUEST_TIMEOUT
        # Use curl_cffi with Chrome impersonation to get past bot detection
        self.impersonate = impersonate or harvester_config.IMPERSONATE
        self._session = session

    def _get_session(self):
        if self._session is None:
            self._session = requests.AsyncSession()
        return self._session

    def build_url(self, country_code: str, parent_id: Any = None) -> str:
        """
        Build the query URL for one tree level.

        Args:
            country_code: Taxonomy scope
            parent_id: Node to expand (None/'' = top level)

        Returns:
            Absolute URL string
        """
        params = {'country': country_code, 'lang': self.lang}
        if parent_id is not None and parent_id != '':
            params['parent'] = parent_id
        return f"{self.endpoint}?{urlencode(params)}"

    async def _get(self, url: str, context: str):
        session = self._get_session()
        try:
            response = await session.get(url, impersonate=self.impersonate, timeout=self.timeout)
        except requests_exceptions.RequestException as e:
            raise NetworkError(
                f"Network error while {context}. Complete any verification and try again."
            ) from e

        if not 200 <= response.status_code < 300:
            raise HttpError(response.status_code, f"API returned {response.status_code} while {context}.")

        return response

    async def fetch_nodes(self, country_code: str, parent_id: Any = None) -> list[dict[str, Any]]:
        """
        Fetch one level of the nomenclature tree.

        Args:
            country_code: Taxonomy scope
            parent_id: Node to expand (None = top-level catalog)

        Returns:
            Raw node payloads in API order

        Raises:
            NetworkError: Transport failure
            HttpError: Non-2xx response
            ParseError: Body is not a JSON list of objects
        """
        url = self.build_url(country_code, parent_id)
        context = "loading sections" if parent_id is None else f"fetching children of {parent_id}"
        logger.debug(f"GET {url}")

        response = await self._get(url, context)

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"Received invalid JSON while {context}.") from e

        if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
            raise ParseError(f"Unexpected payload shape while {context}.")

        return payload

    async def fetch_page(self, url: str) -> str:
        """Fetch an HTML page (used for country discovery)."""
        response = await self._get(url, f"loading {url}")
        return response.text

    async def close(self) -> None:
        """Release the underlying session."""
        if self._session is not None:
            await self._session.close()
            self._session = None
