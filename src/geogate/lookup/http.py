"""Lookup backed by a remote JSON geolocation service."""

import logging
from typing import Any

import httpx

from geogate.errors import UpstreamError
from geogate.lookup.base import GeoLookup

logger = logging.getLogger(__name__)


class HttpLookup(GeoLookup):
    """
    Calls ``url_template`` (with ``{ip}`` substituted) and returns its JSON.

    A 404 from the service means the address has no data.
    """

    DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)

    def __init__(
        self,
        url_template: str,
        timeout: httpx.Timeout | float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        if "{ip}" not in url_template:
            raise ValueError("url_template must contain an '{ip}' placeholder")
        self._url_template = url_template
        self._client = client or httpx.Client(
            timeout=timeout or self.DEFAULT_TIMEOUT,
            follow_redirects=True,
        )

    @property
    def backend_name(self) -> str:
        return "http"

    def lookup(self, ip: str) -> Any | None:
        url = self._url_template.format(ip=ip)
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Lookup request to {url} failed: {e}")
            raise UpstreamError("Error processing GeoIP lookup") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            logger.error(f"Lookup service returned {response.status_code} for {url}")
            raise UpstreamError("Error processing GeoIP lookup")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Error parsing lookup response: {e}")
            raise UpstreamError("Error processing GeoIP data") from e
        return data or None

    def close(self) -> None:
        self._client.close()
