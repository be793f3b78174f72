"""Client utilities for the Nominatim free-text search API."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from listing_locator.core.config import ConfigError
from listing_locator.core.models import Coordinate
from listing_locator.core.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class GeocodingClient:
    """Single-result lookups against a Nominatim-compatible endpoint.

    Every call goes through the shared :class:`RateLimiter` and carries the
    identifying User-Agent the provider's usage policy requires. Failures of
    any kind are logged and reported as ``None``.
    """

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        rate_limiter: RateLimiter,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not user_agent or not user_agent.strip():
            raise ConfigError("A User-Agent identifying this application is required for geocoder requests.")
        if timeout <= 0:
            raise ConfigError("timeout must be positive")
        self.base_url = base_url
        self.user_agent = user_agent.strip()
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.session = session or requests.Session()

    def lookup(self, query_text: str) -> Optional[Coordinate]:
        query = (query_text or "").strip()
        if not query:
            return None

        self.rate_limiter.wait()
        logger.info("Geocoder query: %s", query)
        params = {"format": "json", "q": query, "limit": 1}
        try:
            response = self.session.get(
                self.base_url,
                params=params,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Geocoder request failed for %r: %s", query, exc)
            return None

        if not (200 <= response.status_code < 300):
            logger.warning("Geocoder returned status %s for %r", response.status_code, query)
            return None

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Geocoder returned malformed JSON for %r: %s", query, exc)
            return None

        if not isinstance(payload, list) or not payload:
            logger.debug("Geocoder returned no results for %r", query)
            return None

        first = payload[0]
        if not isinstance(first, dict):
            logger.warning("Geocoder result has unexpected shape for %r: %s", query, str(first)[:200])
            return None

        coordinate = Coordinate.parse(first.get("lat"), first.get("lon"))
        if coordinate is None:
            logger.warning("Geocoder result missing usable lat/lon for %r", query)
        return coordinate
