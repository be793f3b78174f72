"""Follow map short links and pull a place name or coordinate out of the final URL."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

import requests

from listing_locator.core.config import DEFAULT_LINK_USER_AGENT
from listing_locator.core.models import Coordinate, LinkResolution

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
# Maps place URLs look like .../maps/place/.../@-33.8839046,150.9245333,17z/...
COORDS_REGEX = re.compile(r"@(-?\d+\.\d+),(-?\d+\.\d+)")


def looks_like_link(link: Optional[str]) -> bool:
    if not link:
        return False
    try:
        parsed = urlparse(link.strip())
    except ValueError:
        # e.g. "Invalid IPv6 URL" for an unbalanced "[" in the host
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def extract_canonical_name(url: str) -> Optional[str]:
    """Return the decoded ``q`` query parameter of ``url``, if any."""
    values = parse_qs(urlparse(url).query).get("q")
    if not values:
        return None
    name = values[0].replace("+", " ").strip()
    return name or None


def extract_coordinate(url: str) -> Optional[Coordinate]:
    match = COORDS_REGEX.search(url)
    if not match:
        return None
    return Coordinate.parse(match.group(1), match.group(2))


def parse_resolved_url(url: str) -> LinkResolution:
    return LinkResolution(canonical_name=extract_canonical_name(url), coordinate=extract_coordinate(url))


class LinkResolver:
    """Resolve redirect-style map links into a :class:`LinkResolution`.

    Only the terminal URL is inspected; the response body is never read.
    """

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_LINK_USER_AGENT,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = user_agent

    def resolve(self, link: Optional[str]) -> Optional[LinkResolution]:
        if not looks_like_link(link):
            return None

        try:
            response = self.session.get(link.strip(), timeout=self.timeout, allow_redirects=True, stream=True)
        except requests.RequestException as exc:
            logger.warning("Failed to resolve link %s: %s", link, exc)
            return None

        try:
            final_url = response.url or ""
        finally:
            response.close()

        logger.debug("Link %s resolved to %s", link, final_url)
        try:
            return parse_resolved_url(final_url)
        except ValueError as exc:
            logger.warning("Could not parse resolved URL %s: %s", final_url, exc)
            return None
