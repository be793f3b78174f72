"""Multi-strategy geocoding for a single listing."""

from __future__ import annotations

import logging
import re
from typing import Optional

from listing_locator.core.cache import GeocodeCache
from listing_locator.core.models import Coordinate, LinkResolution, ListingRecord, Resolution
from listing_locator.vendors.link_resolver import LinkResolver
from listing_locator.vendors.nominatim import GeocodingClient

logger = logging.getLogger(__name__)

_PARENTHETICAL = re.compile(r"\(.*?\)")
_WHITESPACE = re.compile(r"\s+")

STRATEGY_CACHE = "cache"
STRATEGY_LINK = "link"
STRATEGY_NAME_FULL_ADDRESS = "name_full_address"
STRATEGY_NAME_SUBURB = "name_suburb"
STRATEGY_CANONICAL_NAME = "canonical_name"
STRATEGY_SUBURB_CENTER = "suburb_center"


def clean_name(name: str) -> str:
    """Drop ``(...)`` annotations and collapse whitespace."""
    without_notes = _PARENTHETICAL.sub("", name or "")
    return _WHITESPACE.sub(" ", without_notes).strip()


def build_query(*parts: str) -> str:
    """Join non-empty parts with ", "; each part may itself be space separated."""
    cleaned = [_WHITESPACE.sub(" ", part).strip() for part in parts if part]
    return ", ".join(part for part in cleaned if part)


class GeocodeResolver:
    """Run a listing through the cache and then the fallback chain.

    Steps, stopping at the first hit:

    1. cached coordinate for the identity key
    2. coordinate embedded in the record's resolved map link
    3. name + suburb + postcode
    4. name + suburb
    5. canonical name on its own, when the link produced a different name
    6. suburb centre

    The name used in steps 3 and 4 is the link's canonical name when one was
    found, otherwise the record's own name. Fresh results are written to the
    cache before returning; misses are not cached so a later run retries them.
    """

    def __init__(
        self,
        client: GeocodingClient,
        cache: GeocodeCache,
        *,
        link_resolver: Optional[LinkResolver] = None,
        country: str = "Australia",
    ) -> None:
        self.client = client
        self.cache = cache
        self.link_resolver = link_resolver
        self.country = country

    def resolve(self, record: ListingRecord) -> Optional[Coordinate]:
        return self.resolve_outcome(record).coordinate

    def resolve_outcome(self, record: ListingRecord) -> Resolution:
        key = record.identity_key
        cached = self.cache.get(key)
        if cached is not None:
            return Resolution(cached, STRATEGY_CACHE)

        logger.info("Processing: %s (%s)", record.name, record.suburb)
        coordinate, strategy = self._run_chain(record)
        if coordinate is None:
            logger.info("  -> Not found: %s", key)
            return Resolution()

        self.cache.put(key, coordinate)
        logger.info("  -> Found via %s: %s, %s", strategy, coordinate.latitude, coordinate.longitude)
        return Resolution(coordinate, strategy)

    def _resolve_link(self, record: ListingRecord) -> Optional[LinkResolution]:
        if self.link_resolver is None or not record.raw_link:
            return None
        return self.link_resolver.resolve(record.raw_link)

    def _run_chain(self, record: ListingRecord):
        canonical_name: Optional[str] = None

        link_info = self._resolve_link(record)
        if link_info is not None:
            if link_info.coordinate is not None:
                logger.info("  [Link] Found coordinates directly in URL")
                return link_info.coordinate, STRATEGY_LINK
            if link_info.canonical_name:
                logger.info("  [Link] Canonical name: %r", link_info.canonical_name)
                canonical_name = link_info.canonical_name

        search_name = clean_name(canonical_name or record.name)
        suburb = (record.suburb or "").strip()
        postcode = (record.postcode or "").strip()

        attempts = []
        if search_name:
            attempts.append((STRATEGY_NAME_FULL_ADDRESS, build_query(search_name, f"{suburb} {postcode}", self.country)))
            attempts.append((STRATEGY_NAME_SUBURB, build_query(search_name, suburb, self.country)))
        if canonical_name and canonical_name != record.name:
            attempts.append((STRATEGY_CANONICAL_NAME, build_query(canonical_name, self.country)))
        if suburb:
            attempts.append((STRATEGY_SUBURB_CENTER, build_query(suburb, self.country)))

        tried = set()
        for strategy, query in attempts:
            # Missing postcode makes steps 3 and 4 identical.
            if query in tried:
                continue
            tried.add(query)
            coordinate = self.client.lookup(query)
            if coordinate is not None:
                return coordinate, strategy
        return None, None
