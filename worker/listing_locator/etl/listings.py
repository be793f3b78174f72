"""Utilities for turning the listings spreadsheet export into typed records."""

import csv
import io
import logging
import math
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import requests

from listing_locator.core.models import ListingCandidate, ListingRecord

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
DISCLAIMER_MARKER = "THE KEBABALOGUE WILL NOT BE UPDATED"

NAME_COLUMN = "Shop Name"
SUBURB_COLUMN = "Suburb"
POSTCODE_COLUMN = "Postcode"
LINK_COLUMN = "Google"
RATING_COLUMN = "Ox Rating"
RANK_COLUMN = "RANK"

_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_rating(value: Any) -> Optional[float]:
    """Read the leading number of a rating cell ("8.5/10" -> 8.5); NaN/inf count as missing."""
    match = _LEADING_NUMBER.match(_clean(value))
    if not match:
        return None
    rating = float(match.group(0))
    return rating if math.isfinite(rating) else None


def _parse_rank(value: Any) -> Optional[int]:
    digits = "".join(ch for ch in _clean(value) if ch.isdigit())
    return int(digits) if digits else None


def to_listing_record(row: Dict[str, Any]) -> Optional[ListingRecord]:
    name = _clean(row.get(NAME_COLUMN))
    if not name or DISCLAIMER_MARKER in name:
        return None

    return ListingRecord(
        name=name,
        suburb=_clean(row.get(SUBURB_COLUMN)),
        postcode=_clean(row.get(POSTCODE_COLUMN)),
        raw_link=_clean(row.get(LINK_COLUMN)) or None,
        rating=parse_rating(row.get(RATING_COLUMN)),
        rank=_parse_rank(row.get(RANK_COLUMN)),
    )


def parse_listings(csv_text: str) -> List[ListingRecord]:
    reader = csv.DictReader(io.StringIO(csv_text))
    records: List[ListingRecord] = []
    for row in reader:
        record = to_listing_record(row)
        if record is None:
            logger.debug("Skipping row without a usable name: %s", row)
            continue
        records.append(record)
    logger.info("Parsed %d listings", len(records))
    return records


def load_listings(source: str, session: Optional[requests.Session] = None) -> List[ListingRecord]:
    """Read listings from an http(s) URL or a local CSV path."""
    if source.startswith(("http://", "https://")):
        http = session or requests
        logger.info("Fetching listings CSV from %s", source)
        response = http.get(source, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        # Google Sheets exports are UTF-8 but omit the charset header.
        response.encoding = "utf-8"
        return parse_listings(response.text)

    with Path(source).open("r", encoding="utf-8-sig", newline="") as fh:
        return parse_listings(fh.read())


def merge_coordinates(records: Iterable[ListingRecord], cache) -> List[ListingCandidate]:
    """Pair each record with its cached coordinate, keeping input order."""
    return [ListingCandidate(record, cache.get(record.identity_key)) for record in records]
