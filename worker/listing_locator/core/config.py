"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "ListingLocator/1.0"
DEFAULT_LINK_USER_AGENT = "Mozilla/5.0 (compatible; ListingLocator/1.0)"
DEFAULT_LISTINGS_CSV_URL = (
    "https://docs.google.com/spreadsheets/d/1ywNVd7LYWZg1Vh5weRwaUdsklkqggI-tDbWAqcOKCL8/export?format=csv"
)


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    geocoder_url: str = DEFAULT_GEOCODER_URL
    geocoder_user_agent: str = DEFAULT_USER_AGENT
    country: str = "Australia"
    min_interval_seconds: float = 1.0
    http_timeout_seconds: float = 10.0
    link_user_agent: str = DEFAULT_LINK_USER_AGENT
    cache_path: str = "data/geocoded_listings.json"
    persist_every: int = 5
    listings_csv_url: str = DEFAULT_LISTINGS_CSV_URL
    batch_limit: int = 100
    radius_km: float = 100.0
    top_n: int = 10
    rating_weight: float = 10.0
    distance_weight: float = 2.0
    sparse_threshold: int = 5
    widen_limit: int = 5
    worker_port: int = 9000


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from exc


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    geocoder_user_agent = os.getenv("GEOCODER_USER_AGENT", "").strip()
    if not geocoder_user_agent:
        logger.warning(
            "GEOCODER_USER_AGENT is not configured; using default %s. "
            "Nominatim's usage policy asks for an identifying agent.",
            DEFAULT_USER_AGENT,
        )
        geocoder_user_agent = DEFAULT_USER_AGENT

    listings_csv_url = os.getenv("LISTINGS_CSV_URL", "").strip()
    if not listings_csv_url:
        logger.warning("LISTINGS_CSV_URL is not set; falling back to the public spreadsheet export.")
        listings_csv_url = DEFAULT_LISTINGS_CSV_URL

    return Settings(
        geocoder_url=os.getenv("GEOCODER_URL", DEFAULT_GEOCODER_URL),
        geocoder_user_agent=geocoder_user_agent,
        country=os.getenv("GEOCODER_COUNTRY", "Australia").strip() or "Australia",
        min_interval_seconds=_get_float("GEOCODER_MIN_INTERVAL_SECONDS", 1.0),
        http_timeout_seconds=_get_float("HTTP_TIMEOUT_SECONDS", 10.0),
        link_user_agent=os.getenv("LINK_RESOLVER_USER_AGENT", "").strip() or DEFAULT_LINK_USER_AGENT,
        cache_path=os.getenv("GEOCODE_CACHE_PATH", "data/geocoded_listings.json"),
        persist_every=_get_int("CACHE_PERSIST_EVERY", 5),
        listings_csv_url=listings_csv_url,
        batch_limit=_get_int("BATCH_LIMIT", 100),
        radius_km=_get_float("RANK_RADIUS_KM", 100.0),
        top_n=_get_int("RANK_TOP_N", 10),
        rating_weight=_get_float("SCORE_RATING_WEIGHT", 10.0),
        distance_weight=_get_float("SCORE_DISTANCE_WEIGHT", 2.0),
        sparse_threshold=_get_int("RANK_SPARSE_THRESHOLD", 5),
        widen_limit=_get_int("RANK_WIDEN_LIMIT", 5),
        worker_port=_get_int("WORKER_PORT", 9000),
    )
