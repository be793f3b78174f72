"""CLI job that geocodes the listings dataset into the coordinate cache."""

import argparse
import logging
import signal
import threading
from typing import Iterable, Optional

from listing_locator.core.cache import GeocodeCache
from listing_locator.core.config import ConfigError, Settings, get_settings
from listing_locator.core.models import ListingRecord, RunSummary
from listing_locator.core.rate_limiter import RateLimiter
from listing_locator.core.resolver import STRATEGY_CACHE, GeocodeResolver
from listing_locator.etl.listings import load_listings
from listing_locator.vendors.link_resolver import LinkResolver
from listing_locator.vendors.nominatim import GeocodingClient

logger = logging.getLogger(__name__)


def build_resolver(settings: Settings, cache: GeocodeCache) -> GeocodeResolver:
    """Wire a resolver with a fresh rate limiter for one run."""
    rate_limiter = RateLimiter(settings.min_interval_seconds)
    client = GeocodingClient(
        settings.geocoder_url,
        settings.geocoder_user_agent,
        rate_limiter,
        timeout=settings.http_timeout_seconds,
    )
    link_resolver = LinkResolver(user_agent=settings.link_user_agent, timeout=settings.http_timeout_seconds)
    return GeocodeResolver(client, cache, link_resolver=link_resolver, country=settings.country)


def _persist(cache: GeocodeCache) -> None:
    try:
        cache.persist()
    except OSError as exc:
        logger.error("Failed to save geocode cache to %s: %s", cache.path, exc)


def run_geocode_job(
    records: Iterable[ListingRecord],
    *,
    resolver: GeocodeResolver,
    cache: GeocodeCache,
    persist_every: int = 5,
    stop_event: Optional[threading.Event] = None,
) -> RunSummary:
    """Resolve records one at a time, saving the cache as results come in.

    Records are deliberately processed sequentially: every geocoder call goes
    through the single rate limiter owned by ``resolver``. ``stop_event`` is
    checked between records, so a stop request lets the current record finish.
    """
    summary = RunSummary()

    for record in records:
        if stop_event is not None and stop_event.is_set():
            logger.warning("Stop requested; ending run after %d records", summary.attempted)
            summary.stopped_early = True
            break

        summary.attempted += 1
        outcome = resolver.resolve_outcome(record)
        if outcome.strategy == STRATEGY_CACHE:
            summary.from_cache += 1
        elif outcome.resolved:
            summary.resolved += 1
            if persist_every > 0 and summary.resolved % persist_every == 0:
                _persist(cache)
        else:
            summary.unresolved += 1

    _persist(cache)
    logger.info(
        "Completed run: attempted=%d from_cache=%d resolved=%d unresolved=%d",
        summary.attempted,
        summary.from_cache,
        summary.resolved,
        summary.unresolved,
    )
    return summary


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Geocode listings into the coordinate cache")
    parser.add_argument("--csv", dest="source", default=settings.listings_csv_url, help="Listings CSV URL or path")
    parser.add_argument(
        "--limit",
        dest="limit",
        type=int,
        default=settings.batch_limit,
        help="Maximum number of listings to process (0 for all)",
    )
    parser.add_argument("--cache-path", dest="cache_path", default=settings.cache_path, help="Geocode cache JSON file")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args()

    try:
        settings = get_settings()
        cache = GeocodeCache.load(args.cache_path)
        resolver = build_resolver(settings, cache)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc

    try:
        records = load_listings(args.source)
    except Exception as exc:  # noqa: BLE001
        logger.error("Could not load listings from %s: %s", args.source, exc)
        raise SystemExit(1) from exc

    if args.limit and args.limit > 0:
        records = records[: args.limit]
    logger.info("Found %d listings. Processing...", len(records))

    stop_event = threading.Event()

    def _request_stop(signum, frame) -> None:
        logger.warning("Interrupt received; finishing current listing before stopping")
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)

    run_geocode_job(
        records,
        resolver=resolver,
        cache=cache,
        persist_every=settings.persist_every,
        stop_event=stop_event,
    )


if __name__ == "__main__":
    main()
