import argparse
import json
import threading

import pytest

from listing_locator.core.cache import GeocodeCache
from listing_locator.core.config import Settings
from listing_locator.core.models import Coordinate, ListingRecord
from listing_locator.core.resolver import GeocodeResolver
from listing_locator.jobs import geocode_listings


class FakeClient:
    def __init__(self, answers):
        self.answers = answers
        self.queries = []

    def lookup(self, query_text):
        self.queries.append(query_text)
        return self.answers.get(query_text)


def records(*names):
    return [ListingRecord(name=name, suburb="Auburn", postcode="2144") for name in names]


def suburb_answers(*names):
    return {f"{name}, Auburn 2144, Australia": Coordinate(-33.8, 151.0 + i / 100) for i, name in enumerate(names)}


def test_run_counts_cache_fresh_and_unresolved(tmp_path):
    cache = GeocodeCache(tmp_path / "cache.json", {"Cached-Auburn": Coordinate(-33.85, 151.03)})
    client = FakeClient(suburb_answers("Fresh"))
    resolver = GeocodeResolver(client, cache)

    summary = geocode_listings.run_geocode_job(
        records("Cached", "Fresh", "Missing"), resolver=resolver, cache=cache, persist_every=5
    )

    assert summary.attempted == 3
    assert summary.from_cache == 1
    assert summary.resolved == 1
    assert summary.unresolved == 1
    assert summary.stopped_early is False
    on_disk = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
    assert set(on_disk) == {"Cached-Auburn", "Fresh-Auburn"}


def test_run_persists_incrementally(tmp_path, monkeypatch):
    cache = GeocodeCache(tmp_path / "cache.json")
    names = ["A", "B", "C", "D", "E"]
    resolver = GeocodeResolver(FakeClient(suburb_answers(*names)), cache)
    saves = []
    original_persist = cache.persist

    def tracking_persist():
        saves.append(len(cache))
        original_persist()

    monkeypatch.setattr(cache, "persist", tracking_persist)

    summary = geocode_listings.run_geocode_job(records(*names), resolver=resolver, cache=cache, persist_every=2)

    assert summary.resolved == 5
    # Every second fresh result, then once more at the end.
    assert saves == [2, 4, 5]


def test_run_stops_between_records(tmp_path):
    cache = GeocodeCache(tmp_path / "cache.json")
    stop_event = threading.Event()

    class StoppingClient(FakeClient):
        def lookup(self, query_text):
            stop_event.set()
            return super().lookup(query_text)

    client = StoppingClient(suburb_answers("A", "B"))
    resolver = GeocodeResolver(client, cache)

    summary = geocode_listings.run_geocode_job(
        records("A", "B"), resolver=resolver, cache=cache, stop_event=stop_event
    )

    assert summary.attempted == 1
    assert summary.resolved == 1
    assert summary.stopped_early is True
    assert "A-Auburn" in GeocodeCache.load(tmp_path / "cache.json")


def test_run_with_corrupt_cache_completes(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("]]] definitely not json", encoding="utf-8")
    cache = GeocodeCache.load(path)
    resolver = GeocodeResolver(FakeClient(suburb_answers("A")), cache)

    summary = geocode_listings.run_geocode_job(records("A"), resolver=resolver, cache=cache)

    assert summary.resolved == 1
    assert json.loads(path.read_text(encoding="utf-8")) == {"A-Auburn": {"lat": -33.8, "lon": 151.0}}


def test_run_survives_failed_save(tmp_path, monkeypatch, caplog):
    cache = GeocodeCache(tmp_path / "cache.json")
    resolver = GeocodeResolver(FakeClient(suburb_answers("A")), cache)

    def failing_persist():
        raise OSError("disk full")

    monkeypatch.setattr(cache, "persist", failing_persist)

    with caplog.at_level("ERROR"):
        summary = geocode_listings.run_geocode_job(records("A"), resolver=resolver, cache=cache, persist_every=1)

    assert summary.resolved == 1
    assert "Failed to save geocode cache" in " ".join(caplog.messages)


def test_build_resolver_uses_settings(tmp_path):
    settings = Settings(geocoder_user_agent="Agent/1", country="New Zealand", min_interval_seconds=2.0)
    resolver = geocode_listings.build_resolver(settings, GeocodeCache(tmp_path / "c.json"))

    assert resolver.country == "New Zealand"
    assert resolver.client.user_agent == "Agent/1"
    assert resolver.client.rate_limiter.min_interval == 2.0
    assert resolver.link_resolver is not None


def test_build_parser_defaults(monkeypatch):
    settings = Settings(listings_csv_url="https://example.com/x.csv", batch_limit=7, cache_path="c.json")
    monkeypatch.setattr(geocode_listings, "get_settings", lambda: settings)

    parser = geocode_listings.build_parser()
    args = parser.parse_args([])

    assert isinstance(parser, argparse.ArgumentParser)
    assert args.source == "https://example.com/x.csv"
    assert args.limit == 7
    assert args.cache_path == "c.json"


def test_main_exits_when_listings_unavailable(monkeypatch, tmp_path):
    settings = Settings(cache_path=str(tmp_path / "c.json"))
    monkeypatch.setattr(geocode_listings, "get_settings", lambda: settings)
    monkeypatch.setattr("sys.argv", ["geocode_listings", "--csv", str(tmp_path / "missing.csv")])

    with pytest.raises(SystemExit) as excinfo:
        geocode_listings.main()

    assert excinfo.value.code == 1


def test_malformed_link_does_not_abort_run(tmp_path):
    from listing_locator.vendors.link_resolver import LinkResolver

    class NoNetworkSession:
        headers = {}

        def get(self, *args, **kwargs):
            raise AssertionError("no request expected")

    cache = GeocodeCache(tmp_path / "cache.json")
    resolver = GeocodeResolver(
        FakeClient(suburb_answers("A", "B")),
        cache,
        link_resolver=LinkResolver(session=NoNetworkSession()),
    )
    batch = [
        ListingRecord(name="A", suburb="Auburn", postcode="2144", raw_link="https://[oops"),
        ListingRecord(name="B", suburb="Auburn", postcode="2144"),
    ]

    summary = geocode_listings.run_geocode_job(batch, resolver=resolver, cache=cache)

    assert summary.attempted == 2
    assert summary.resolved == 2
    on_disk = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
    assert set(on_disk) == {"A-Auburn", "B-Auburn"}
