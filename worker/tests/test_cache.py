import json

import pytest

from listing_locator.core.cache import GeocodeCache
from listing_locator.core.models import Coordinate


def test_load_missing_file_starts_empty(tmp_path):
    cache = GeocodeCache.load(tmp_path / "missing.json")
    assert len(cache) == 0


def test_load_corrupt_file_starts_empty(tmp_path, caplog):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level("WARNING"):
        cache = GeocodeCache.load(path)

    assert len(cache) == 0
    assert "starting fresh" in " ".join(caplog.messages)


def test_load_non_object_starts_empty(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    assert len(GeocodeCache.load(path)) == 0


def test_load_skips_malformed_entries(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(
        json.dumps(
            {
                "Good Kebabs-Auburn": {"lat": -33.85, "lon": 151.03},
                "Bad-Nowhere": {"lat": "x"},
                "Worse-Nowhere": [1, 2],
                "Out-Of-Range": {"lat": 123.0, "lon": 10.0},
            }
        ),
        encoding="utf-8",
    )

    cache = GeocodeCache.load(path)

    assert list(cache) == ["Good Kebabs-Auburn"]
    assert cache.get("Good Kebabs-Auburn") == Coordinate(-33.85, 151.03)


def test_persist_round_trips_and_keeps_existing(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    cache = GeocodeCache(path, {"A-One": Coordinate(-33.0, 151.0)})
    cache.put("B-Two", Coordinate(-34.0, 150.5))
    assert cache.dirty

    cache.persist()

    assert not cache.dirty
    assert not (path.parent / "cache.json.tmp").exists()
    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk == {
        "A-One": {"lat": -33.0, "lon": 151.0},
        "B-Two": {"lat": -34.0, "lon": 150.5},
    }

    reloaded = GeocodeCache.load(path)
    assert "A-One" in reloaded and "B-Two" in reloaded


def test_failed_write_removes_temp_file(tmp_path, monkeypatch):
    from listing_locator.core import cache as cache_module

    path = tmp_path / "cache.json"
    path.write_text('{"A-One": {"lat": -33.0, "lon": 151.0}}', encoding="utf-8")
    cache = GeocodeCache.load(path)
    cache.put("B-Two", Coordinate(-34.0, 150.5))

    def failing_dump(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(cache_module.json, "dump", failing_dump)

    with pytest.raises(OSError):
        cache.persist()

    assert not (tmp_path / "cache.json.tmp").exists()
    assert cache.dirty
    assert json.loads(path.read_text(encoding="utf-8")) == {"A-One": {"lat": -33.0, "lon": 151.0}}
