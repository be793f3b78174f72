"""Durable identity-key -> coordinate store backed by a JSON file."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from listing_locator.core.models import Coordinate

logger = logging.getLogger(__name__)


class GeocodeCache:
    """Flat mapping of identity keys to coordinates.

    Entries are never removed. The whole mapping is rewritten on every
    :meth:`persist` call; a single writer process is assumed.
    """

    def __init__(self, path: Union[str, Path], entries: Optional[Dict[str, Coordinate]] = None) -> None:
        self.path = Path(path)
        self._entries: Dict[str, Coordinate] = dict(entries or {})
        self._dirty = False

    @classmethod
    def load(cls, path: Union[str, Path]) -> "GeocodeCache":
        """Read the cache file, starting empty when it is missing or unreadable."""
        path = Path(path)
        if not path.exists():
            logger.info("No geocode cache at %s; starting fresh.", path)
            return cls(path)

        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Error reading geocode cache %s, starting fresh: %s", path, exc)
            return cls(path)

        if not isinstance(raw, dict):
            logger.warning("Geocode cache %s is not a JSON object; starting fresh.", path)
            return cls(path)

        entries: Dict[str, Coordinate] = {}
        for key, value in raw.items():
            coordinate = None
            if isinstance(value, dict):
                coordinate = Coordinate.parse(value.get("lat"), value.get("lon"))
            if coordinate is None:
                logger.warning("Skipping malformed cache entry %r", key)
                continue
            entries[key] = coordinate

        logger.info("Loaded %d cached coordinates from %s", len(entries), path)
        return cls(path, entries)

    def get(self, key: str) -> Optional[Coordinate]:
        return self._entries.get(key)

    def put(self, key: str, coordinate: Coordinate) -> None:
        self._entries[key] = coordinate
        self._dirty = True

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            key: {"lat": coordinate.latitude, "lon": coordinate.longitude}
            for key, coordinate in self._entries.items()
        }

    def persist(self) -> None:
        """Rewrite the backing file with every entry, replacing it atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(self.to_dict(), fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        self._dirty = False
        logger.info("Saved %d geocoded entries to %s", len(self._entries), self.path)
