"""Core data models shared by the geocoding and ranking pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    @classmethod
    def parse(cls, latitude: object, longitude: object) -> Optional["Coordinate"]:
        """Build a coordinate from loosely typed values, or None when unusable."""
        try:
            lat = float(latitude)  # type: ignore[arg-type]
            lon = float(longitude)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            return None
        return cls(latitude=lat, longitude=lon)


@dataclass(frozen=True, slots=True)
class ListingRecord:
    """A single business listing as read from the source dataset."""

    name: str
    suburb: str
    postcode: str = ""
    raw_link: Optional[str] = None
    rating: Optional[float] = None
    rank: Optional[int] = None

    @property
    def identity_key(self) -> str:
        # Not unique if the dataset repeats a name/suburb pair.
        return f"{self.name}-{self.suburb}"


@dataclass(frozen=True, slots=True)
class LinkResolution:
    canonical_name: Optional[str] = None
    coordinate: Optional[Coordinate] = None


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of running a record through the fallback chain."""

    coordinate: Optional[Coordinate] = None
    strategy: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.coordinate is not None


@dataclass(frozen=True, slots=True)
class ListingCandidate:
    """A listing merged with its resolved coordinate, if any."""

    record: ListingRecord
    coordinate: Optional[Coordinate] = None


@dataclass(frozen=True, slots=True)
class ScoredListing:
    record: ListingRecord
    coordinate: Coordinate
    distance_km: float
    score: float
    rank_badge: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "name": self.record.name,
            "suburb": self.record.suburb,
            "postcode": self.record.postcode,
            "rating": self.record.rating,
            "rank": self.record.rank,
            "lat": self.coordinate.latitude,
            "lon": self.coordinate.longitude,
            "distance_km": round(self.distance_km, 3),
            "score": round(self.score, 3),
            "rank_badge": self.rank_badge,
        }


@dataclass(slots=True)
class RunSummary:
    attempted: int = 0
    from_cache: int = 0
    resolved: int = 0
    unresolved: int = 0
    stopped_early: bool = False
