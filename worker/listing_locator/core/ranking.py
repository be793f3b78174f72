"""Distance/rating ranking of resolved listings around a user location."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from listing_locator.core.config import Settings
from listing_locator.core.distance import distance
from listing_locator.core.models import Coordinate, ListingCandidate, ScoredListing
from listing_locator.core.resolver import GeocodeResolver

logger = logging.getLogger(__name__)


def _rating_value(rating: Optional[float]) -> float:
    # Missing, NaN and infinite ratings all score as 0.
    if rating is None or not math.isfinite(rating):
        return 0.0
    return rating


@dataclass(frozen=True)
class ScoringPolicy:
    """Tunable ranking constants.

    With the default weights one rating point is worth 5 km of travel.
    """

    rating_weight: float = 10.0
    distance_weight: float = 2.0
    radius_km: float = 100.0
    top_n: int = 10
    sparse_threshold: int = 5
    widen_limit: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringPolicy":
        return cls(
            rating_weight=settings.rating_weight,
            distance_weight=settings.distance_weight,
            radius_km=settings.radius_km,
            top_n=settings.top_n,
            sparse_threshold=settings.sparse_threshold,
            widen_limit=settings.widen_limit,
        )

    def score(self, rating: Optional[float], distance_km: float) -> float:
        return _rating_value(rating) * self.rating_weight - distance_km * self.distance_weight


class ScoreRanker:
    """Score, filter and badge listings for one query.

    When a resolver is supplied and fewer than ``sparse_threshold`` listings
    fall inside the radius, the best-rated unresolved listings are geocoded on
    demand (at most ``widen_limit``) before ranking again.
    """

    def __init__(self, policy: Optional[ScoringPolicy] = None, resolver: Optional[GeocodeResolver] = None) -> None:
        self.policy = policy or ScoringPolicy()
        self.resolver = resolver

    def rank(
        self,
        candidates: Sequence[ListingCandidate],
        user_location: Coordinate,
        radius_km: Optional[float] = None,
        top_n: Optional[int] = None,
    ) -> List[ScoredListing]:
        radius = self.policy.radius_km if radius_km is None else radius_km
        limit = self.policy.top_n if top_n is None else top_n
        candidates = list(candidates)

        ranked = self._score(candidates, user_location, radius, limit)
        if self.resolver is not None and len(ranked) < self.policy.sparse_threshold:
            widened = self._widen(candidates)
            if widened is not candidates:
                ranked = self._score(widened, user_location, radius, limit)
        return ranked

    def _score(
        self,
        candidates: Sequence[ListingCandidate],
        user_location: Coordinate,
        radius_km: float,
        top_n: int,
    ) -> List[ScoredListing]:
        scored: List[Tuple[int, ScoredListing]] = []
        for index, candidate in enumerate(candidates):
            if candidate.coordinate is None:
                continue
            distance_km = distance(user_location, candidate.coordinate)
            if distance_km > radius_km:
                continue
            score = self.policy.score(candidate.record.rating, distance_km)
            scored.append((index, ScoredListing(candidate.record, candidate.coordinate, distance_km, score)))

        # Python's sort is stable, so equal scores keep input (curated) order.
        scored.sort(key=lambda item: -item[1].score)
        return [
            replace(listing, rank_badge=position + 1 if position < top_n else None)
            for position, (_, listing) in enumerate(scored)
        ]

    def _widen(self, candidates: List[ListingCandidate]) -> List[ListingCandidate]:
        unresolved = [index for index, candidate in enumerate(candidates) if candidate.coordinate is None]
        if not unresolved:
            return candidates

        unresolved.sort(key=lambda index: -_rating_value(candidates[index].record.rating))
        picked = unresolved[: self.policy.widen_limit]
        logger.info("Sparse results; geocoding %d more listings on demand", len(picked))

        widened = list(candidates)
        for index in picked:
            coordinate = self.resolver.resolve(candidates[index].record)
            if coordinate is not None:
                widened[index] = ListingCandidate(candidates[index].record, coordinate)
        return widened
