"""HTTP entrypoint that ranks listings around a caller-supplied location."""

from __future__ import annotations

import logging
import math
import os
from typing import Any, List, Optional

from flask import Flask, jsonify, request

from listing_locator.core.cache import GeocodeCache
from listing_locator.core.config import get_settings
from listing_locator.core.models import Coordinate, ListingRecord
from listing_locator.core.ranking import ScoreRanker, ScoringPolicy
from listing_locator.etl.listings import load_listings, merge_coordinates
from listing_locator.jobs.geocode_listings import build_resolver

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)
_listings: Optional[List[ListingRecord]] = None


def get_listings() -> List[ListingRecord]:
    """Load the dataset once per process."""
    global _listings
    if _listings is None:
        _listings = load_listings(get_settings().listings_csv_url)
    return _listings


def load_cache() -> GeocodeCache:
    # Re-read on each request so results from a concurrent batch run show up.
    return GeocodeCache.load(get_settings().cache_path)


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/rank")
def rank_listings() -> Any:
    """
    Rank listings around a location.
    Required query params: lat, lon
    Optional: radius_km (float), top_n (int), widen (bool)
    """
    args = request.args
    missing = [f for f in ("lat", "lon") if not args.get(f)]
    if missing:
        return jsonify({"error": f"missing fields: {', '.join(missing)}"}), 400

    user_location = Coordinate.parse(args.get("lat"), args.get("lon"))
    if user_location is None:
        return jsonify({"error": "lat/lon must be numeric and within range"}), 400

    settings = get_settings()
    policy = ScoringPolicy.from_settings(settings)

    radius_km = policy.radius_km
    if args.get("radius_km") is not None:
        try:
            radius_km = float(args["radius_km"])
        except (TypeError, ValueError):
            return jsonify({"error": "radius_km must be numeric"}), 400
        if not math.isfinite(radius_km) or radius_km <= 0:
            return jsonify({"error": "radius_km must be a positive finite number"}), 400

    top_n = policy.top_n
    if args.get("top_n") is not None:
        try:
            top_n = int(args["top_n"])
        except (TypeError, ValueError):
            return jsonify({"error": "top_n must be numeric"}), 400
        if top_n < 0:
            return jsonify({"error": "top_n must not be negative"}), 400

    widen = args.get("widen", "false").lower() in {"1", "true", "yes"}

    try:
        listings = get_listings()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to load listings: %s", exc)
        return jsonify({"error": "listings unavailable"}), 503

    cache = load_cache()
    resolver = build_resolver(settings, cache) if widen else None
    ranker = ScoreRanker(policy, resolver=resolver)
    ranked = ranker.rank(merge_coordinates(listings, cache), user_location, radius_km=radius_km, top_n=top_n)

    if resolver is not None and cache.dirty:
        try:
            cache.persist()
        except OSError as exc:
            logger.error("Failed to save geocode cache: %s", exc)

    return jsonify({"data": [item.to_dict() for item in ranked], "count": len(ranked)}), 200


def main() -> None:
    env_port = os.getenv("PORT")
    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
