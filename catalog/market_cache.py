"""
Purpose: Market-area metadata, loaded once and shared read-only.
What it does:

- keeps one MarketInfo per market-area code (centroid, city count,
  largest population)
- answers "which markets are adjacent to this one?" for the
  adjacent-market fallback stage
- answers "is this a major market?" for reporting and scoring

Lifecycle:
    cache = MarketCache.load(catalog)      # at service start
    engine calls cache.adjacent_markets()  # read-only, any number of requests
    cache.refresh(catalog)                 # from a scheduled job, if wanted

Rule: construct it explicitly and pass it in. There is no module-level
instance.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from geo.distance import BoundingBox, LatLon, distance

from .models import Location
from .validator import filter_eligible_locations

logger = logging.getLogger(__name__)

# Lower 48 + southern Canada; wide enough for a North American lane book.
NORTH_AMERICA_BOUNDS = BoundingBox(min_lat=24.0, max_lat=55.0, min_lon=-125.0, max_lon=-66.0)


@dataclass(frozen=True)
class MarketInfo:
    code: str
    centroid: LatLon
    city_count: int
    max_population: int = 0


class MarketCache:
    """
    Read-only market metadata shared across requests.

    Adjacency comes from an explicit table when one is given (e.g. a curated
    neighbor list); otherwise two markets are adjacent when their centroids
    lie within `adjacency_radius` miles of each other.
    """
    def __init__(
        self,
        markets: Iterable[MarketInfo],
        *,
        adjacency_radius: float = 150.0,
        adjacency_table: Optional[Mapping[str, Sequence[str]]] = None,
        major_population: int = 100_000,
    ):
        self.adjacency_radius = adjacency_radius
        self.major_population = major_population
        self._adjacency_table = {code: list(codes) for code, codes in (adjacency_table or {}).items()}
        self._lock = threading.Lock()
        self._install(markets)

    def __len__(self) -> int:
        return len(self._markets)

    def __contains__(self, code: str) -> bool:
        return code in self._markets

    def get(self, code: str) -> Optional[MarketInfo]:
        return self._markets.get(code)

    def market_codes(self) -> List[str]:
        return sorted(self._markets)

    def is_major(self, code: str) -> bool:
        info = self._markets.get(code)
        return info is not None and info.max_population >= self.major_population

    def adjacent_markets(self, code: str) -> List[str]:
        """
        Markets adjacent to `code`, nearest first. Unknown codes have no
        neighbors.
        """
        if code in self._adjacency_table:
            return [other for other in self._adjacency_table[code] if other != code]

        return list(self._neighbors.get(code, []))

    # -------------------------
    # Loading / refresh
    # -------------------------

    @classmethod
    def from_locations(cls, locations: Iterable[Location], **kwargs) -> MarketCache:
        return cls(_summarize(locations), **kwargs)

    @classmethod
    def load(cls, catalog, bounds: BoundingBox = NORTH_AMERICA_BOUNDS, **kwargs) -> MarketCache:
        """
        Build the cache from one bounding-box sweep of the catalog.
        Catalog errors propagate: a service should not start with an empty
        market table by accident.
        """
        locations = catalog.query_by_bounding_box(bounds)
        cache = cls.from_locations(locations, **kwargs)
        logger.info("Market cache loaded: %d markets from %d catalog rows", len(cache), len(locations))
        return cache

    def refresh(self, catalog, bounds: BoundingBox = NORTH_AMERICA_BOUNDS) -> None:
        """Re-read the catalog and swap the market table in one step."""
        locations = catalog.query_by_bounding_box(bounds)
        self._install(_summarize(locations))
        logger.info("Market cache refreshed: %d markets", len(self._markets))

    def _install(self, markets: Iterable[MarketInfo]) -> None:
        by_code = {market.code: market for market in markets}
        neighbors = _build_neighbors(by_code, self.adjacency_radius)
        with self._lock:
            self._markets: Dict[str, MarketInfo] = by_code
            self._neighbors: Dict[str, List[str]] = neighbors


# -------------------------
# Internal helpers
# -------------------------

def _summarize(locations: Iterable[Location]) -> List[MarketInfo]:
    grouped: Dict[str, List[Location]] = {}
    for location in filter_eligible_locations(locations):
        grouped.setdefault(location.market, []).append(location)

    markets = []
    for code in sorted(grouped):
        members = grouped[code]
        lat = sum(m.latitude for m in members) / len(members)
        lon = sum(m.longitude for m in members) / len(members)
        markets.append(
            MarketInfo(
                code=code,
                centroid=(lat, lon),
                city_count=len(members),
                max_population=max((m.population or 0) for m in members),
            )
        )
    return markets


def _build_neighbors(markets: Dict[str, MarketInfo], radius: float) -> Dict[str, List[str]]:
    neighbors: Dict[str, List[Tuple[float, str]]] = {code: [] for code in markets}
    codes = sorted(markets)

    for i, code_a in enumerate(codes):
        for code_b in codes[i + 1:]:
            miles = distance(markets[code_a].centroid, markets[code_b].centroid)
            if miles <= radius:
                neighbors[code_a].append((miles, code_b))
                neighbors[code_b].append((miles, code_a))

    return {code: [other for _, other in sorted(pairs)] for code, pairs in neighbors.items()}
