"""
Purpose: Radius-bounded nearest-neighbor search around an anchor.
What it does:

- queries the catalog inside the bounding box of the current radius
- refines with exact great-circle distance and the eligibility gates
- counts unique market-area codes among survivors (anchor markets excluded)
- widens the radius by a fixed increment until the market target is met
  or the ceiling is reached

The loop is bounded: at most (ceiling - start) / increment + 1 catalog
queries per call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Collection, Iterable, List, Optional

from catalog.models import Location
from catalog.validator import is_eligible
from geo.distance import BoundingBox, bounding_box, distance

from .models import Candidate, SearchAnchor, SearchContext

logger = logging.getLogger(__name__)

# ---- Types you plug into from catalog/ ----
# A function that returns every catalog Location inside a bounding box.
BoundingBoxQuery = Callable[[BoundingBox], List[Location]]


@dataclass(frozen=True)
class RadiusSearchResult:
    """
    Output of a radius search for one side of a lane.
    """
    candidates: List[Candidate]
    radius: float
    unique_markets: int
    reached_target: bool

    # Every radius queried, in order (never decreasing).
    radii: List[float] = field(default_factory=list)


def annotate_candidates(
    anchor: SearchAnchor,
    locations: Iterable[Location],
    *,
    radius: float,
    excluded_markets: Collection[str] = (),
) -> List[Candidate]:
    """
    Turn raw catalog rows into distance-annotated candidates within `radius`.

    Drops rows that fail the eligibility gates, rows in an excluded market,
    rows beyond the radius, and duplicate location keys (first row wins).
    Sorted by distance, then location key.
    """
    candidates: List[Candidate] = []
    seen = set()

    for location in locations:
        if not is_eligible(location):
            continue
        if location.market in excluded_markets:
            continue
        if location.key in seen:
            continue

        miles = distance(anchor.point, location.point)
        if miles > radius:
            continue

        seen.add(location.key)
        candidates.append(Candidate(location=location, distance=miles))

    candidates.sort(key=lambda candidate: (candidate.distance, candidate.key))
    return candidates


def count_markets(candidates: Iterable[Candidate]) -> int:
    return len({candidate.market for candidate in candidates})


def radius_search(
    anchor: SearchAnchor,
    query: BoundingBoxQuery,
    *,
    start_radius: float,
    increment: float,
    ceiling: float,
    target_markets: int,
    excluded_markets: Collection[str] = (),
    context: Optional[SearchContext] = None,
) -> RadiusSearchResult:
    """
    Expand from `start_radius` toward `ceiling` until at least
    `target_markets` distinct markets (other than the excluded ones) are
    within reach.

    Parameters
    ----------
    anchor:
        Resolved origin or destination.
    query:
        Catalog bounding-box query. Failures should already be mapped to an
        empty list (see catalog.session.CatalogSession).
    start_radius, increment, ceiling:
        Miles. The radius never exceeds `ceiling` and never decreases.
    target_markets:
        Stop as soon as this many distinct markets are found.
    excluded_markets:
        Usually the anchor's own market (and the other anchor's).
    context:
        Optional deadline/cancellation; an expired context stops expansion
        and returns what the last completed query found.

    Returns
    -------
    RadiusSearchResult with candidates sorted by distance.
    """
    if increment <= 0:
        raise ValueError("increment must be > 0")

    excluded = set(excluded_markets)
    excluded.add(anchor.market)

    radius = min(start_radius, ceiling)
    radii: List[float] = []
    candidates: List[Candidate] = []
    unique_markets = 0

    while True:
        rows = query(bounding_box(anchor.point, radius))
        candidates = annotate_candidates(anchor, rows, radius=radius, excluded_markets=excluded)
        unique_markets = count_markets(candidates)
        radii.append(radius)

        logger.debug(
            "Radius search around %s, %s at %.1f mi: %d candidates, %d markets",
            anchor.name, anchor.region, radius, len(candidates), unique_markets,
        )

        if unique_markets >= target_markets or radius >= ceiling:
            break
        if context is not None and context.expired():
            break
        radius = min(radius + increment, ceiling)

    return RadiusSearchResult(
        candidates=candidates,
        radius=radius,
        unique_markets=unique_markets,
        reached_target=unique_markets >= target_markets,
        radii=radii,
    )
