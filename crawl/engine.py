"""
Purpose: The crawl "orchestrator" (single entry point).
What it does:

Coordinates one lane request end-to-end:

- validates the request and derives the effective SearchPolicy

- resolves origin and destination into SearchAnchors (anchors.py)

- runs the fallback hierarchy (fallback.py), which in turn drives
  radius search -> validation -> grouping -> scoring -> pairing

- fills diagnostics and records the chosen locations in the caller's
  used-location set

Typical public function signature:

- search(request, catalog, policy=None, market_cache=None) -> SearchResult

Rule: Engine is the only file other modules should call directly for crawling.
"""

# crawl/engine.py

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import List, Optional, Sequence, Union

from catalog.market_cache import MarketCache
from catalog.session import CatalogSession

from .anchors import resolve_anchor
from .fallback import AdjacencyProvider, FallbackHierarchy
from .models import (
    InvalidRequest,
    SearchContext,
    SearchDiagnostics,
    SearchError,
    SearchRequest,
    SearchResult,
)
from .policy import SearchPolicy, default_policy

logger = logging.getLogger(__name__)


def effective_policy(request: SearchRequest, policy: Optional[SearchPolicy] = None) -> SearchPolicy:
    """
    Apply the request's ceiling and target pair count on top of `policy`.
    The primary radius is clamped so it never exceeds the ceiling.
    """
    base = policy or default_policy()
    merged = replace(
        base,
        radius_ceiling=float(request.radius_ceiling),
        primary_radius=min(base.primary_radius, float(request.radius_ceiling)),
        target_pairs=int(request.target_pairs),
    )
    try:
        merged.validate()
    except ValueError as exc:
        raise InvalidRequest(str(exc)) from exc
    return merged


def search(
    request: SearchRequest,
    catalog,
    *,
    policy: Optional[SearchPolicy] = None,
    market_cache: Optional[MarketCache] = None,
    adjacency: Optional[AdjacencyProvider] = None,
    context: Optional[SearchContext] = None,
) -> SearchResult:
    """
    Main crawl entry point.

    Parameters
    ----------
    request:
        Origin/destination, target pair count, radius ceiling and the
        caller-owned used-location set.
    catalog:
        Anything with query_by_bounding_box / query_by_market / find_by_name
        (CatalogClient, InMemoryCatalog). Wrapped in a per-request
        CatalogSession, so query failures become empty results.
    policy:
        Tunables; defaults to default_policy().
    market_cache:
        Optional MarketCache. Its adjacent_markets() enables the
        adjacent-market fallback stage.
    adjacency:
        Optional adjacency function overriding the cache's.
    context:
        Optional deadline/cancellation. An expired context yields a partial
        result flagged as cancelled.

    Returns
    -------
    SearchResult with pairs best first. Fewer pairs than requested is not
    an error; see diagnostics.shortfall_reason.

    Raises
    ------
    InvalidRequest:
        target pair count or radius ceiling is not positive.
    AnchorNotFound:
        origin or destination cannot be resolved.
    """
    request.validate()
    search_policy = effective_policy(request, policy)

    session = CatalogSession(catalog)
    origin = resolve_anchor(request.origin, session, search_policy, "origin")
    destination = resolve_anchor(request.destination, session, search_policy, "destination")

    if adjacency is None and market_cache is not None:
        adjacency = market_cache.adjacent_markets

    logger.info(
        "Crawl %s, %s (%s) -> %s, %s (%s): target %d pairs, ceiling %.0f mi",
        origin.name, origin.region, origin.market,
        destination.name, destination.region, destination.market,
        search_policy.target_pairs, search_policy.radius_ceiling,
    )

    hierarchy = FallbackHierarchy(session, search_policy, adjacency=adjacency, context=context)
    outcome = hierarchy.run(
        origin,
        destination,
        target=search_policy.target_pairs,
        used_locations=request.used_locations,
    )

    diagnostics = SearchDiagnostics(
        radius_used=max(outcome.pickup.radius, outcome.delivery.radius),
        pickup_radius=outcome.pickup.radius,
        delivery_radius=outcome.delivery.radius,
        pickup_markets=outcome.pickup.unique_markets(),
        delivery_markets=outcome.delivery.unique_markets(),
        pickup_radii=list(outcome.pickup.radii),
        delivery_radii=list(outcome.delivery.radii),
        fallback_fired=outcome.fallback_stage is not None,
        fallback_stage=outcome.fallback_stage,
        stages=list(outcome.stages),
        relaxed=outcome.relaxed,
        cancelled=outcome.cancelled,
        catalog_failures=session.failures,
        shortfall_reason=outcome.shortfall_reason,
    )

    result = SearchResult(
        origin=origin,
        destination=destination,
        equipment=request.equipment,
        pairs=outcome.pairs,
        diagnostics=diagnostics,
    )

    if request.record_usage:
        request.used_locations.update(result.location_keys())

    if diagnostics.shortfall_reason:
        logger.warning("Crawl %s -> %s short: %s", origin.name, destination.name, diagnostics.shortfall_reason)
    elif diagnostics.fallback_fired:
        logger.info("Crawl %s -> %s reached target via %s", origin.name, destination.name, diagnostics.fallback_stage.value)

    return result


def search_many(
    requests: Sequence[SearchRequest],
    catalog,
    *,
    policy: Optional[SearchPolicy] = None,
    market_cache: Optional[MarketCache] = None,
    context: Optional[SearchContext] = None,
    max_workers: int = 4,
) -> List[Union[SearchResult, SearchError]]:
    """
    Run independent lane requests on a worker pool.

    Results come back in input order. A request that fails fatally is
    returned in place as its SearchError instance so one bad lane does not
    sink the batch.
    """
    if not requests:
        return []

    def run_one(request: SearchRequest) -> Union[SearchResult, SearchError]:
        try:
            return search(request, catalog, policy=policy, market_cache=market_cache, context=context)
        except SearchError as exc:
            logger.warning("Lane request failed: %s", exc)
            return exc

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(requests)))) as pool:
        return list(pool.map(run_one, requests))
