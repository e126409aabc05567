"""
Purpose: Resolve the caller's origin/destination into SearchAnchors.
What it does:
- name + region -> catalog lookup (case-insensitive)
- coordinates + market -> used as given
- coordinates without market -> market of the nearest eligible catalog city
  within the policy's snap radius

Any failure is fatal for the request and raised as AnchorNotFound.
"""

from __future__ import annotations

import logging

import requests

from catalog.client import CatalogQueryError
from catalog.models import Location
from catalog.session import CatalogSession
from catalog.validator import is_eligible
from geo.distance import bounding_box, distance

from .models import AnchorNotFound, AnchorQuery, SearchAnchor
from .policy import SearchPolicy

logger = logging.getLogger(__name__)


def resolve_anchor(query: AnchorQuery, session: CatalogSession, policy: SearchPolicy, label: str) -> SearchAnchor:
    """
    Turn an AnchorQuery into a validated SearchAnchor or raise AnchorNotFound.
    `label` ("origin"/"destination") only feeds error messages.
    """
    if query.coordinates is not None:
        return _resolve_by_coordinates(query, session, policy, label)

    if not query.name or not query.region:
        raise AnchorNotFound(f"{label}: a name and region, or coordinates, are required")

    try:
        location = session.find_by_name(query.name, query.region)
    except (CatalogQueryError, requests.RequestException) as exc:
        raise AnchorNotFound(f"{label}: catalog lookup for {query.name}, {query.region} failed: {exc}") from exc

    if location is None:
        raise AnchorNotFound(f"{label}: {query.name}, {query.region} is not in the catalog")
    if not is_eligible(location):
        raise AnchorNotFound(f"{label}: {query.name}, {query.region} has no usable coordinates or market")

    return SearchAnchor.from_location(location)


def _resolve_by_coordinates(query: AnchorQuery, session: CatalogSession, policy: SearchPolicy, label: str) -> SearchAnchor:
    lat, lon = query.coordinates
    probe = Location(
        name=query.name or f"{lat},{lon}",
        region=query.region,
        latitude=lat,
        longitude=lon,
        market=query.market or "unassigned",
    )
    if not is_eligible(probe):
        raise AnchorNotFound(f"{label}: coordinates {query.coordinates!r} are not valid")

    if query.market:
        return SearchAnchor.from_location(probe)

    # snap to the market of the nearest catalog city
    rows = session.query_by_bounding_box(bounding_box(probe.point, policy.anchor_snap_radius))
    nearest = None
    nearest_miles = policy.anchor_snap_radius
    for row in rows:
        if not is_eligible(row):
            continue
        miles = distance(probe.point, row.point)
        if miles <= nearest_miles and (nearest is None or (miles, row.key) < (nearest_miles, nearest.key)):
            nearest, nearest_miles = row, miles

    if nearest is None:
        raise AnchorNotFound(
            f"{label}: no catalog city with a market within {policy.anchor_snap_radius} mi of {query.coordinates!r}"
        )

    logger.debug("%s snapped to market %s via %s, %s (%.1f mi)", label, nearest.market, nearest.name, nearest.region, nearest_miles)
    return SearchAnchor(
        name=query.name or nearest.name,
        region=query.region or nearest.region,
        latitude=float(lat),
        longitude=float(lon),
        market=nearest.market,
        postal_code=nearest.postal_code if not query.name else "",
    )
