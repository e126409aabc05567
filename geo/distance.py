"""
Purpose: Great-circle distance math for the crawl engine.
What it does:

- haversine distance between two (lat, lon) points, in miles
- radius checks built on top of it
- bounding boxes used to pre-filter catalog queries before the exact
  distance is computed (coarse filter, exact refine)

Rule: Pure functions only. No catalog access, no scoring.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

# internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_MILES = 3958.8

# Sentinel returned for non-finite input so radius filters always reject it.
INFINITE_DISTANCE = float("inf")


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned lat/lon box. Longitudes are clamped to [-180, 180];
    boxes that would cross the antimeridian are widened to the full range.
    """
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, point: LatLon) -> bool:
        lat, lon = point
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon


def _is_finite_point(point: LatLon) -> bool:
    try:
        lat, lon = point
        return math.isfinite(float(lat)) and math.isfinite(float(lon))
    except (TypeError, ValueError):
        return False


def distance(point_a: LatLon, point_b: LatLon) -> float:
    """
    Haversine distance in miles between two (lat, lon) points in degrees.

    Returns INFINITE_DISTANCE (never NaN) when either point is malformed or
    not finite.
    """
    if not _is_finite_point(point_a) or not _is_finite_point(point_b):
        return INFINITE_DISTANCE

    lat1, lon1 = map(math.radians, map(float, point_a))
    lat2, lon2 = map(math.radians, map(float, point_b))

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # clamp: rounding can push `a` a hair above 1 for antipodal points
    c = 2 * math.asin(math.sqrt(min(1.0, max(0.0, a))))
    return EARTH_RADIUS_MILES * c


def within_radius(point_a: LatLon, point_b: LatLon, radius: float) -> bool:
    return distance(point_a, point_b) <= radius


def bounding_box(point: LatLon, radius: float) -> BoundingBox:
    """
    Smallest lat/lon box guaranteed to contain every point within `radius`
    miles of `point`.
    """
    if not _is_finite_point(point) or not math.isfinite(radius) or radius < 0:
        raise ValueError(f"cannot build bounding box around {point!r} with radius {radius!r}")
    lat, lon = float(point[0]), float(point[1])

    angular = radius / EARTH_RADIUS_MILES
    delta_lat = math.degrees(angular)
    min_lat = max(-90.0, lat - delta_lat)
    max_lat = min(90.0, lat + delta_lat)

    # near the poles every longitude is within reach
    cos_lat = math.cos(math.radians(lat))
    if max_lat >= 90.0 or min_lat <= -90.0 or cos_lat <= 1e-12 or angular >= math.pi / 2:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    ratio = math.sin(angular) / cos_lat
    if ratio >= 1.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)
    delta_lon = math.degrees(math.asin(ratio))

    min_lon = lon - delta_lon
    max_lon = lon + delta_lon
    if min_lon < -180.0 or max_lon > 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    return BoundingBox(min_lat, max_lat, min_lon, max_lon)
