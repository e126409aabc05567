#Marks geo as a package and re-exports the distance helpers
#so other modules import from geo without knowing internal file names.

from .distance import (
    EARTH_RADIUS_MILES,
    INFINITE_DISTANCE,
    BoundingBox,
    LatLon,
    bounding_box,
    distance,
    within_radius,
)

__all__ = [
    "EARTH_RADIUS_MILES",
    "INFINITE_DISTANCE",
    "BoundingBox",
    "LatLon",
    "bounding_box",
    "distance",
    "within_radius",
]
