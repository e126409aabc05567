import math
import sys
from pathlib import Path

import pytest

# Ensure the top-level packages are importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from catalog.memory import InMemoryCatalog  # noqa: E402
from catalog.models import Location  # noqa: E402
from geo.distance import EARTH_RADIUS_MILES  # noqa: E402

CHICAGO = (41.85, -87.65)
ATLANTA = (33.75, -84.39)


def offset_point(center, miles, bearing_degrees):
    """Point `miles` away from `center` along the given compass bearing."""
    lat1 = math.radians(center[0])
    lon1 = math.radians(center[1])
    bearing = math.radians(bearing_degrees)
    d = miles / EARTH_RADIUS_MILES

    lat2 = math.asin(math.sin(lat1) * math.cos(d) + math.cos(lat1) * math.sin(d) * math.cos(bearing))
    lon2 = lon1 + math.atan2(
        math.sin(bearing) * math.sin(d) * math.cos(lat1),
        math.cos(d) - math.sin(lat1) * math.sin(lat2),
    )
    return (math.degrees(lat2), math.degrees(lon2))


def make_location(name, region, point, market, verified=False, population=None):
    return Location(
        name=name,
        region=region,
        latitude=point[0],
        longitude=point[1],
        market=market,
        verified=verified,
        population=population,
    )


def ring_of_markets(center, prefix, region, count, first_miles=12.0, step_miles=8.0, siblings=1):
    """
    `count` markets around `center`, market i at first_miles + i*step_miles
    on bearing 45*i. Every market gets a hub plus `siblings` cities 2 miles
    further out on the same bearing.
    """
    locations = []
    for index in range(count):
        miles = first_miles + index * step_miles
        bearing = (45.0 * index) % 360
        market = f"{prefix}{index}"
        locations.append(make_location(f"{prefix} Hub {index}", region, offset_point(center, miles, bearing), market))
        for sibling in range(siblings):
            point = offset_point(center, miles + 2.0 * (sibling + 1), bearing)
            locations.append(make_location(f"{prefix} Town {index}-{sibling + 1}", region, point, market))
    return locations


@pytest.fixture
def chicago():
    return make_location("Chicago", "IL", CHICAGO, "A", verified=True, population=2_700_000)


@pytest.fixture
def atlanta():
    return make_location("Atlanta", "GA", ATLANTA, "B", verified=True, population=498_000)


@pytest.fixture
def dense_locations(chicago, atlanta):
    """Eight pickup markets around Chicago and eight delivery markets around Atlanta, all within 75 mi."""
    return (
        [chicago, atlanta]
        + ring_of_markets(CHICAGO, "P", "IL", 8)
        + ring_of_markets(ATLANTA, "D", "GA", 8)
    )


@pytest.fixture
def dense_catalog(dense_locations):
    return InMemoryCatalog(dense_locations)
