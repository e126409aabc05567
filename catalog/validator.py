"""
Purpose: Hard eligibility gates for catalog rows.
Builds the base candidate set before distance filtering and scoring:

- latitude/longitude present, finite and inside [-90, 90] / [-180, 180]
- market-area code present and non-empty

Output: "rule-qualified" locations (still not ranked).
Rejections are not errors; callers decide whether to log them.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List

from .models import Location

logger = logging.getLogger(__name__)


def is_eligible(location: Location) -> bool:
    """
    True iff the location has usable coordinates and a market code.
    Never raises.
    """
    try:
        lat = float(location.latitude)
        lon = float(location.longitude)
    except (TypeError, ValueError, AttributeError):
        return False

    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return False

    market = getattr(location, "market", None)
    return isinstance(market, str) and bool(market.strip())


def filter_eligible_locations(locations: Iterable[Location]) -> List[Location]:
    """
    Returns only the locations that pass is_eligible, preserving order.
    """
    eligible = []
    dropped = 0

    for location in locations:
        if not is_eligible(location):
            dropped += 1
            continue
        eligible.append(location)

    if dropped:
        logger.debug("Dropped %d catalog rows that failed eligibility checks", dropped)
    return eligible
