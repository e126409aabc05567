from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

import requests

from geo.distance import BoundingBox

from .client import CatalogQueryError
from .models import Location

logger = logging.getLogger(__name__)


class CatalogSession:
    """
    Wraps a catalog (CatalogClient, InMemoryCatalog, or anything with the
    same query methods) for the lifetime of one search request.

    - identical queries are answered from a local cache, so fallback stages
      never re-query what an earlier stage already fetched
    - a failed query is treated as "zero candidates" and counted, so the
      fallback hierarchy can escalate instead of the request failing
    """
    def __init__(self, catalog):
        self.catalog = catalog
        self.failures = 0
        self.queries = 0
        self._cache: Dict[Tuple, List[Location]] = {}
        self._lock = threading.Lock()

    def query_by_bounding_box(self, box: BoundingBox) -> List[Location]:
        key = ("bbox", round(box.min_lat, 6), round(box.max_lat, 6), round(box.min_lon, 6), round(box.max_lon, 6))
        return self._cached(key, self.catalog.query_by_bounding_box, box)

    def query_by_market(self, market: str) -> List[Location]:
        return self._cached(("market", market), self.catalog.query_by_market, market)

    def find_by_name(self, name: str, region: str) -> Optional[Location]:
        """
        Anchor lookup. Errors propagate here: an unresolvable anchor is fatal
        and the caller turns it into AnchorNotFound.
        """
        finder = getattr(self.catalog, "find_by_name", None)
        if finder is None:
            return None
        with self._lock:
            self.queries += 1
        return finder(name, region)

    def _cached(self, key: Tuple, query, argument) -> List[Location]:
        with self._lock:
            if key in self._cache:
                return list(self._cache[key])
            self.queries += 1

        try:
            rows = list(query(argument) or [])
        except (CatalogQueryError, requests.RequestException) as exc:
            logger.warning("Catalog query %s failed, treating as empty: %s", key[0], exc)
            with self._lock:
                self.failures += 1
            return []

        with self._lock:
            self._cache[key] = rows
        return list(rows)
