#Purpose: The city catalog "adapter/client".
#Sole responsibility: talk to the hosted catalog (PostgREST / Supabase REST)
#over HTTP and return normalized Location objects.
#Encapsulates catalog-specific details:
#column names (city, state_or_province, kma_code, ...)
#PostgREST filter syntax (gte./lte./eq./ilike.)
#timeouts and error handling
#It should not contain crawl rules or scoring.

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from dotenv import load_dotenv

from geo.distance import BoundingBox

from .models import Location

# Read catalog settings from environment
# Example in .env:
# CATALOG_BASE_URL=https://xyz.supabase.co
# CATALOG_API_KEY=service-role-key
load_dotenv()

logger = logging.getLogger(__name__)

_COLUMNS = "city,state_or_province,zip,latitude,longitude,kma_code,here_verified,population"

Params = Sequence[Tuple[str, str]]


class CatalogQueryError(Exception):
    """Raised when the catalog cannot answer a query."""
    pass


class CatalogClient:
    """
    Catalog Adapter / Client

    Sole responsibility:
    - Talk to the catalog REST endpoint
    - Translate bounding-box / market / name lookups into filters
    - Return normalized Location objects

    """
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        table: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        page_size: int = 1000,
    ):
        self.base_url = (base_url or os.getenv("CATALOG_BASE_URL") or "").rstrip("/")
        self.api_key = api_key or os.getenv("CATALOG_API_KEY", "")
        self.table = table or os.getenv("CATALOG_TABLE", "cities")
        self.timeout = timeout if timeout is not None else float(os.getenv("CATALOG_TIMEOUT", "10"))
        self.session = session or requests.Session()
        self.page_size = page_size

        if not self.base_url:
            raise ValueError("Catalog base URL not set. Please set CATALOG_BASE_URL in the .env file.")
        if not self.api_key:
            logger.warning("CATALOG_API_KEY is not configured; catalog requests may be rejected.")

    #----------------
    # Public query shapes
    #----------------
    def query_by_bounding_box(self, box: BoundingBox) -> List[Location]:
        """All catalog rows with coordinates inside `box` and a market code."""
        params = [
            ("latitude", f"gte.{box.min_lat}"),
            ("latitude", f"lte.{box.max_lat}"),
            ("longitude", f"gte.{box.min_lon}"),
            ("longitude", f"lte.{box.max_lon}"),
            ("kma_code", "not.is.null"),
        ]
        return self._select(params)

    def query_by_market(self, market: str) -> List[Location]:
        """All catalog rows belonging to one market-area code."""
        return self._select([("kma_code", f"eq.{market}")])

    def find_by_name(self, name: str, region: str) -> Optional[Location]:
        """
        Case-insensitive city/region lookup used to resolve anchors.
        Returns the first match, or None.
        """
        rows = self._select(
            [
                ("city", f"ilike.{name.strip()}"),
                ("state_or_province", f"ilike.{region.strip()}"),
            ],
            limit=1,
        )
        return rows[0] if rows else None

    #----------------
    # Internal helpers
    #----------------
    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    def _select(self, filters: Params, limit: Optional[int] = None) -> List[Location]:
        url = f"{self.base_url}/rest/v1/{self.table}"
        locations: List[Location] = []
        offset = 0
        page = limit or self.page_size

        # PostgREST caps responses, so walk pages until a short one comes back
        while True:
            params: List[Tuple[str, str]] = [("select", _COLUMNS), *filters]
            params += [("order", "city.asc"), ("limit", str(page)), ("offset", str(offset))]
            rows = self._get(url, params)
            locations.extend(Location.from_row(row) for row in rows)

            if limit is not None or len(rows) < page:
                return locations
            offset += page

    def _get(self, url: str, params: Params) -> List[Dict[str, Any]]:
        try:
            response = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise CatalogQueryError(f"Catalog request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error("Catalog query failed: status=%s body=%s", response.status_code, response.text[:200])
            raise CatalogQueryError(f"Catalog error: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise CatalogQueryError("Catalog returned a non-JSON payload") from exc

        if not isinstance(data, list):
            message = data.get("message", "Unknown error") if isinstance(data, dict) else "Unknown error"
            raise CatalogQueryError(f"Catalog error: {message}")
        return data
