"""
Purpose: In-memory catalog snapshot.
What it does:
Holds a list of Locations and answers the same query shapes as the HTTP
CatalogClient (bounding box, market, name). Snapshots are usually loaded
from a CSV export of the cities table with pandas.

Used by scripts and tests, and by deployments that preload the catalog.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from geo.distance import BoundingBox

from .models import Location, location_key


class InMemoryCatalog:
    """
    List-backed catalog. Query results keep the snapshot's row order, so
    identical snapshots always answer identically.
    """
    def __init__(self, locations: Iterable[Location]):
        self._locations: List[Location] = list(locations)

        self._by_market: Dict[str, List[Location]] = {}
        self._by_key: Dict[str, Location] = {}
        for location in self._locations:
            if location.market:
                self._by_market.setdefault(location.market, []).append(location)
            # first row wins for duplicate city/state pairs
            self._by_key.setdefault(location.key, location)

    def __len__(self) -> int:
        return len(self._locations)

    @property
    def locations(self) -> List[Location]:
        return list(self._locations)

    def query_by_bounding_box(self, box: BoundingBox) -> List[Location]:
        found = []
        for location in self._locations:
            if location.latitude is None or location.longitude is None:
                continue
            if box.contains(location.point):
                found.append(location)
        return found

    def query_by_market(self, market: str) -> List[Location]:
        return list(self._by_market.get(market, []))

    def find_by_name(self, name: str, region: str) -> Optional[Location]:
        return self._by_key.get(location_key(name, region))

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> InMemoryCatalog:
        """
        Load a cities export. Expected columns: city, state_or_province, zip,
        latitude, longitude, kma_code, and optionally here_verified,
        population, equipment_bias.
        """
        df = pd.read_csv(path, dtype={"zip": str, "kma_code": str})
        return cls.from_dataframe(df)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> InMemoryCatalog:
        # NaN -> None so the row parser sees missing values as missing
        df = df.astype(object).where(pd.notna(df), None)
        return cls(Location.from_row(row) for row in df.to_dict(orient="records"))
