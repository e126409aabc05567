"""
Purpose: Core data models for the city catalog.
What it does:
Defines the structure of a catalog Location and the helpers to build one
from a raw catalog row, without relying on any storage engine.

Rule: No queries, no scoring. Models only.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

LatLon = Tuple[float, float]


def location_key(name: str, region: str) -> str:
    """
    Stable identity of a location across requests ("city|STATE").
    This is the key callers keep in their used-location set.
    """
    return f"{(name or '').strip().lower()}|{(region or '').strip().upper()}"


@dataclass(frozen=True)
class Location:
    """
    A point of interest read from the catalog. Never mutated by the engine;
    derived fields (distance, score) live on crawl.models.Candidate instead.
    """
    name: str
    region: str
    latitude: Optional[float]
    longitude: Optional[float]
    market: Optional[str]
    postal_code: str = ""

    # Optional quality signals the scorer can utilize.
    verified: bool = False
    population: Optional[int] = None

    # Carried through untouched for the caller.
    equipment_bias: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return location_key(self.name, self.region)

    @property
    def point(self) -> LatLon:
        return (self.latitude, self.longitude)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> Location:
        """
        Build a Location from a catalog row (cities table column names).
        Missing or unparsable numbers become None so the validator can
        reject the row instead of this constructor raising.
        """
        bias = row.get("equipment_bias") or ()
        if isinstance(bias, str):
            bias = tuple(part.strip() for part in bias.split(",") if part.strip())

        market = row.get("kma_code")
        if market is not None:
            market = str(market).strip() or None

        return cls(
            name=str(row.get("city") or "").strip(),
            region=str(row.get("state_or_province") or "").strip().upper(),
            latitude=_to_float(row.get("latitude")),
            longitude=_to_float(row.get("longitude")),
            market=market,
            postal_code=str(row.get("zip") or "").strip(),
            verified=_to_bool(row.get("here_verified")),
            population=_to_int(row.get("population")),
            equipment_bias=tuple(bias),
        )


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    if number is None or not math.isfinite(number):
        return None
    return int(number)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "t", "y"}
    return bool(value) if value is not None else False
