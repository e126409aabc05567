"""
Purpose: Domain models for the crawl (market-diversity pairing) capability.
What it does:
- Defines core data structures:
- SearchAnchor (resolved origin/destination)
- Candidate (catalog Location + distance + score)
- PairCandidate (pickup Candidate + delivery Candidate + combined score)
- SearchRequest / SearchResult / SearchDiagnostics

Defines enums/constants:
- Side = PICKUP | DELIVERY
- FallbackStage = PRIMARY | RADIUS_EXPANSION | ADJACENT_MARKETS | RELAXED_UNIQUENESS | RANDOM_FILL
- RelaxationReason (why a pair broke the strict rules)

Defines SearchContext (deadline / cancellation carried through a search).

Defines the two fatal errors a search can raise.

Rule: No catalog calls, no crawl logic. Models only.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from catalog.models import LatLon, Location


class SearchError(Exception):
    """Base class for the fatal conditions of a search."""
    pass


class AnchorNotFound(SearchError):
    """Origin or destination could not be resolved to a usable catalog location."""
    pass


class InvalidRequest(SearchError):
    """Raised when request parameters are out of range (pair count or ceiling <= 0)."""
    pass


class Side(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class FallbackStage(str, Enum):
    """
    Escalation order of the fallback hierarchy. Each stage only runs when
    the previous ones left the result short of the target pair count.
    """
    PRIMARY = "primary"
    RADIUS_EXPANSION = "radius_expansion"
    ADJACENT_MARKETS = "adjacent_markets"
    RELAXED_UNIQUENESS = "relaxed_uniqueness"
    RANDOM_FILL = "random_fill"


class RelaxationReason(str, Enum):
    ADJACENT_MARKET = "adjacent_market"
    REUSED_PICKUP_MARKET = "reused_pickup_market"
    REUSED_DELIVERY_MARKET = "reused_delivery_market"
    RANDOM_FILL = "random_fill"


@dataclass(frozen=True)
class AnchorQuery:
    """
    How the caller names an origin or destination: by name + region, or by
    coordinates (optionally with a known market code).
    """
    name: str = ""
    region: str = ""
    coordinates: Optional[LatLon] = None
    market: Optional[str] = None

    @classmethod
    def by_name(cls, name: str, region: str) -> AnchorQuery:
        return cls(name=name, region=region)

    @classmethod
    def by_coordinates(cls, lat: float, lon: float, market: Optional[str] = None, name: str = "", region: str = "") -> AnchorQuery:
        return cls(name=name, region=region, coordinates=(lat, lon), market=market)


@dataclass(frozen=True)
class SearchAnchor:
    """
    Resolved origin or destination a search radiates from.
    """
    name: str
    region: str
    latitude: float
    longitude: float
    market: str
    postal_code: str = ""

    @property
    def point(self) -> LatLon:
        return (self.latitude, self.longitude)

    @classmethod
    def from_location(cls, location: Location) -> SearchAnchor:
        return cls(
            name=location.name,
            region=location.region,
            latitude=float(location.latitude),
            longitude=float(location.longitude),
            market=location.market,
            postal_code=location.postal_code,
        )


@dataclass(frozen=True)
class Candidate:
    """
    A catalog Location annotated for one request. Ephemeral.
    """
    location: Location
    distance: float
    score: float = 0.0

    # True for rows pulled in by the random fill stage.
    low_confidence: bool = False

    # True for rows pulled in through market adjacency.
    adjacent: bool = False

    @property
    def key(self) -> str:
        return self.location.key

    @property
    def market(self) -> str:
        return self.location.market

    @property
    def verified(self) -> bool:
        return self.location.verified


@dataclass(frozen=True)
class PairCandidate:
    """
    One posting: a pickup candidate matched with a delivery candidate.
    """
    pickup: Candidate
    delivery: Candidate
    score: float

    relaxation: Optional[RelaxationReason] = None

    @property
    def pickup_market(self) -> str:
        return self.pickup.market

    @property
    def delivery_market(self) -> str:
        return self.delivery.market

    @property
    def markets(self) -> Tuple[str, str]:
        return (self.pickup.market, self.delivery.market)

    @property
    def pickup_distance(self) -> float:
        return self.pickup.distance

    @property
    def delivery_distance(self) -> float:
        return self.delivery.distance

    @property
    def low_confidence(self) -> bool:
        return self.pickup.low_confidence or self.delivery.low_confidence


@dataclass
class SearchRequest:
    """
    Input to crawl.engine.search.

    `used_locations` is owned by the caller (e.g. shared across lanes in one
    session). The engine reads it and, when `record_usage` is set, appends
    the location keys of the pairs it returns.
    """
    origin: AnchorQuery
    destination: AnchorQuery
    equipment: str = ""
    target_pairs: int = 5
    radius_ceiling: float = 100.0
    used_locations: Set[str] = field(default_factory=set)
    record_usage: bool = True

    def validate(self) -> None:
        if self.target_pairs is None or self.target_pairs <= 0:
            raise InvalidRequest(f"target_pairs must be > 0, got {self.target_pairs!r}")
        if self.radius_ceiling is None or not self.radius_ceiling > 0:
            raise InvalidRequest(f"radius_ceiling must be > 0, got {self.radius_ceiling!r}")


@dataclass
class SearchDiagnostics:
    radius_used: float = 0.0
    pickup_radius: float = 0.0
    delivery_radius: float = 0.0
    pickup_markets: int = 0
    delivery_markets: int = 0
    # every radius queried per side, in order
    pickup_radii: List[float] = field(default_factory=list)
    delivery_radii: List[float] = field(default_factory=list)

    fallback_fired: bool = False
    fallback_stage: Optional[FallbackStage] = None
    stages: List[FallbackStage] = field(default_factory=list)

    relaxed: bool = False
    cancelled: bool = False
    catalog_failures: int = 0
    shortfall_reason: Optional[str] = None


@dataclass
class SearchResult:
    origin: SearchAnchor
    destination: SearchAnchor
    equipment: str
    pairs: List[PairCandidate]
    diagnostics: SearchDiagnostics

    @property
    def target_reached(self) -> bool:
        return self.diagnostics.shortfall_reason is None

    def location_keys(self) -> Set[str]:
        keys: Set[str] = set()
        for pair in self.pairs:
            keys.add(pair.pickup.key)
            keys.add(pair.delivery.key)
        return keys


@dataclass
class SearchContext:
    """
    Cancellation carried through one search. `deadline` is an absolute
    time.monotonic() value; `cancel_event` lets another thread stop the
    search early. Either way the engine returns what it has so far.
    """
    deadline: Optional[float] = None
    cancel_event: Optional[threading.Event] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> SearchContext:
        return cls(deadline=time.monotonic() + seconds)

    def expired(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline
