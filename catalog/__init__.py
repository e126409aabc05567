"""
Catalog domain package.

Public API:
- Domain model: Location, location_key
- Eligibility: is_eligible, filter_eligible_locations
- Adapters: CatalogClient (HTTP), InMemoryCatalog (snapshot), CatalogSession
- Market metadata: MarketCache, MarketInfo
"""
from .models import Location, location_key
from .validator import is_eligible, filter_eligible_locations
from .client import CatalogClient, CatalogQueryError
from .memory import InMemoryCatalog
from .session import CatalogSession
from .market_cache import MarketCache, MarketInfo, NORTH_AMERICA_BOUNDS

__all__ = ["Location",
           "location_key",
           "is_eligible",
           "filter_eligible_locations",
           "CatalogClient",
           "CatalogQueryError",
           "InMemoryCatalog",
           "CatalogSession",
           "MarketCache",
           "MarketInfo",
           "NORTH_AMERICA_BOUNDS",
           ]
