#Expose the high-level crawl pieces:
#Request / result models and the two fatal errors
#Policy (all tunables)
#Engine (the "one call" entry point)

from .models import (
    AnchorNotFound,
    AnchorQuery,
    Candidate,
    FallbackStage,
    InvalidRequest,
    PairCandidate,
    RelaxationReason,
    SearchAnchor,
    SearchContext,
    SearchDiagnostics,
    SearchError,
    SearchRequest,
    SearchResult,
    Side,
)
from .policy import SearchPolicy, default_policy, sparse_region_policy
from .engine import search, search_many #the main function to call for a lane

__all__ = [
    "AnchorNotFound",
    "AnchorQuery",
    "Candidate",
    "FallbackStage",
    "InvalidRequest",
    "PairCandidate",
    "RelaxationReason",
    "SearchAnchor",
    "SearchContext",
    "SearchDiagnostics",
    "SearchError",
    "SearchRequest",
    "SearchResult",
    "Side",
    "SearchPolicy",
    "default_policy",
    "sparse_region_policy",
    "search",
    "search_many",
]
