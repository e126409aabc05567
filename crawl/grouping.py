"""
Purpose: Decide which candidates represent each market.
What it does:

Groups distance-annotated candidates by market-area code and keeps one
representative per market:

closest first

ties: verified before unverified, then larger population, then name

Outputs one Candidate per distinct market, sorted by distance.

Rule: Grouping does not score; it only forms the market-diverse shortlist.
"""

from __future__ import annotations

from typing import Collection, Dict, Iterable, List

from .models import Candidate


def representative_order(candidate: Candidate):
    """Sort key: best representative of a market sorts first."""
    return (
        candidate.distance,
        0 if candidate.verified else 1,
        -(candidate.location.population or 0),
        candidate.location.name.lower(),
        candidate.key,
    )


def group_by_market(
    candidates: Iterable[Candidate],
    *,
    excluded_markets: Collection[str] = (),
) -> Dict[str, List[Candidate]]:
    """
    Bucket candidates by market code, each bucket ordered best-first.
    """
    groups: Dict[str, List[Candidate]] = {}
    for candidate in candidates:
        if not candidate.market or candidate.market in excluded_markets:
            continue
        groups.setdefault(candidate.market, []).append(candidate)

    for members in groups.values():
        members.sort(key=representative_order)
    return groups


def select_market_representatives(
    candidates: Iterable[Candidate],
    *,
    excluded_markets: Collection[str] = (),
) -> List[Candidate]:
    """
    One Candidate per distinct market code, sorted ascending by distance.

    Without this, a single dense suburb cluster could fill every slot with
    cities from the same market.
    """
    groups = group_by_market(candidates, excluded_markets=excluded_markets)
    representatives = [members[0] for members in groups.values()]
    representatives.sort(key=representative_order)
    return representatives
