"""
Scoring functions for crawl candidates and pairs.

This module implements the ranking layer (the "who is best" step) that runs
after market grouping:

- distance bands: closer bands score higher, but a near-duplicate of the
  anchor is penalized less than a candidate at the edge of the radius
- market diversity: every grouped candidate is in a market other than the
  anchor's, so every candidate gets the diversity bonus; large markets get
  an extra bonus
- catalog quality: verified rows score higher, and a pair whose two ends
  are both verified gets a combined bonus

Key Design Principles:
1. Higher score = better candidate
2. Pure functions of (candidate, policy): identical inputs, identical scores
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List

from .models import Candidate
from .policy import SearchPolicy


def distance_multiplier(miles: float, policy: SearchPolicy) -> float:
    """
    Band multiplier for a candidate `miles` away from its anchor.

    Bands are fractions of the policy's radius ceiling. A candidate closer
    than `near_duplicate_miles` is treated as a near-duplicate of the anchor
    and gets `near_duplicate_multiplier` instead of the top band.
    """
    if miles < policy.near_duplicate_miles:
        return policy.near_duplicate_multiplier

    fraction = miles / policy.radius_ceiling
    for limit, multiplier in policy.distance_bands:
        if fraction <= limit:
            return multiplier
    return policy.distance_bands[-1][1]


def is_major_market(candidate: Candidate, policy: SearchPolicy) -> bool:
    return (candidate.location.population or 0) >= policy.major_market_population


def score_candidate(candidate: Candidate, policy: SearchPolicy) -> float:
    """
    Score a single candidate.

    score = base * band multiplier
          + diversity bonus (+ major market bonus)
          + verified bonus
    then scaled down for low-confidence (random fill) candidates.
    """
    score = policy.base_score * distance_multiplier(candidate.distance, policy)

    score += policy.diversity_bonus
    if is_major_market(candidate, policy):
        score += policy.major_market_bonus

    if candidate.verified:
        score += policy.verified_bonus

    if candidate.low_confidence:
        score *= policy.low_confidence_multiplier

    return round(score, 6)


def score_candidates(candidates: Iterable[Candidate], policy: SearchPolicy) -> List[Candidate]:
    """
    Return scored copies, best first. Ties fall back to distance and key so
    the order is fully deterministic.
    """
    scored = [replace(candidate, score=score_candidate(candidate, policy)) for candidate in candidates]
    scored.sort(key=lambda candidate: (-candidate.score, candidate.distance, candidate.key))
    return scored


def pair_score(pickup: Candidate, delivery: Candidate, policy: SearchPolicy) -> float:
    """
    Combined score of a pickup/delivery pairing: sum of both candidate
    scores, plus a bonus when both ends are verified catalog entries.
    """
    score = pickup.score + delivery.score
    if pickup.verified and delivery.verified:
        score += policy.verified_pair_bonus
    return round(score, 6)
