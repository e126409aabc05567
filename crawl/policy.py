"""
Purpose: Central configuration for the crawl engine (single source of truth).
What it does:

Stores all tunable thresholds/caps:

PRIMARY_RADIUS = 75 miles

RADIUS_INCREMENT = 25 miles

RADIUS_CEILING = 100 miles

TARGET_PAIRS = 5

Distance-band multipliers, diversity/quality bonuses, fill sizes.

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class SearchPolicy:
    """
    Central configuration for candidate search, scoring and pairing.

    Notes:
    - all distances are miles
    - distance bands are fractions of the radius ceiling; each band maps to
      one multiplier, closest band first
    - a candidate closer than `near_duplicate_miles` is "too close" to the
      anchor and gets `near_duplicate_multiplier`, which must stay above the
      last (farthest) band multiplier
    """

    # --- Radius search ---
    primary_radius: float = 75.0
    radius_increment: float = 25.0
    radius_ceiling: float = 100.0

    # --- Targets ---
    target_pairs: int = 5
    # Unique markets wanted per side before radius search stops expanding.
    # None -> same as the request's target pair count.
    target_markets_per_side: int | None = None

    # --- Diversity rules ---
    # A market used on one side may not appear on the other side either.
    cross_side_unique: bool = True

    # --- Distance bands (fraction of ceiling, multiplier) ---
    distance_bands: Tuple[Tuple[float, float], ...] = field(
        default_factory=lambda: ((0.25, 1.0), (0.50, 0.9), (0.75, 0.75), (float("inf"), 0.6))
    )
    near_duplicate_miles: float = 5.0
    near_duplicate_multiplier: float = 0.8

    # --- Score components ---
    base_score: float = 100.0
    diversity_bonus: float = 10.0
    major_market_bonus: float = 10.0
    major_market_population: int = 100_000
    verified_bonus: float = 15.0
    verified_pair_bonus: float = 20.0
    low_confidence_multiplier: float = 0.5

    # --- Anchor resolution ---
    # Coordinates without a market take the market of the nearest catalog
    # city within this distance.
    anchor_snap_radius: float = 25.0

    # --- Random diversity fill ---
    fill_radius: float = 300.0
    fill_sample_size: int = 50

    def validate(self) -> None:
        """
        Basic sanity checks. Call once at startup if you want.
        """
        if self.primary_radius <= 0:
            raise ValueError("primary_radius must be > 0")

        if self.radius_increment <= 0:
            raise ValueError("radius_increment must be > 0")

        if self.radius_ceiling < self.primary_radius:
            raise ValueError("radius_ceiling must be >= primary_radius")

        if self.target_pairs <= 0:
            raise ValueError("target_pairs must be > 0")

        if self.target_markets_per_side is not None and self.target_markets_per_side <= 0:
            raise ValueError("target_markets_per_side must be > 0")

        if not self.distance_bands:
            raise ValueError("distance_bands must not be empty")

        limits = [limit for limit, _ in self.distance_bands]
        if limits != sorted(limits):
            raise ValueError("distance_bands must be ordered from closest to farthest")

        if self.near_duplicate_multiplier <= self.distance_bands[-1][1]:
            raise ValueError("near_duplicate_multiplier must exceed the farthest band multiplier")

        if not 0 < self.low_confidence_multiplier <= 1:
            raise ValueError("low_confidence_multiplier must be in (0, 1]")

        if self.fill_radius <= 0 or self.fill_sample_size <= 0:
            raise ValueError("fill_radius and fill_sample_size must be > 0")

    def max_radius_steps(self) -> int:
        """Upper bound on radius-search iterations from primary to ceiling."""
        span = self.radius_ceiling - self.primary_radius
        return int(span // self.radius_increment) + 2


def default_policy() -> SearchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = SearchPolicy()
    p.validate()
    return p


def sparse_region_policy() -> SearchPolicy:
    """
    Example: mountain west / plains lanes where markets are far apart.
    Starts wider and expands in bigger steps.
    """
    p = SearchPolicy(
        primary_radius=100.0,
        radius_increment=50.0,
        radius_ceiling=200.0,
        fill_radius=450.0,
    )
    p.validate()
    return p
