"""
Purpose: Combine scored pickup and delivery candidates into postings.
What it does:

Builds every pickup x delivery combination and computes:

combined score = pickup score + delivery score (+ verified-pair bonus)

Applies the exclusion rules:

skip locations in the caller's used-location set

skip combinations whose two ends share a market

collapse combinations sharing a (pickup market, delivery market) pairing
to the best one

Selects pairs greedily, best score first, under the uniqueness invariant:

each market at most once on the pickup side and at most once on the
delivery side (and, by default, never on both sides)

In relaxed mode exactly one side may reuse markets; the pairs that do are
tagged with the reason.

Rule: Pairing chooses what to post; it does not query or expand radii.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Collection, Iterable, List, Optional, Sequence, Set, Tuple

from .models import Candidate, PairCandidate, RelaxationReason, Side
from .policy import SearchPolicy
from .scoring import pair_score


@dataclass(frozen=True)
class PairingResult:
    """
    Output of pair generation: selected pairs, best first.
    """
    pairs: List[PairCandidate]
    target_reached: bool


def pair_order(pair: PairCandidate):
    """Sort key: best pair first, fully deterministic."""
    return (
        -pair.score,
        pair.pickup.distance + pair.delivery.distance,
        pair.pickup.key,
        pair.delivery.key,
    )


def build_pair_candidates(
    pickups: Sequence[Candidate],
    deliveries: Sequence[Candidate],
    policy: SearchPolicy,
    *,
    used_locations: Collection[str] = (),
    relax_side: Optional[Side] = None,
) -> List[PairCandidate]:
    """
    Steps 1-4 of pairing: cross product, exclusions, per-market-pairing
    dedup, sort.

    In relaxed mode the relaxed side is deduplicated by location instead of
    market, so several cities of one market can each form a pair.
    """
    combinations: List[PairCandidate] = []
    for pickup in pickups:
        if pickup.key in used_locations:
            continue
        for delivery in deliveries:
            if delivery.key in used_locations:
                continue
            if pickup.market == delivery.market or pickup.key == delivery.key:
                continue
            combinations.append(
                PairCandidate(pickup=pickup, delivery=delivery, score=pair_score(pickup, delivery, policy))
            )

    combinations.sort(key=pair_order)

    best_per_group: List[PairCandidate] = []
    seen_groups: Set[Tuple[str, str]] = set()
    for pair in combinations:
        group = _group_key(pair, relax_side)
        if group in seen_groups:
            continue
        seen_groups.add(group)
        best_per_group.append(pair)

    return best_per_group


def generate_pairs(
    pickups: Sequence[Candidate],
    deliveries: Sequence[Candidate],
    policy: SearchPolicy,
    *,
    target: int,
    used_locations: Collection[str] = (),
    seed_pairs: Iterable[PairCandidate] = (),
    relax_side: Optional[Side] = None,
) -> PairingResult:
    """
    Select up to `target` pairs in total (seed pairs included).

    Parameters
    ----------
    pickups, deliveries:
        Scored candidates for each side (usually one per market; in relaxed
        mode the relaxed side may hold several per market).
    target:
        Stop once this many pairs are selected.
    used_locations:
        Caller-owned location keys that must never appear in a pair.
    seed_pairs:
        Pairs already selected by an earlier fallback stage. They are kept
        as-is and their markets/locations count as used.
    relax_side:
        None for strict uniqueness; otherwise the one side allowed to reuse
        markets.

    Returns
    -------
    PairingResult with seed + new pairs sorted best first.
    """
    selected: List[PairCandidate] = list(seed_pairs)

    used_pickup_markets: Set[str] = {pair.pickup_market for pair in selected}
    used_delivery_markets: Set[str] = {pair.delivery_market for pair in selected}
    used_keys: Set[str] = set()
    for pair in selected:
        used_keys.add(pair.pickup.key)
        used_keys.add(pair.delivery.key)

    for pair in build_pair_candidates(
        pickups, deliveries, policy, used_locations=used_locations, relax_side=relax_side
    ):
        if len(selected) >= target:
            break

        if pair.pickup.key in used_keys or pair.delivery.key in used_keys:
            continue

        pickup_reused = pair.pickup_market in used_pickup_markets
        delivery_reused = pair.delivery_market in used_delivery_markets

        if pickup_reused and relax_side is not Side.PICKUP:
            continue
        if delivery_reused and relax_side is not Side.DELIVERY:
            continue

        if policy.cross_side_unique:
            if pair.pickup_market in used_delivery_markets or pair.delivery_market in used_pickup_markets:
                continue

        reason = _relaxation_reason(pair, pickup_reused, delivery_reused)
        if reason is not None:
            pair = replace(pair, relaxation=reason)

        selected.append(pair)
        used_pickup_markets.add(pair.pickup_market)
        used_delivery_markets.add(pair.delivery_market)
        used_keys.add(pair.pickup.key)
        used_keys.add(pair.delivery.key)

    selected.sort(key=pair_order)
    return PairingResult(pairs=selected, target_reached=len(selected) >= target)


# -------------------------
# Internal helpers
# -------------------------

def _group_key(pair: PairCandidate, relax_side: Optional[Side]) -> Tuple[str, str]:
    pickup_part = pair.pickup.key if relax_side is Side.PICKUP else pair.pickup_market
    delivery_part = pair.delivery.key if relax_side is Side.DELIVERY else pair.delivery_market
    return (pickup_part, delivery_part)


def _relaxation_reason(pair: PairCandidate, pickup_reused: bool, delivery_reused: bool) -> Optional[RelaxationReason]:
    if pickup_reused:
        return RelaxationReason.REUSED_PICKUP_MARKET
    if delivery_reused:
        return RelaxationReason.REUSED_DELIVERY_MARKET
    if pair.low_confidence:
        return RelaxationReason.RANDOM_FILL
    if pair.pickup.adjacent or pair.delivery.adjacent:
        return RelaxationReason.ADJACENT_MARKET
    return None
