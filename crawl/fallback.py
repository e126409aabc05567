"""
Purpose: The fallback hierarchy (the escalation state machine).
What it does:
Drives radius search -> validation -> market grouping -> scoring -> pairing
for both sides of a lane, and escalates through progressively relaxed
stages until the target pair count is reached:

1. PRIMARY             radius search at the primary radius
2. RADIUS_EXPANSION    widen the short side(s) toward the ceiling
3. ADJACENT_MARKETS    pull in cities from markets adjacent to seen ones
4. RELAXED_UNIQUENESS  let ONE side reuse markets (tagged)
5. RANDOM_FILL         sample out-of-region cities (tagged low confidence)

Candidate pools accumulate across stages; a stage only adds to them and
never re-queries what an earlier stage already fetched. The hierarchy never
raises for data problems; it returns whatever it found plus a shortfall
reason.
"""

from __future__ import annotations

import logging
import random
import zlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Collection, Dict, FrozenSet, List, Optional, Sequence

from catalog.session import CatalogSession
from catalog.validator import is_eligible
from geo.distance import bounding_box

from .grouping import select_market_representatives
from .models import (
    Candidate,
    FallbackStage,
    PairCandidate,
    RelaxationReason,
    SearchAnchor,
    SearchContext,
    Side,
)
from .pairing import generate_pairs
from .policy import SearchPolicy
from .radius import annotate_candidates, radius_search
from .scoring import score_candidates

logger = logging.getLogger(__name__)

# ---- Optional collaborator ----
# Returns the market codes adjacent to a market code (e.g. MarketCache.adjacent_markets).
AdjacencyProvider = Callable[[str], List[str]]

_REUSE_REASONS = (RelaxationReason.REUSED_PICKUP_MARKET, RelaxationReason.REUSED_DELIVERY_MARKET)


@dataclass
class SideState:
    """
    Accumulated search state for one side (pickup or delivery) of a lane.
    """
    side: Side
    anchor: SearchAnchor
    excluded_markets: FrozenSet[str]
    radius: float = 0.0
    radii: List[float] = field(default_factory=list)
    pool: Dict[str, Candidate] = field(default_factory=dict)
    queried_markets: set = field(default_factory=set)

    def add(self, candidates: Sequence[Candidate]) -> int:
        """Add candidates not already pooled; returns how many were new."""
        added = 0
        for candidate in candidates:
            if candidate.key not in self.pool:
                self.pool[candidate.key] = candidate
                added += 1
        return added

    def candidates(self, used: Collection[str] = ()) -> List[Candidate]:
        pooled = [candidate for candidate in self.pool.values() if candidate.key not in used]
        return sorted(pooled, key=lambda candidate: (candidate.distance, candidate.key))

    def markets(self) -> set:
        return {candidate.market for candidate in self.pool.values()}

    def unique_markets(self) -> int:
        return len(self.markets())

    def representatives(self, policy: SearchPolicy, used: Collection[str] = ()) -> List[Candidate]:
        # used locations drop out before grouping so the next city of a market can stand in
        grouped = select_market_representatives(self.candidates(used), excluded_markets=self.excluded_markets)
        return score_candidates(grouped, policy)

    def scored_pool(self, policy: SearchPolicy, used: Collection[str] = ()) -> List[Candidate]:
        return score_candidates(self.candidates(used), policy)


@dataclass
class FallbackOutcome:
    pairs: List[PairCandidate]
    pickup: SideState
    delivery: SideState
    stages: List[FallbackStage]
    relax_side: Optional[Side] = None
    cancelled: bool = False
    shortfall_reason: Optional[str] = None

    @property
    def fallback_stage(self) -> Optional[FallbackStage]:
        escalations = [stage for stage in self.stages if stage is not FallbackStage.PRIMARY]
        return escalations[-1] if escalations else None

    @property
    def relaxed(self) -> bool:
        return any(pair.relaxation in _REUSE_REASONS for pair in self.pairs)


class FallbackHierarchy:
    """
    One instance per request. Holds the per-request catalog session, the
    policy and the optional adjacency collaborator; `run` drives the stages.
    """
    def __init__(
        self,
        session: CatalogSession,
        policy: SearchPolicy,
        *,
        adjacency: Optional[AdjacencyProvider] = None,
        context: Optional[SearchContext] = None,
    ):
        self.session = session
        self.policy = policy
        self.adjacency = adjacency
        self.context = context

    def run(
        self,
        origin: SearchAnchor,
        destination: SearchAnchor,
        *,
        target: int,
        used_locations: Collection[str] = (),
    ) -> FallbackOutcome:
        excluded = frozenset({origin.market, destination.market})
        pickup = SideState(side=Side.PICKUP, anchor=origin, excluded_markets=excluded)
        delivery = SideState(side=Side.DELIVERY, anchor=destination, excluded_markets=excluded)
        used = frozenset(used_locations)

        outcome = FallbackOutcome(pairs=[], pickup=pickup, delivery=delivery, stages=[])
        target_markets = self.policy.target_markets_per_side or target

        stages = [
            (FallbackStage.PRIMARY, lambda: self._primary(pickup, delivery, target_markets)),
            (FallbackStage.RADIUS_EXPANSION, lambda: self._expand_radius(pickup, delivery, target_markets)),
            (FallbackStage.ADJACENT_MARKETS, lambda: self._include_adjacent(pickup, delivery, target_markets)),
            (FallbackStage.RELAXED_UNIQUENESS, lambda: self._relax(outcome)),
            (FallbackStage.RANDOM_FILL, lambda: self._random_fill(outcome, target, used)),
        ]

        for stage, action in stages:
            if len(outcome.pairs) >= target:
                break
            if self._expired():
                outcome.cancelled = True
                break

            if not action():
                logger.debug("Stage %s had nothing to do", stage.value)
                continue

            outcome.stages.append(stage)
            if stage in (FallbackStage.RELAXED_UNIQUENESS, FallbackStage.RANDOM_FILL):
                outcome.pairs = self._pair(outcome, target, used, seed=outcome.pairs)
            else:
                outcome.pairs = self._pair(outcome, target, used)

            logger.info(
                "Stage %s: %d/%d pairs (pickup markets=%d, delivery markets=%d)",
                stage.value, len(outcome.pairs), target, pickup.unique_markets(), delivery.unique_markets(),
            )

        if len(outcome.pairs) < target:
            outcome.shortfall_reason = self._shortfall(outcome, target)
        return outcome

    # -------------------------
    # Stages
    # -------------------------

    def _primary(self, pickup: SideState, delivery: SideState, target_markets: int) -> bool:
        radius = min(self.policy.primary_radius, self.policy.radius_ceiling)
        self._search_sides([pickup, delivery], start=lambda state: radius, ceiling=lambda state: radius, target_markets=target_markets)
        return True

    def _expand_radius(self, pickup: SideState, delivery: SideState, target_markets: int) -> bool:
        ceiling = self.policy.radius_ceiling
        open_sides = [state for state in (pickup, delivery) if state.radius < ceiling]
        sides = [state for state in open_sides if state.unique_markets() < target_markets]
        if not sides:
            return False

        self._search_sides(
            sides,
            start=lambda state: min(state.radius + self.policy.radius_increment, ceiling),
            ceiling=lambda state: ceiling,
            target_markets=target_markets,
        )
        return True

    def _include_adjacent(self, pickup: SideState, delivery: SideState, target_markets: int) -> bool:
        if self.adjacency is None:
            return False

        sides = [state for state in (pickup, delivery) if state.unique_markets() < target_markets]
        added = 0
        for state in sides:
            added += self._add_adjacent_markets(state)
        return added > 0

    def _relax(self, outcome: FallbackOutcome) -> bool:
        pickup_markets = outcome.pickup.unique_markets()
        delivery_markets = outcome.delivery.unique_markets()
        if pickup_markets == 0 or delivery_markets == 0:
            # nothing to pair against on one side; reuse cannot help
            return False

        outcome.relax_side = Side.PICKUP if pickup_markets <= delivery_markets else Side.DELIVERY
        return True

    def _random_fill(self, outcome: FallbackOutcome, target: int, used: FrozenSet[str]) -> bool:
        rng = random.Random(_request_seed(outcome.pickup.anchor, outcome.delivery.anchor, target))
        added = 0
        for state in (outcome.pickup, outcome.delivery):
            added += self._add_fill_candidates(state, rng, used)
        return added > 0

    # -------------------------
    # Internal helpers
    # -------------------------

    def _search_sides(self, sides: List[SideState], *, start, ceiling, target_markets: int) -> None:
        """
        Run the radius search for each side. Two sides run in parallel; the
        caller (pairing) waits for both.
        """
        def search(state: SideState):
            return radius_search(
                state.anchor,
                self.session.query_by_bounding_box,
                start_radius=start(state),
                increment=self.policy.radius_increment,
                ceiling=ceiling(state),
                target_markets=target_markets,
                excluded_markets=state.excluded_markets,
                context=self.context,
            )

        if len(sides) == 1:
            results = [search(sides[0])]
        else:
            with ThreadPoolExecutor(max_workers=len(sides)) as pool:
                results = list(pool.map(search, sides))

        for state, result in zip(sides, results):
            state.radius = max(state.radius, result.radius)
            state.radii.extend(result.radii)
            state.add(result.candidates)

    def _add_adjacent_markets(self, state: SideState) -> int:
        ceiling = self.policy.radius_ceiling
        seen = sorted(state.markets() | {state.anchor.market})
        added = 0

        for market in seen:
            for neighbor in self.adjacency(market) or []:
                if neighbor in state.excluded_markets or neighbor in state.queried_markets:
                    continue
                if neighbor in state.markets():
                    continue
                state.queried_markets.add(neighbor)

                rows = self.session.query_by_market(neighbor)
                found = annotate_candidates(state.anchor, rows, radius=ceiling, excluded_markets=state.excluded_markets)
                added += state.add([replace(candidate, adjacent=True) for candidate in found])

        if added:
            logger.debug("Adjacent markets added %d %s candidates", added, state.side.value)
        return added

    def _add_fill_candidates(self, state: SideState, rng: random.Random, used: FrozenSet[str]) -> int:
        fill_radius = self.policy.fill_radius
        rows = self.session.query_by_bounding_box(bounding_box(state.anchor.point, fill_radius))

        region = state.anchor.region.upper()
        eligible = [
            row for row in rows
            if is_eligible(row) and row.region.upper() != region and row.key not in state.pool and row.key not in used
        ]
        pool = annotate_candidates(state.anchor, eligible, radius=fill_radius, excluded_markets=state.excluded_markets)
        if not pool:
            return 0

        sample = rng.sample(pool, min(self.policy.fill_sample_size, len(pool)))
        return state.add([replace(candidate, low_confidence=True) for candidate in sample])

    def _pair(
        self,
        outcome: FallbackOutcome,
        target: int,
        used: FrozenSet[str],
        seed: Sequence[PairCandidate] = (),
    ) -> List[PairCandidate]:
        relax_side = outcome.relax_side
        pickups = outcome.pickup.scored_pool(self.policy, used) if relax_side is Side.PICKUP else outcome.pickup.representatives(self.policy, used)
        deliveries = outcome.delivery.scored_pool(self.policy, used) if relax_side is Side.DELIVERY else outcome.delivery.representatives(self.policy, used)

        result = generate_pairs(
            pickups,
            deliveries,
            self.policy,
            target=target,
            used_locations=used,
            seed_pairs=seed,
            relax_side=relax_side,
        )
        return result.pairs

    def _expired(self) -> bool:
        return self.context is not None and self.context.expired()

    def _shortfall(self, outcome: FallbackOutcome, target: int) -> str:
        found = len(outcome.pairs)
        if outcome.cancelled:
            return f"cancelled before reaching target: found {found} of {target} pairs"
        return (
            f"insufficient market diversity: found {found} of {target} pairs "
            f"(pickup markets={outcome.pickup.unique_markets()}, "
            f"delivery markets={outcome.delivery.unique_markets()})"
        )


def _request_seed(origin: SearchAnchor, destination: SearchAnchor, target: int) -> int:
    """Stable across processes (unlike hash()), so fills are reproducible."""
    text = f"{origin.name}|{origin.region}|{origin.market}|{destination.name}|{destination.region}|{destination.market}|{target}"
    return zlib.crc32(text.encode("utf-8"))
