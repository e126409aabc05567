import pytest

from catalog.market_cache import MarketCache, MarketInfo
from catalog.memory import InMemoryCatalog
from catalog.session import CatalogSession
from crawl.fallback import FallbackHierarchy
from crawl.models import FallbackStage, RelaxationReason, SearchAnchor, Side
from crawl.policy import default_policy
from tests.conftest import ATLANTA, CHICAGO, make_location, offset_point, ring_of_markets


class StaleIndexCatalog(InMemoryCatalog):
    """Bounding-box queries miss some markets, as with a lagging spatial index."""

    def __init__(self, locations, hidden_markets):
        super().__init__(locations)
        self.hidden_markets = set(hidden_markets)

    def query_by_bounding_box(self, box):
        return [location for location in super().query_by_bounding_box(box) if location.market not in self.hidden_markets]


@pytest.fixture
def origin(chicago):
    return SearchAnchor.from_location(chicago)


@pytest.fixture
def destination(atlanta):
    return SearchAnchor.from_location(atlanta)


@pytest.fixture
def delivery_ring():
    return ring_of_markets(ATLANTA, "D", "GA", 8)


def run(catalog, origin, destination, adjacency=None, target=5, used=()):
    hierarchy = FallbackHierarchy(CatalogSession(catalog), default_policy(), adjacency=adjacency)
    return hierarchy.run(origin, destination, target=target, used_locations=used)


def test_primary_only_when_target_reached(dense_catalog, origin, destination):
    outcome = run(dense_catalog, origin, destination)

    assert outcome.stages == [FallbackStage.PRIMARY]
    assert outcome.fallback_stage is None
    assert len(outcome.pairs) == 5
    assert outcome.shortfall_reason is None
    assert outcome.pickup.radii == [75.0]


def test_radius_expansion_only_widens_short_side(chicago, atlanta, origin, destination, delivery_ring):
    far_markets = [
        make_location("Far North", "IL", offset_point(CHICAGO, 85, 10), "X0"),
        make_location("Far South", "IL", offset_point(CHICAGO, 92, 200), "X1"),
    ]
    catalog = InMemoryCatalog([chicago, atlanta] + ring_of_markets(CHICAGO, "P", "IL", 3) + far_markets + delivery_ring)

    outcome = run(catalog, origin, destination)

    assert outcome.stages == [FallbackStage.PRIMARY, FallbackStage.RADIUS_EXPANSION]
    assert outcome.pickup.radii == [75.0, 100.0]
    assert outcome.delivery.radii == [75.0]
    assert len(outcome.pairs) == 5
    assert {"X0", "X1"} <= {pair.pickup_market for pair in outcome.pairs}


def test_adjacent_markets_fill_gaps_left_by_radius_search(chicago, atlanta, origin, destination, delivery_ring):
    hidden = [
        make_location("Hidden Hub", "IN", offset_point(CHICAGO, 50, 100), "H0", verified=True, population=250_000),
        make_location("Hidden Town", "IN", offset_point(CHICAGO, 54, 100), "H0"),
    ]
    locations = [chicago, atlanta] + ring_of_markets(CHICAGO, "P", "IL", 3) + hidden + delivery_ring
    catalog = StaleIndexCatalog(locations, hidden_markets={"H0"})
    cache = MarketCache([MarketInfo("A", CHICAGO, 1)], adjacency_table={"A": ["H0", "B"]})

    outcome = run(catalog, origin, destination, adjacency=cache.adjacent_markets)

    assert FallbackStage.ADJACENT_MARKETS in outcome.stages
    adjacent_pairs = [pair for pair in outcome.pairs if pair.pickup_market == "H0"]
    assert len(adjacent_pairs) == 1
    assert adjacent_pairs[0].pickup.adjacent
    assert adjacent_pairs[0].relaxation is RelaxationReason.ADJACENT_MARKET
    # the other anchor's market is never pulled in
    assert "B" not in {pair.pickup_market for pair in outcome.pairs}


def test_adjacent_stage_skipped_without_provider(chicago, atlanta, origin, destination, delivery_ring):
    catalog = InMemoryCatalog([chicago, atlanta] + ring_of_markets(CHICAGO, "P", "IL", 3) + delivery_ring)

    outcome = run(catalog, origin, destination)

    assert FallbackStage.ADJACENT_MARKETS not in outcome.stages


def test_relaxed_uniqueness_reuses_the_thinner_side(chicago, atlanta, origin, destination, delivery_ring):
    catalog = InMemoryCatalog([chicago, atlanta] + ring_of_markets(CHICAGO, "P", "IL", 3, siblings=2) + delivery_ring)

    outcome = run(catalog, origin, destination)

    assert FallbackStage.RELAXED_UNIQUENESS in outcome.stages
    assert outcome.relax_side is Side.PICKUP
    assert outcome.relaxed
    assert len(outcome.pairs) == 5
    # delivery side stays strict
    assert len({pair.delivery_market for pair in outcome.pairs}) == 5
    for pair in outcome.pairs:
        if pair.relaxation is RelaxationReason.REUSED_PICKUP_MARKET:
            assert pair.pickup_market in {"P0", "P1", "P2"}


def test_random_fill_samples_out_of_region_and_is_deterministic(chicago, atlanta, origin, destination, delivery_ring):
    fill = [
        make_location(f"Indiana Town {i}", "IN", offset_point(CHICAGO, 150 + 20 * i, 120 + 5 * i), f"F{i}")
        for i in range(6)
    ]
    same_region = make_location("Downstate", "IL", offset_point(CHICAGO, 160, 200), "F_IL")
    locations = [chicago, atlanta] + ring_of_markets(CHICAGO, "P", "IL", 1) + fill + [same_region] + delivery_ring
    catalog = InMemoryCatalog(locations)

    first = run(catalog, origin, destination)
    second = run(catalog, origin, destination)

    assert first.stages[-1] is FallbackStage.RANDOM_FILL
    assert len(first.pairs) == 5
    filled = [pair for pair in first.pairs if pair.relaxation is RelaxationReason.RANDOM_FILL]
    assert filled
    for pair in filled:
        assert pair.pickup.low_confidence
        assert pair.pickup.location.region != "IL"
    assert "F_IL" not in {pair.pickup_market for pair in first.pairs}

    assert [(p.pickup.key, p.delivery.key, p.score) for p in first.pairs] == \
           [(p.pickup.key, p.delivery.key, p.score) for p in second.pairs]


def test_shortfall_reason_reports_counts(chicago, atlanta, origin, destination):
    catalog = InMemoryCatalog([chicago, atlanta] + ring_of_markets(CHICAGO, "P", "IL", 2, siblings=0)
                              + ring_of_markets(ATLANTA, "D", "GA", 2, siblings=0))

    outcome = run(catalog, origin, destination)

    assert len(outcome.pairs) == 2
    assert "2 of 5" in outcome.shortfall_reason
    assert "pickup markets=2" in outcome.shortfall_reason
