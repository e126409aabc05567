import random

import pytest

from catalog.models import Location
from crawl.grouping import group_by_market, select_market_representatives
from crawl.models import Candidate
from crawl.policy import SearchPolicy, default_policy
from crawl.scoring import distance_multiplier, pair_score, score_candidate, score_candidates


def candidate(name, market, miles, verified=False, population=None, **flags):
    location = Location(name, "IL", 41.0, -87.0, market, verified=verified, population=population)
    return Candidate(location=location, distance=miles, **flags)


# ---- grouping ----

def test_one_representative_per_market_closest_first():
    candidates = [
        candidate("Far M1", "M1", 40.0),
        candidate("Near M1", "M1", 12.0),
        candidate("Only M2", "M2", 20.0),
        candidate("Anchor Market", "A", 3.0),
    ]
    reps = select_market_representatives(candidates, excluded_markets={"A"})

    assert [rep.location.name for rep in reps] == ["Near M1", "Only M2"]
    assert len({rep.market for rep in reps}) == len(reps)


def test_representative_ties_prefer_verified_then_population_then_name():
    tied = [
        candidate("Zeta", "M1", 10.0),
        candidate("Alpha", "M1", 10.0),
        candidate("Big", "M1", 10.0, population=50_000),
        candidate("Checked", "M1", 10.0, verified=True),
    ]
    groups = group_by_market(tied)
    assert [member.location.name for member in groups["M1"]] == ["Checked", "Big", "Alpha", "Zeta"]


def test_grouping_is_independent_of_input_order():
    random.seed(5)
    base = [candidate(f"City {i}", f"M{i % 4}", float(10 + (i * 7) % 30)) for i in range(20)]
    expected = [rep.key for rep in select_market_representatives(base)]
    for _ in range(20):
        shuffled = base[:]
        random.shuffle(shuffled)
        assert [rep.key for rep in select_market_representatives(shuffled)] == expected


# ---- scoring ----

def test_distance_bands():
    policy = default_policy()
    assert distance_multiplier(10.0, policy) == 1.0
    assert distance_multiplier(40.0, policy) == 0.9
    assert distance_multiplier(70.0, policy) == 0.75
    assert distance_multiplier(95.0, policy) == 0.6
    assert distance_multiplier(250.0, policy) == 0.6


def test_near_duplicate_scores_below_top_band_but_above_edge():
    policy = default_policy()
    near_duplicate = score_candidate(candidate("Next Door", "M1", 2.0), policy)
    mid = score_candidate(candidate("Mid", "M2", 20.0), policy)
    edge = score_candidate(candidate("Edge", "M3", 98.0), policy)

    assert mid > near_duplicate > edge


def test_bonuses_and_low_confidence():
    policy = default_policy()
    plain = score_candidate(candidate("Plain", "M1", 20.0), policy)
    verified = score_candidate(candidate("Verified", "M1", 20.0, verified=True), policy)
    major = score_candidate(candidate("Major", "M1", 20.0, population=500_000), policy)
    filler = score_candidate(candidate("Filler", "M1", 20.0, low_confidence=True), policy)

    assert plain == pytest.approx(policy.base_score + policy.diversity_bonus)
    assert verified - plain == pytest.approx(policy.verified_bonus)
    assert major - plain == pytest.approx(policy.major_market_bonus)
    assert filler == pytest.approx(plain * policy.low_confidence_multiplier)


def test_scoring_is_deterministic_and_sorted():
    policy = SearchPolicy()
    pool = [candidate(f"City {i}", f"M{i}", float(5 + i * 9)) for i in range(10)]
    first = score_candidates(pool, policy)
    second = score_candidates(list(reversed(pool)), policy)

    assert [(c.key, c.score) for c in first] == [(c.key, c.score) for c in second]
    assert [c.score for c in first] == sorted((c.score for c in first), reverse=True)


def test_pair_score_adds_verified_pair_bonus():
    policy = default_policy()
    a = score_candidates([candidate("A", "M1", 20.0, verified=True)], policy)[0]
    b = score_candidates([candidate("B", "M2", 20.0, verified=True)], policy)[0]
    c = score_candidates([candidate("C", "M3", 20.0)], policy)[0]

    assert pair_score(a, b, policy) == pytest.approx(a.score + b.score + policy.verified_pair_bonus)
    assert pair_score(a, c, policy) == pytest.approx(a.score + c.score)
