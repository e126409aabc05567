from dataclasses import replace

import pytest

from crawl.policy import SearchPolicy, default_policy, sparse_region_policy


def test_default_policy_values():
    policy = default_policy()
    assert policy.primary_radius == 75.0
    assert policy.radius_increment == 25.0
    assert policy.radius_ceiling == 100.0
    assert policy.target_pairs == 5
    assert policy.cross_side_unique is True


def test_sparse_region_policy_is_wider():
    sparse = sparse_region_policy()
    assert sparse.primary_radius > default_policy().primary_radius
    assert sparse.radius_ceiling > default_policy().radius_ceiling


@pytest.mark.parametrize("changes", [
    {"primary_radius": 0},
    {"radius_increment": -5},
    {"radius_ceiling": 50.0},
    {"target_pairs": 0},
    {"target_markets_per_side": 0},
    {"distance_bands": ()},
    {"distance_bands": ((0.5, 1.0), (0.25, 0.9))},
    {"near_duplicate_multiplier": 0.5},
    {"low_confidence_multiplier": 0.0},
    {"fill_sample_size": 0},
])
def test_validate_rejects_bad_settings(changes):
    with pytest.raises(ValueError):
        replace(SearchPolicy(), **changes).validate()


def test_max_radius_steps_bounds_the_loop():
    # 75 -> 100 in 25s: two queries, plus slack for a clamped final step
    assert default_policy().max_radius_steps() == 3
