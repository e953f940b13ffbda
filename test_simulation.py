"""
TEST: Simulated elevational distributions and range shifts
===========================================================

Run with:  pytest test_simulation.py
"""

import numpy as np
import pandas as pd
import pytest

from elevational_range.simulation import (
    METRICS,
    get_distribution,
    simulate_elevations,
    skewnorm_loc_for_mean,
    theoretical_range_metrics,
    range_metrics,
    simulate_range_shift,
    true_shifts,
    sample_size_extent,
    summarize_shifts,
    run_scenarios,
)

BEFORE = {'loc': 2500, 'scale': 300, 'skew': 0}
UPSLOPE = {'loc': 2650, 'scale': 300, 'skew': 0}


# ============================================================================
# DISTRIBUTIONS
# ============================================================================

def test_normal_and_skew_normal_are_selected_by_skew():
    assert get_distribution(0, 1).dist.name == 'norm'
    assert get_distribution(0, 1, skew=3).dist.name == 'skewnorm'


def test_scale_must_be_positive():
    with pytest.raises(ValueError):
        get_distribution(2500, 0)


def test_simulate_elevations_matches_parameters():
    draws = simulate_elevations(20000, 2500, 300, rng=0)
    assert len(draws) == 20000
    assert draws.mean() == pytest.approx(2500, abs=10)
    assert draws.std() == pytest.approx(300, rel=0.03)


def test_simulate_elevations_is_reproducible():
    a = simulate_elevations(50, 2500, 300, skew=4, rng=np.random.default_rng(5))
    b = simulate_elevations(50, 2500, 300, skew=4, rng=np.random.default_rng(5))
    np.testing.assert_array_equal(a, b)


def test_skewnorm_loc_for_mean():
    loc = skewnorm_loc_for_mean(2500, 400, 5)
    assert get_distribution(loc, 400, 5).mean() == pytest.approx(2500)


def test_theoretical_metrics_of_a_normal():
    m = theoretical_range_metrics(2500, 300)
    assert m['mean'] == pytest.approx(2500)
    assert m['median'] == pytest.approx(2500)
    assert m['mode'] == pytest.approx(2500, abs=2)
    assert m['p5'] == pytest.approx(2500 - 1.6449 * 300, abs=0.1)
    assert m['p95'] == pytest.approx(2500 + 1.6449 * 300, abs=0.1)


def test_right_skew_orders_mode_median_mean():
    m = theoretical_range_metrics(2300, 420, skew=4)
    assert m['mode'] < m['median'] < m['mean']


# ============================================================================
# SAMPLE METRICS
# ============================================================================

def test_range_metrics_ordering():
    rng = np.random.default_rng(2)
    m = range_metrics(rng.normal(2500, 300, 37))
    assert m['min'] <= m['p5'] <= m['median'] <= m['p95'] <= m['max']
    assert set(m) == set(METRICS)


def test_range_metrics_of_an_empty_sample():
    m = range_metrics([])
    assert all(np.isnan(v) for v in m.values())


# ============================================================================
# RANGE SHIFTS
# ============================================================================

def test_simulate_range_shift_layout():
    shifts = simulate_range_shift(BEFORE, UPSLOPE, sample_sizes=[10, 100],
                                  n_replicates=5, rng=0)

    assert list(shifts.columns) == ['sample_size', 'replicate', 'metric',
                                    'before', 'after', 'shift']
    assert len(shifts) == 2 * 5 * len(METRICS)
    np.testing.assert_allclose(shifts['shift'], shifts['after'] - shifts['before'])


def test_upslope_shift_is_recovered_with_large_samples():
    shifts = simulate_range_shift(BEFORE, UPSLOPE, sample_sizes=[1000],
                                  n_replicates=50, rng=1)
    central = shifts[shifts['metric'].isin(['mean', 'median'])]
    assert central.groupby('metric')['shift'].mean().to_numpy() == pytest.approx(
        [150, 150], abs=15
    )


def test_simulate_range_shift_is_reproducible():
    a = simulate_range_shift(BEFORE, UPSLOPE, [25], 10, rng=np.random.default_rng(9))
    b = simulate_range_shift(BEFORE, UPSLOPE, [25], 10, rng=np.random.default_rng(9))
    pd.testing.assert_frame_equal(a, b)


def test_true_shifts_of_a_pure_translation():
    truth = true_shifts(BEFORE, UPSLOPE)
    for metric in ('p5', 'median', 'mean', 'p95'):
        assert truth[metric] == pytest.approx(150)
    assert truth['mode'] == pytest.approx(150, abs=2)


def test_edge_contraction_moves_percentile_limits_differently():
    truth = true_shifts(BEFORE, {'loc': 2300, 'scale': 420, 'skew': 4})
    assert truth['p5'] > 0
    assert truth['p5'] > truth['p95']


def test_absolute_extent_grows_with_sample_size():
    extent = sample_size_extent(BEFORE, sample_sizes=[10, 1000], n_replicates=30, rng=4)
    means = extent.groupby('sample_size').mean()

    assert means.loc[1000, 'absolute_extent'] > means.loc[10, 'absolute_extent']
    assert means.loc[1000, 'percentile_extent'] == pytest.approx(2 * 1.6449 * 300, rel=0.05)
    assert (extent['percentile_extent'] <= extent['absolute_extent']).all()


def test_summarize_shifts():
    shifts = simulate_range_shift(BEFORE, UPSLOPE, [10, 50], 20, rng=0)
    summary = summarize_shifts(shifts)

    assert len(summary) == 2 * len(METRICS)
    assert {'mean', 'std', 'q025', 'q975'}.issubset(summary.columns)
    assert (summary['q025'] <= summary['q975']).all()


def test_run_scenarios_covers_each_scenario():
    scenarios = {
        'up': {'before': BEFORE, 'after': UPSLOPE},
        'wider': {'before': BEFORE, 'after': {'loc': 2500, 'scale': 400}},
    }
    results = run_scenarios(scenarios, sample_sizes=[20], n_replicates=4,
                            rng=0, verbose=False)

    assert set(results) == {'up', 'wider'}
    assert results['wider']['true_shifts']['median'] == pytest.approx(0, abs=1e-9)
    assert len(results['up']['shifts']) == 4 * len(METRICS)
