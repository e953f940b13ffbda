"""
TEST: Elevational summary statistics and binned encounter rates
================================================================

Run with:  pytest test_elevation_summary.py
"""

import numpy as np
import pandas as pd
import pytest

from elevational_range.config import ELEV_PERCENTILES
from elevational_range.elevation_summary import (
    summarize_elevations,
    binned_encounter_rate,
    summarize_by_group,
    range_limits_table,
    format_summary_table,
    STAT_NAMES,
)


def frame(elevations, detected):
    return pd.DataFrame({'elevation': elevations, 'species_observed': detected})


# ============================================================================
# SUMMARY STATISTICS
# ============================================================================

def test_worked_example():
    df = frame([1000, 1200, 1500, 1800, 2000], [True] * 5)
    summary = summarize_elevations(df)

    assert summary['has_data']
    assert summary['n_detections'] == 5
    assert summary['median'] == 1500
    assert summary['min'] == 1000
    assert summary['max'] == 2000
    assert summary['mean'] == pytest.approx(1500)
    # Linear interpolation between order statistics
    assert summary['p5'] == pytest.approx(1040)
    assert summary['p95'] == pytest.approx(1960)


def test_non_detections_are_ignored():
    df = frame([500, 1000, 1500, 4000], [False, True, True, False])
    summary = summarize_elevations(df)
    assert summary['min'] == 1000
    assert summary['max'] == 1500
    assert summary['n_checklists'] == 4
    assert summary['n_detections'] == 2


def test_statistic_ordering_holds_for_random_samples():
    rng = np.random.default_rng(0)
    for _ in range(25):
        n = int(rng.integers(1, 200))
        df = frame(rng.gamma(2.0, 400.0, size=n) + 1000, rng.random(n) < 0.7)
        if not df['species_observed'].any():
            continue
        s = summarize_elevations(df)
        assert s['min'] <= s['p5'] <= s['median'] <= s['p95'] <= s['max']
        assert s['min'] <= s['mean'] <= s['max']


def test_single_detection():
    s = summarize_elevations(frame([2300.0, 1800.0], [True, False]))
    for name in STAT_NAMES:
        assert s[name] == 2300.0


def test_no_detections_reports_no_data():
    s = summarize_elevations(frame([1000, 2000], [False, False]))
    assert s['has_data'] is False
    assert s['n_detections'] == 0
    for name in STAT_NAMES:
        assert s[name] is None


def test_missing_elevations_are_excluded():
    s = summarize_elevations(frame([1000, np.nan, 3000], [True, True, True]))
    assert s['n_detections'] == 2
    assert s['max'] == 3000


def test_missing_detection_flags_are_not_detections():
    df = frame([1000.0, 2000.0, 3000.0, 4000.0], [True, np.nan, True, None])
    s = summarize_elevations(df)
    assert s['n_checklists'] == 2
    assert s['n_detections'] == 2
    assert s['max'] == 3000

    binned = binned_encounter_rate(df, bin_width=1000)
    assert list(binned['bin_lower']) == [1000, 3000]
    assert (binned['encounter_rate'] == 1.0).all()


def test_percentiles_follow_configured_levels():
    values = np.linspace(1000, 3000, 41)
    s = summarize_elevations(frame(values, [True] * len(values)))
    lower, mid, upper = np.percentile(values, list(ELEV_PERCENTILES), method='linear')
    assert s['p5'] == pytest.approx(lower)
    assert s['median'] == pytest.approx(mid)
    assert s['p95'] == pytest.approx(upper)


def test_missing_column_raises():
    with pytest.raises(ValueError):
        summarize_elevations(pd.DataFrame({'elevation': [1.0]}))


# ============================================================================
# BINNED ENCOUNTER RATE
# ============================================================================

def test_binned_rates_lie_in_unit_interval():
    rng = np.random.default_rng(1)
    df = frame(rng.uniform(1000, 3000, 500), rng.random(500) < 0.4)
    binned = binned_encounter_rate(df, bin_width=50)

    assert binned['encounter_rate'].between(0, 1).all()
    assert binned['n_checklists'].sum() == 500
    assert (binned['n_detections'] <= binned['n_checklists']).all()


def test_bins_are_aligned_to_multiples_of_width():
    df = frame([1000, 1049.9, 1050, 1210], [True, False, True, True])
    binned = binned_encounter_rate(df, bin_width=50)

    assert list(binned['bin_lower']) == [1000, 1050, 1200]
    assert list(binned['n_checklists']) == [2, 1, 1]
    assert list(binned['encounter_rate']) == [0.5, 1.0, 1.0]
    assert list(binned['bin_mid']) == [1025, 1075, 1225]


def test_empty_bins_are_omitted():
    binned = binned_encounter_rate(frame([1000, 2000], [True, False]), bin_width=50)
    assert len(binned) == 2


def test_binned_rate_of_empty_input():
    binned = binned_encounter_rate(frame([], []), bin_width=50)
    assert len(binned) == 0
    assert 'encounter_rate' in binned.columns


def test_bin_width_must_be_positive():
    with pytest.raises(ValueError):
        binned_encounter_rate(frame([1000], [True]), bin_width=0)


# ============================================================================
# GROUPS AND TABLES
# ============================================================================

def grouped_frame():
    return pd.DataFrame({
        'elevation': [1000, 1500, 2000, 2500, 3000, 3500],
        'species_observed': [True, True, False, False, True, True],
        'mountain_range': ['Front Range', 'Front Range', 'Sawatch', 'Sawatch',
                           'San Juan', None],
    })


def test_summarize_by_group_includes_all_and_each_group():
    summaries = summarize_by_group(grouped_frame(), 'mountain_range', verbose=False)

    assert set(summaries) == {'All', 'Front Range', 'Sawatch', 'San Juan'}
    assert summaries['All']['n_detections'] == 4
    assert summaries['Front Range']['max'] == 1500
    assert summaries['Sawatch']['has_data'] is False


def test_group_named_all_is_rejected():
    df = pd.DataFrame({'elevation': [1000.0, 2000.0, 3000.0],
                       'species_observed': [True, True, True],
                       'mountain_range': ['All', 'X', 'X']})
    with pytest.raises(ValueError, match="reserved"):
        summarize_by_group(df, 'mountain_range', verbose=False)


def test_format_summary_table_marks_no_data():
    summaries = summarize_by_group(grouped_frame(), 'mountain_range', verbose=False)
    table = format_summary_table(summaries)

    sawatch = table[table['group'] == 'Sawatch'].iloc[0]
    for name in STAT_NAMES:
        assert sawatch[name] == 'no data'

    front = table[table['group'] == 'Front Range'].iloc[0]
    assert front['median'] == 1250


def test_range_limits_table_compares_definitions():
    summaries = {'All': summarize_elevations(frame([1000, 1200, 1500, 1800, 2000], [True] * 5))}
    limits = range_limits_table(summaries).set_index('definition')

    assert limits.loc['absolute', 'breadth'] == 1000
    assert limits.loc['percentile', 'breadth'] == pytest.approx(920)
    assert limits.loc['percentile', 'breadth'] <= limits.loc['absolute', 'breadth']


def test_range_limits_table_without_data():
    summaries = {'Empty': summarize_elevations(frame([1000], [False]))}
    limits = range_limits_table(summaries)
    assert limits['breadth'].isna().all()
