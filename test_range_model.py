"""
TEST: Random-forest encounter model and sample-size sensitivity
================================================================

Synthetic checklists whose detection probability peaks between 2800 and
3400 m. Forests are kept small so the suite stays quick.

Run with:  pytest test_range_model.py
"""

import numpy as np
import pandas as pd
import pytest

from elevational_range.config import MODEL_PARAMS
from elevational_range.range_model import (
    prepare_model_data,
    fit_encounter_model,
    elevation_grid,
    elevation_partial_dependence,
    sample_size_sensitivity,
    summarize_sensitivity,
)

SMALL_FOREST = {'n_estimators': 20, 'min_samples_leaf': 3}


def synthetic_table(n=800, seed=0):
    rng = np.random.default_rng(seed)
    elevation = rng.uniform(1500, 4000, n)
    p = 0.05 + 0.8 * np.exp(-((elevation - 3100) / 300) ** 2)
    aspect = rng.uniform(0, 360, n)
    return pd.DataFrame({
        'elevation': elevation,
        'northness': np.cos(np.radians(aspect)),
        'eastness': np.sin(np.radians(aspect)),
        'day_of_year': rng.integers(152, 213, n),
        'hours_of_day': rng.uniform(5, 19, n),
        'duration_minutes': rng.integers(5, 300, n),
        'effort_distance_km': rng.uniform(0, 5, n),
        'number_observers': rng.integers(1, 6, n),
        'species_observed': rng.random(n) < p,
    })


def test_prepare_model_data_uses_configured_covariates():
    df = synthetic_table(100)
    df.loc[0, 'hours_of_day'] = np.nan
    X, y = prepare_model_data(df, verbose=False)

    assert list(X.columns) == MODEL_PARAMS['covariates']
    assert len(X) == 99
    assert set(np.unique(y)) <= {0, 1}


def test_prepare_model_data_skips_absent_covariates():
    df = synthetic_table(100).drop(columns=['northness', 'eastness'])
    with pytest.warns(UserWarning):
        X, _ = prepare_model_data(df, verbose=False)
    assert 'northness' not in X.columns
    assert 'elevation' in X.columns


def test_prepare_model_data_adds_landcover_columns():
    df = synthetic_table(100)
    df['lc_forest'] = 1
    X, _ = prepare_model_data(df, verbose=False)
    assert 'lc_forest' in X.columns


def test_prepare_model_data_requires_elevation():
    with pytest.raises(ValueError):
        prepare_model_data(synthetic_table(50).drop(columns='elevation'), verbose=False)


def test_fit_requires_both_classes():
    df = synthetic_table(50)
    X, _ = prepare_model_data(df, verbose=False)
    with pytest.raises(ValueError):
        fit_encounter_model(X, np.zeros(len(X), dtype=int), rng=0)


def test_partial_dependence_is_a_probability_curve_on_the_grid():
    df = synthetic_table()
    X, y = prepare_model_data(df, verbose=False)
    model = fit_encounter_model(X, y, rng=1, **SMALL_FOREST)
    grid = elevation_grid(X['elevation'], n_points=30)

    curve = elevation_partial_dependence(model, X, grid)

    assert curve.shape == (30,)
    assert np.all((curve >= 0) & (curve <= 1))
    # The response peaks inside the occupied band, not at the low end
    assert grid[np.argmax(curve)] > 2500
    assert curve.max() > curve[0]


def test_elevation_grid_spans_central_range():
    grid = elevation_grid(np.linspace(1000, 3000, 1001), n_points=11)
    assert len(grid) == 11
    assert grid[0] == pytest.approx(1050)
    assert grid[-1] == pytest.approx(2950)
    assert np.all(np.diff(grid) > 0)


def test_sample_size_sensitivity_shape_and_reproducibility():
    df = synthetic_table()
    grid = np.linspace(2000, 3800, 10)

    kwargs = dict(sample_sizes=[150, 400], n_replicates=2, grid=grid,
                  verbose=False, **SMALL_FOREST)
    a = sample_size_sensitivity(df, rng=np.random.default_rng(7), **kwargs)
    b = sample_size_sensitivity(df, rng=np.random.default_rng(7), **kwargs)

    assert list(a.columns) == ['sample_size', 'replicate', 'elevation',
                               'probability', 'oob_score']
    assert len(a) == 2 * 2 * len(grid)
    assert set(a['sample_size']) == {150, 400}
    assert a['probability'].between(0, 1).all()
    pd.testing.assert_frame_equal(a, b)


def test_sample_size_above_available_rows_is_capped():
    df = synthetic_table(120)
    with pytest.warns(UserWarning):
        result = sample_size_sensitivity(df, sample_sizes=[500], n_replicates=1,
                                         rng=0, grid=np.linspace(2000, 3500, 5),
                                         verbose=False, **SMALL_FOREST)
    assert len(result) == 5
    assert (result['sample_size'] == 500).all()


def test_replicates_without_both_classes_are_skipped_with_a_warning():
    df = synthetic_table(200)
    df['species_observed'] = False
    df.loc[[10, 150], 'species_observed'] = True

    # A single checklist can never hold a detection and a non-detection
    with pytest.warns(UserWarning, match="5 replicate"):
        result = sample_size_sensitivity(df, sample_sizes=[1], n_replicates=5, rng=0,
                                         grid=np.linspace(2000, 3500, 5),
                                         verbose=False, **SMALL_FOREST)

    assert result.empty
    assert list(result.columns) == ['sample_size', 'replicate', 'elevation',
                                    'probability', 'oob_score']


def test_summarize_sensitivity():
    df = synthetic_table()
    result = sample_size_sensitivity(df, sample_sizes=[200], n_replicates=3, rng=3,
                                     grid=np.linspace(2000, 3800, 10),
                                     verbose=False, **SMALL_FOREST)
    summary = summarize_sensitivity(result)

    assert len(summary) == 1
    row = summary.iloc[0]
    assert row['n_fits'] == 3
    assert 2000 <= row['peak_elevation_mean'] <= 3800
    assert row['mean_curve_sd'] >= 0
