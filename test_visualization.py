"""
TEST: Figure functions render and save PDFs
============================================

Run with:  pytest test_visualization.py
"""

import matplotlib
matplotlib.use('Agg')

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from elevational_range.elevation_summary import binned_encounter_rate, summarize_elevations
from elevational_range.simulation import run_scenarios, sample_size_extent
from elevational_range.visualization import (
    plot_encounter_rate_by_elevation,
    plot_elevation_by_mountain_range,
    plot_observation_map,
    plot_aspect_rose,
    plot_partial_dependence_by_sample_size,
    plot_simulated_distributions,
    plot_inferred_shifts,
    plot_sample_size_extent,
)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


@pytest.fixture
def table():
    rng = np.random.default_rng(0)
    n = 300
    return pd.DataFrame({
        'latitude': rng.uniform(39, 40.5, n),
        'longitude': rng.uniform(-106.5, -105.2, n),
        'elevation': rng.uniform(2000, 4200, n),
        'aspect': rng.uniform(0, 360, n),
        'species_observed': rng.random(n) < 0.3,
        'mountain_range': rng.choice(['Front Range', 'Sawatch Range', None], n),
    })


@pytest.fixture
def scenarios():
    return run_scenarios(sample_sizes=[10, 50], n_replicates=5, rng=0, verbose=False)


def test_encounter_rate_figure(table, tmp_path):
    path = tmp_path / "rate.pdf"
    fig, axes = plot_encounter_rate_by_elevation(
        binned_encounter_rate(table), summarize_elevations(table), save_path=path
    )
    assert path.exists()
    assert len(axes) == 2


def test_mountain_range_figure_with_and_without_data(table, tmp_path):
    path = tmp_path / "ranges.pdf"
    plot_elevation_by_mountain_range(table, save_path=path)
    assert path.exists()

    empty = table.assign(species_observed=False)
    fig, ax = plot_elevation_by_mountain_range(empty)
    assert ax.texts[0].get_text() == 'no data'


def test_map_and_rose(table, tmp_path):
    plot_observation_map(table, save_path=tmp_path / "map.pdf")
    plot_aspect_rose(table, save_path=tmp_path / "rose.pdf")
    assert (tmp_path / "map.pdf").exists()
    assert (tmp_path / "rose.pdf").exists()


def test_partial_dependence_figure(tmp_path):
    grid = np.linspace(2000, 4000, 8)
    pd_df = pd.concat([
        pd.DataFrame({'sample_size': size, 'replicate': rep, 'elevation': grid,
                      'probability': np.linspace(0.1, 0.5, 8), 'oob_score': 0.8})
        for size in (100, 500) for rep in range(2)
    ], ignore_index=True)

    fig, axes = plot_partial_dependence_by_sample_size(pd_df, save_path=tmp_path / "pd.pdf")
    assert (tmp_path / "pd.pdf").exists()
    assert axes.shape == (1, 2)


def test_simulation_figures(scenarios, tmp_path):
    plot_simulated_distributions(scenarios, save_path=tmp_path / "dist.pdf")
    plot_inferred_shifts(scenarios, save_path=tmp_path / "shifts.pdf")

    extent = sample_size_extent({'loc': 2500, 'scale': 300}, sample_sizes=[10, 100],
                                n_replicates=5, rng=0)
    plot_sample_size_extent(extent, save_path=tmp_path / "extent.pdf")

    for name in ("dist.pdf", "shifts.pdf", "extent.pdf"):
        assert (tmp_path / name).exists()
