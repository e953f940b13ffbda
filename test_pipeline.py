"""
COMPREHENSIVE TEST: Elevational Range Analysis Pipeline
========================================================

Runs the workflow from a zero-filled table to the Q1-Q3 outputs on synthetic
checklists and a synthetic DEM, with every path redirected to a temporary
directory.

Run with:  pytest test_pipeline.py
"""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest
import rasterio
from rasterio.transform import from_origin

import elevational_range.config as config
import elevational_range.main as main
from elevational_range.config import PATHS, SUBSAMPLE_KEYS
from elevational_range.data_loading import derive_time_fields


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    # 1 x 1 degree DEM rising 20 m per pixel towards the east
    n = 100
    dem = np.tile(2000.0 + 20.0 * np.arange(n), (n, 1)).astype('float32')
    dem_path = tmp_path / "dem.tif"
    with rasterio.open(dem_path, 'w', driver='GTiff', height=n, width=n, count=1,
                       dtype='float32', crs='EPSG:4326',
                       transform=from_origin(-106.0, 40.0, 0.01, 0.01)) as dst:
        dst.write(dem, 1)

    out_dir = tmp_path / "outputs"
    monkeypatch.setitem(PATHS, 'elevation', str(dem_path))
    monkeypatch.setitem(PATHS, 'aspect', str(tmp_path / "aspect.tif"))
    monkeypatch.setitem(PATHS, 'landcover', None)
    monkeypatch.setitem(PATHS, 'zero_filled', str(tmp_path / "missing.csv"))
    monkeypatch.setitem(PATHS, 'observations', str(tmp_path / "missing_obs.txt"))
    monkeypatch.setitem(PATHS, 'sampling', str(tmp_path / "missing_sampling.txt"))
    monkeypatch.setattr(config, 'OUTPUT_DIR', str(out_dir))
    monkeypatch.setattr(main, 'OUTPUT_DIR', str(out_dir))
    return out_dir


@pytest.fixture
def zero_filled():
    rng = np.random.default_rng(11)
    n = 600
    lon = rng.uniform(-105.95, -105.05, n)
    dates = pd.Timestamp('2020-06-01') + pd.to_timedelta(rng.integers(0, 60, n), unit='D')
    dates = dates + pd.to_timedelta(rng.choice([0, 366], n), unit='D')
    # Detection becomes likelier towards the high (eastern) side of the DEM
    p = 0.05 + 0.6 * (lon + 105.95) / 0.9
    df = pd.DataFrame({
        'sampling_event_identifier': [f"S{i}" for i in range(n)],
        'latitude': rng.uniform(39.05, 39.95, n),
        'longitude': lon,
        'observation_date': dates.strftime('%Y-%m-%d'),
        'time_observations_started': [f"{h:02d}:30:00" for h in rng.integers(5, 18, n)],
        'duration_minutes': rng.integers(10, 240, n).astype(float),
        'effort_distance_km': rng.uniform(0, 5, n),
        'number_observers': rng.integers(1, 5, n).astype(float),
        'species_observed': rng.random(n) < p,
    })
    return derive_time_fields(df)


# ============================================================================
# DATA PREPARATION
# ============================================================================

def test_load_data_reraises_missing_files(workspace):
    with pytest.raises(FileNotFoundError):
        main.load_data()


def test_prepare_analysis_table(workspace, zero_filled):
    prepared = main.prepare_analysis_table(zero_filled, rng=0, with_ranges=False,
                                           verbose=False)
    table = prepared['table']

    assert prepared['ranges'] is None
    assert 0 < len(table) <= len(zero_filled)
    assert not table.duplicated(subset=SUBSAMPLE_KEYS).any()
    assert table['elevation'].between(2000, 4000).all()
    assert {'aspect', 'northness', 'eastness', 'mountain_range', 'cell_id'}.issubset(table.columns)
    assert table['mountain_range'].isna().all()
    assert prepared['subsample_report']['n_before'] == len(zero_filled)


def test_prepare_analysis_table_is_reproducible(workspace, zero_filled):
    a = main.prepare_analysis_table(zero_filled, rng=5, with_ranges=False, verbose=False)
    b = main.prepare_analysis_table(zero_filled, rng=5, with_ranges=False, verbose=False)
    pd.testing.assert_frame_equal(a['table'], b['table'])


# ============================================================================
# ANALYSES
# ============================================================================

def test_analyze_elevation_writes_tables_and_figures(workspace, zero_filled):
    table = main.prepare_analysis_table(zero_filled, rng=0, with_ranges=False,
                                        verbose=False)['table']
    results = main.analyze_elevation(table)

    assert results['summary']['has_data']
    assert set(results['by_range']) == {'All'}
    assert results['binned']['encounter_rate'].between(0, 1).all()
    for name in ("Q1_elevation_summary.csv", "Q1_encounter_rate_by_elevation.csv",
                 "Q1_range_limits.csv", "Q1_encounter_rate_by_elevation.pdf",
                 "Q1_elevation_by_mountain_range.pdf", "Q1_aspect_rose.pdf"):
        assert (workspace / name).exists(), name


def test_analyze_model_sensitivity(workspace, zero_filled):
    table = main.prepare_analysis_table(zero_filled, rng=0, with_ranges=False,
                                        verbose=False)['table']
    results = main.analyze_model_sensitivity(table, sample_sizes=[120], n_replicates=2,
                                             rng=1, save_figures=True)

    assert set(results['curves']['replicate']) == {0, 1}
    assert (workspace / "Q2_partial_dependence.csv").exists()
    assert (workspace / "Q2_partial_dependence_by_sample_size.pdf").exists()


def test_analyze_simulations(workspace):
    results = main.analyze_simulations(sample_sizes=[10, 50], n_replicates=5, rng=2)

    assert set(results['scenarios']) == set(config.SIMULATION_SCENARIOS)
    assert set(results['extent']['sample_size']) == {10, 50}
    assert (workspace / "Q3_sample_size_extent.csv").exists()
    assert (workspace / "Q3_inferred_shifts.pdf").exists()
    for name in config.SIMULATION_SCENARIOS:
        assert (workspace / f"Q3_{name}_shift_summary.csv").exists()


# ============================================================================
# RUNTIME TRACKING
# ============================================================================

def test_analysis_timer_records_steps(capsys):
    timer = main.AnalysisTimer()
    with main.timed_step(timer, "Load checklists") as timing:
        timing['records'] = 1200
    with main.timed_step(timer, "Q3: Simulations"):
        pass
    summary = timer.summary()
    out = capsys.readouterr().out

    assert [s['step'] for s in summary['steps']] == ['Load checklists', 'Q3: Simulations']
    assert [s['records'] for s in summary['steps']] == [1200, None]
    assert summary['slowest'] in {'Load checklists', 'Q3: Simulations'}
    assert summary['total'] >= 0
    assert "PIPELINE RUNTIME" in out
    assert "1,200" in out
    assert timer.elapsed_str(30) == "30.0s"
    assert timer.elapsed_str(90) == "1.5min"


def test_analysis_timer_without_steps(capsys):
    assert main.AnalysisTimer().summary() is None
    assert main.AnalysisTimer().slowest() is None
