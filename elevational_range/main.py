"""
Elevational Range Analysis - Main Orchestration Script
=======================================================

This script provides the main entry point for running the analysis. It can
be run directly or individual functions can be called interactively in
Spyder/IPython.

Usage:
    # Run full analysis
    python -m elevational_range.main --full

    # Or import and run specific analyses:
    from elevational_range.main import *
    table = prepare_analysis_table(load_data())
    elev_results = analyze_elevation(table)

Questions:
    Q1: Where along the gradient is the species detected, and how do absolute
        and percentile range limits differ?
    Q2: How many checklists does a model need before its elevation response
        stabilises?
    Q3: How does the inferred range shift depend on the range definition and
        on sample size?
"""

import os
import sys
import time
from pathlib import Path
from contextlib import contextmanager
from datetime import timedelta

# Add module directory to path if running directly
if __name__ == "__main__" and __package__ in (None, ''):
    sys.path.insert(0, str(Path(__file__).parent))

import numpy as np
import matplotlib.pyplot as plt


# ============================================================================
# RUNTIME TRACKING
# ============================================================================

class AnalysisTimer:
    """
    Wall-clock time and record counts for the pipeline steps.

    Usage:
        timer = AnalysisTimer()
        with timed_step(timer, "Subsample") as step:
            sampled = spatiotemporal_subsample(df)
            step['records'] = len(sampled)
        timer.summary()
    """

    def __init__(self):
        self.steps = []
        self.current_step = None
        self.start_time = None
        self.overall_start = None

    def start(self, step_name):
        """Start timing a new step."""
        if self.overall_start is None:
            self.overall_start = time.time()

        self.current_step = step_name
        self.start_time = time.time()

    def stop(self, records=None):
        """Stop timing the current step; `records` is the row count it produced."""
        if self.start_time is None:
            return None

        elapsed = time.time() - self.start_time
        self.steps.append({
            'step': self.current_step,
            'duration': elapsed,
            'records': records,
        })
        self.start_time = None
        self.current_step = None
        return elapsed

    @staticmethod
    def elapsed_str(seconds):
        """Format seconds as human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            return f"{seconds/60:.1f}min"
        else:
            return str(timedelta(seconds=int(seconds)))

    def slowest(self):
        """Name of the step that took longest, or None."""
        if not self.steps:
            return None
        return max(self.steps, key=lambda s: s['duration'])['step']

    def summary(self):
        """Print the step table and return it as a dict."""
        if not self.steps:
            print("\nNo pipeline steps were timed.")
            return None

        total = sum(s['duration'] for s in self.steps)
        overall = time.time() - self.overall_start if self.overall_start else total

        print("\n" + "=" * 70)
        print("PIPELINE RUNTIME")
        print("=" * 70)
        print(f"{'Step':<34} {'Duration':>10} {'Share':>8} {'Records':>12}")
        print("-" * 70)

        for step in self.steps:
            pct = (step['duration'] / total) * 100 if total > 0 else 0
            records = '-' if step['records'] is None else f"{step['records']:,}"
            print(f"{step['step']:<34} {self.elapsed_str(step['duration']):>10} "
                  f"{pct:>7.1f}% {records:>12}")

        print("-" * 70)
        print(f"{'Timed steps':<34} {self.elapsed_str(total):>10}")
        print(f"{'Wall clock':<34} {self.elapsed_str(overall):>10}")
        print(f"Slowest step: {self.slowest()}")
        print("=" * 70)

        return {
            'steps': [dict(s) for s in self.steps],
            'total': total,
            'overall': overall,
            'slowest': self.slowest(),
        }


@contextmanager
def timed_step(timer, step_name):
    """Time the enclosed block; set step['records'] to report a row count."""
    step = {'records': None}
    timer.start(step_name)
    try:
        yield step
    finally:
        elapsed = timer.stop(step['records'])
        if elapsed is not None:
            done = f"  [DONE] {step_name} in {timer.elapsed_str(elapsed)}"
            if step['records'] is not None:
                done += f" ({step['records']:,} records)"
            print(done)


def print_step_header(step_num, total_steps, title):
    """Print a formatted step header with progress."""
    bar_width = 30
    filled = int(bar_width * step_num / total_steps)
    bar = "#" * filled + "." * (bar_width - filled)

    print(f"\n[{bar}] Step {step_num}/{total_steps}: {title}")
    print("-" * 70)


# Import project modules - handle both package and direct execution
try:
    from .config import (
        OUTPUT_DIR, COLS, RANDOM_SEED, HEX_SPACING_KM, ELEV_BIN_WIDTH,
        SAMPLE_SIZES, N_REPLICATES, SIMULATION_SCENARIOS,
        SIMULATION_SAMPLE_SIZES, SIMULATION_REPLICATES,
        get_path, ensure_output_dir, print_config_summary
    )
    from .data_loading import (
        load_zero_filled, validate_required_fields, summarize_observations,
        quick_data_check
    )
    from .subsampling import (
        add_grid_cells, spatiotemporal_subsample, subsample_report, as_generator
    )
    from .terrain import attach_terrain, load_mountain_ranges, read_band
    from .elevation_summary import (
        summarize_elevations, binned_encounter_rate, summarize_by_group,
        range_limits_table, format_summary_table, print_elevation_summary
    )
    from .range_model import sample_size_sensitivity, summarize_sensitivity
    from .simulation import run_scenarios, sample_size_extent
    from .visualization import (
        setup_plot_style, plot_encounter_rate_by_elevation,
        plot_elevation_by_mountain_range, plot_observation_map, plot_aspect_rose,
        plot_partial_dependence_by_sample_size, plot_simulated_distributions,
        plot_inferred_shifts, plot_sample_size_extent
    )
except ImportError:
    from config import (
        OUTPUT_DIR, COLS, RANDOM_SEED, HEX_SPACING_KM, ELEV_BIN_WIDTH,
        SAMPLE_SIZES, N_REPLICATES, SIMULATION_SCENARIOS,
        SIMULATION_SAMPLE_SIZES, SIMULATION_REPLICATES,
        get_path, ensure_output_dir, print_config_summary
    )
    from data_loading import (
        load_zero_filled, validate_required_fields, summarize_observations,
        quick_data_check
    )
    from subsampling import (
        add_grid_cells, spatiotemporal_subsample, subsample_report, as_generator
    )
    from terrain import attach_terrain, load_mountain_ranges, read_band
    from elevation_summary import (
        summarize_elevations, binned_encounter_rate, summarize_by_group,
        range_limits_table, format_summary_table, print_elevation_summary
    )
    from range_model import sample_size_sensitivity, summarize_sensitivity
    from simulation import run_scenarios, sample_size_extent
    from visualization import (
        setup_plot_style, plot_encounter_rate_by_elevation,
        plot_elevation_by_mountain_range, plot_observation_map, plot_aspect_rose,
        plot_partial_dependence_by_sample_size, plot_simulated_distributions,
        plot_inferred_shifts, plot_sample_size_extent
    )


# ============================================================================
# DATA PREPARATION
# ============================================================================

def load_data(regenerate=False):
    """
    Load the zero-filled eBird table (building the cache if needed).

    Parameters
    ----------
    regenerate : bool
        Rebuild the zero-filled CSV from the raw eBird files

    Returns
    -------
    DataFrame
    """
    print("\n" + "=" * 60)
    print("LOADING EBIRD DATA")
    print("=" * 60)

    try:
        print("\n[STEP 1] Loading zero-filled detections...")
        df = load_zero_filled(regenerate=regenerate)

        print("\n[STEP 2] Generating summary statistics...")
        summarize_observations(df)

        print(f"\n[SUCCESS] Loaded {len(df):,} checklists successfully!")
        return df

    except FileNotFoundError as e:
        print(f"\n[ERROR] File not found: {e}")
        print("  Please check the paths in config.py")
        raise


def prepare_analysis_table(df, rng=None, spacing_km=HEX_SPACING_KM,
                           with_ranges=True, verbose=True):
    """
    Validate, subsample and geo-join the zero-filled records.

    Parameters
    ----------
    df : DataFrame
        Zero-filled records from load_data()
    rng : numpy.random.Generator or int, optional
        Random source for the subsample (default RANDOM_SEED)
    spacing_km : float
        Hexagon spacing
    with_ranges : bool
        Join mountain-range names (requires the polygon file)

    Returns
    -------
    dict
        'table' (derived analysis table), 'subsample_report', 'ranges'
    """
    if rng is None:
        rng = RANDOM_SEED
    rng = as_generator(rng)

    print("\n[STEP 1/3] Validating required fields...")
    clean = validate_required_fields(df, verbose=verbose)

    print("\n[STEP 2/3] Spatiotemporal subsampling...")
    gridded = add_grid_cells(clean, spacing_km)
    sampled = spatiotemporal_subsample(gridded, rng, verbose=verbose)
    report = subsample_report(gridded, sampled)
    print(f"  Cells occupied: {report.get('n_cells', 0):,}")
    print(f"  Prevalence: {report['prevalence_before']:.3f} -> {report['prevalence_after']:.3f}")

    print("\n[STEP 3/3] Attaching terrain and mountain ranges...")
    ranges = load_mountain_ranges(verbose=verbose) if with_ranges else None
    table = attach_terrain(sampled, ranges=ranges, verbose=verbose)
    table = table[table[COLS['elevation']].notna()].copy()

    return {
        'table': table,
        'subsample_report': report,
        'ranges': ranges,
    }


# ============================================================================
# Q1: OBSERVED ELEVATIONAL RANGE
# ============================================================================

def analyze_elevation(table, bin_width=ELEV_BIN_WIDTH, save_figures=True):
    """
    Describe the observed elevational range.

    Steps:
    1. Summary statistics of detection elevations (overall, per range)
    2. Binned encounter rate
    3. Absolute vs percentile range limits
    4. Figures and CSV tables

    Returns
    -------
    dict
        summary, by_range, binned, limits
    """
    print("\n" + "=" * 60)
    print("Q1: OBSERVED ELEVATIONAL RANGE")
    print("=" * 60)

    ensure_output_dir()

    print("\n[STEP 1/4] Summarising detection elevations...")
    summary = summarize_elevations(table)
    print_elevation_summary(summary, label='all checklists')

    if table[COLS['mountain_range']].notna().any():
        by_range = summarize_by_group(table, COLS['mountain_range'])
    else:
        by_range = {'All': summary}

    print("\n[STEP 2/4] Computing binned encounter rate...")
    binned = binned_encounter_rate(table, bin_width)
    print(f"  Bins with checklists: {len(binned):,}")

    print("\n[STEP 3/4] Comparing range definitions...")
    limits = range_limits_table(by_range)

    print("\n[STEP 4/4] Saving results...")
    format_summary_table(by_range).to_csv(f"{OUTPUT_DIR}/Q1_elevation_summary.csv", index=False)
    binned.to_csv(f"{OUTPUT_DIR}/Q1_encounter_rate_by_elevation.csv", index=False)
    limits.to_csv(f"{OUTPUT_DIR}/Q1_range_limits.csv", index=False)

    if save_figures:
        fig, _ = plot_encounter_rate_by_elevation(
            binned, summary,
            save_path=f"{OUTPUT_DIR}/Q1_encounter_rate_by_elevation.pdf"
        )
        plt.close(fig)

        fig, _ = plot_elevation_by_mountain_range(
            table, save_path=f"{OUTPUT_DIR}/Q1_elevation_by_mountain_range.pdf"
        )
        plt.close(fig)

        fig, _ = plot_aspect_rose(
            table, save_path=f"{OUTPUT_DIR}/Q1_aspect_rose.pdf"
        )
        plt.close(fig)

    print("\n[SUCCESS] Q1 analysis complete!")

    return {
        'summary': summary,
        'by_range': by_range,
        'binned': binned,
        'limits': limits,
    }


# ============================================================================
# Q2: MODEL SAMPLE-SIZE SENSITIVITY
# ============================================================================

def analyze_model_sensitivity(table, sample_sizes=SAMPLE_SIZES,
                              n_replicates=N_REPLICATES, rng=None,
                              save_figures=True):
    """
    Random-forest partial dependence on elevation across sample sizes.

    Returns
    -------
    dict
        curves (long DataFrame), summary (per sample size)
    """
    print("\n" + "=" * 60)
    print("Q2: MODEL SAMPLE-SIZE SENSITIVITY")
    print("=" * 60)

    if rng is None:
        rng = RANDOM_SEED + 1
    ensure_output_dir()

    curves = sample_size_sensitivity(table, sample_sizes, n_replicates, rng)
    summary = summarize_sensitivity(curves)

    curves.to_csv(f"{OUTPUT_DIR}/Q2_partial_dependence.csv", index=False)
    summary.to_csv(f"{OUTPUT_DIR}/Q2_sensitivity_summary.csv", index=False)

    print("\n[RESULTS] Curve spread by sample size:")
    for _, row in summary.iterrows():
        print(f"  n = {int(row['sample_size']):>6,}: sd = {row['mean_curve_sd']:.3f}, "
              f"peak = {row['peak_elevation_mean']:,.0f} m")

    if save_figures and len(curves):
        fig, _ = plot_partial_dependence_by_sample_size(
            curves, save_path=f"{OUTPUT_DIR}/Q2_partial_dependence_by_sample_size.pdf"
        )
        plt.close(fig)

    print("\n[SUCCESS] Q2 analysis complete!")
    return {'curves': curves, 'summary': summary}


# ============================================================================
# Q3: SIMULATED RANGE SHIFTS
# ============================================================================

def analyze_simulations(scenarios=None, sample_sizes=SIMULATION_SAMPLE_SIZES,
                        n_replicates=SIMULATION_REPLICATES, rng=None,
                        save_figures=True):
    """
    Inferred range shifts under each range definition.

    Does not need any observation data.

    Returns
    -------
    dict
        scenarios (run_scenarios output), extent (DataFrame)
    """
    print("\n" + "=" * 60)
    print("Q3: SIMULATED RANGE SHIFTS")
    print("=" * 60)

    if scenarios is None:
        scenarios = SIMULATION_SCENARIOS
    if rng is None:
        rng = RANDOM_SEED + 2
    rng = as_generator(rng)
    ensure_output_dir()

    results = run_scenarios(scenarios, sample_sizes, n_replicates, rng)

    baseline = next(iter(scenarios.values()))['before']
    extent = sample_size_extent(baseline, sample_sizes, n_replicates, rng)

    for name, result in results.items():
        result['summary'].to_csv(f"{OUTPUT_DIR}/Q3_{name}_shift_summary.csv", index=False)
    extent.to_csv(f"{OUTPUT_DIR}/Q3_sample_size_extent.csv", index=False)

    if save_figures:
        fig, _ = plot_simulated_distributions(
            results, save_path=f"{OUTPUT_DIR}/Q3_simulated_distributions.pdf"
        )
        plt.close(fig)

        fig, _ = plot_inferred_shifts(
            results, save_path=f"{OUTPUT_DIR}/Q3_inferred_shifts.pdf"
        )
        plt.close(fig)

        fig, _ = plot_sample_size_extent(
            extent, save_path=f"{OUTPUT_DIR}/Q3_sample_size_extent.pdf"
        )
        plt.close(fig)

    print("\n[SUCCESS] Q3 analysis complete!")
    return {'scenarios': results, 'extent': extent}


# ============================================================================
# FULL PIPELINE
# ============================================================================

def run_full_analysis(regenerate=False, seed=RANDOM_SEED):
    """
    Run complete analysis pipeline.

    Parameters
    ----------
    regenerate : bool
        Rebuild the zero-filled cache from the raw eBird files
    seed : int
        Seed for one Generator shared by every random step

    Returns
    -------
    dict
        All results
    """
    timer = AnalysisTimer()
    total_steps = 6
    rng = np.random.default_rng(seed)

    print("\n" + "=" * 70)
    print("ELEVATIONAL RANGE ANALYSIS - FULL PIPELINE")
    print("=" * 70)
    print(f"Started at: {time.strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"Total steps: {total_steps}")
    print("=" * 70)

    setup_plot_style()
    ensure_output_dir()
    print_config_summary()

    results = {}
    step = 0

    step += 1
    print_step_header(step, total_steps, "Loading eBird Data")
    with timed_step(timer, "Load checklists") as timing:
        df = load_data(regenerate=regenerate)
        timing['records'] = len(df)

    step += 1
    print_step_header(step, total_steps, "Subsampling and Terrain Join")
    with timed_step(timer, "Subsample and attach terrain") as timing:
        prepared = prepare_analysis_table(df, rng=rng)
        table = prepared['table']
        results['subsample_report'] = prepared['subsample_report']
        table.to_csv(f"{OUTPUT_DIR}/analysis_table.csv", index=False)
        timing['records'] = len(table)

    step += 1
    print_step_header(step, total_steps, "Q1: Observed Elevational Range")
    with timed_step(timer, "Q1: Elevation summary"):
        results['Q1_elevation'] = analyze_elevation(table)

    step += 1
    print_step_header(step, total_steps, "Q2: Model Sample-Size Sensitivity")
    with timed_step(timer, "Q2: Model sensitivity") as timing:
        results['Q2_model'] = analyze_model_sensitivity(table, rng=rng)
        timing['records'] = len(results['Q2_model']['curves'])

    step += 1
    print_step_header(step, total_steps, "Q3: Simulated Range Shifts")
    with timed_step(timer, "Q3: Simulations"):
        results['Q3_simulation'] = analyze_simulations(rng=rng)

    step += 1
    print_step_header(step, total_steps, "Observation Map")
    with timed_step(timer, "Map"):
        dem_path = get_path('elevation')
        dem = read_band(dem_path) if os.path.exists(dem_path) else None
        fig, _ = plot_observation_map(
            table, dem=dem, ranges=prepared['ranges'],
            save_path=f"{OUTPUT_DIR}/observation_map.pdf"
        )
        plt.close(fig)

    print("\n" + "=" * 70)
    print("ANALYSIS COMPLETE")
    print(f"Results saved to: {OUTPUT_DIR}")
    print(f"Finished at: {time.strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    results['timing'] = timer.summary()
    return results


def quick_start():
    """
    Quick start guide for interactive use.
    """
    print("""
ELEVATIONAL RANGE ANALYSIS - Quick Start Guide
===============================================

1. Check data availability:
   >>> quick_data_check()

2. Load zero-filled eBird data (built from the raw files on first use):
   >>> df = load_data()
   >>> df = load_data(regenerate=True)

3. Subsample and attach terrain:
   >>> prepared = prepare_analysis_table(df, rng=42)
   >>> table = prepared['table']

4. Run individual analyses:
   >>> q1 = analyze_elevation(table)
   >>> q2 = analyze_model_sensitivity(table)
   >>> q3 = analyze_simulations()          # no data needed

5. Run full pipeline:
   >>> all_results = run_full_analysis()

Tips:
- Update paths in config.py before running
- Figures (PDF) and tables (CSV) are saved to OUTPUT_DIR
""")


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description='Elevational Range Analysis')
    parser.add_argument('--check', action='store_true',
                        help='Check data availability only')
    parser.add_argument('--full', action='store_true',
                        help='Run full analysis pipeline')
    parser.add_argument('--simulate', action='store_true',
                        help='Run only the range-shift simulations')
    parser.add_argument('--regenerate', action='store_true',
                        help='Rebuild the zero-filled table from raw eBird files')
    parser.add_argument('--seed', type=int, default=RANDOM_SEED,
                        help=f'Random seed (default: {RANDOM_SEED})')

    args = parser.parse_args()

    if args.check:
        quick_data_check()
    elif args.full:
        run_full_analysis(regenerate=args.regenerate, seed=args.seed)
    elif args.simulate:
        setup_plot_style()
        analyze_simulations(rng=args.seed)
    else:
        quick_start()
