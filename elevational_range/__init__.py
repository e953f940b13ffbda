"""
Elevational Range Analysis Package
===================================

A Python package for describing where a bird species occurs along the
elevation gradient from eBird checklists, and for showing how inferences
about elevational ranges and range shifts depend on how a "range" is
defined and on sample size.

Modules:
    config            - Configuration settings and paths
    data_loading      - eBird files, filtering, zero-filling, validation
    subsampling       - Hexagonal grid and spatiotemporal subsampling
    terrain           - Elevation, aspect and mountain-range joins
    elevation_summary - Range statistics and binned encounter rates
    range_model       - Random-forest sample-size sensitivity
    simulation        - Normal / skew-normal range-shift simulations
    visualization     - Manuscript figures (PDF)
    main              - Orchestration and pipeline

Quick Start:
    >>> from elevational_range import load_data, prepare_analysis_table
    >>> table = prepare_analysis_table(load_data(), rng=42)['table']
    >>> results = analyze_elevation(table)
"""

__version__ = '0.1.0'

# Import key functions for convenient access
from .config import (
    COLS, FILTER_PARAMS, ELEV_BIN_WIDTH, HEX_SPACING_KM, RANDOM_SEED,
    ensure_output_dir, print_config_summary
)

from .data_loading import (
    read_ebird_observations,
    read_ebird_sampling,
    filter_records,
    zero_fill,
    derive_time_fields,
    validate_required_fields,
    load_zero_filled,
    quick_data_check,
    describe_vector_file,
    summarize_observations
)

from .subsampling import (
    assign_hex_cells,
    add_grid_cells,
    spatiotemporal_subsample,
    subsample_report
)

from .terrain import (
    compute_aspect,
    build_aspect_raster,
    crop_raster_to_bounds,
    extract_raster_values,
    load_mountain_ranges,
    assign_mountain_range,
    attach_terrain
)

from .elevation_summary import (
    summarize_elevations,
    binned_encounter_rate,
    summarize_by_group,
    range_limits_table,
    format_summary_table
)

from .range_model import (
    fit_encounter_model,
    elevation_partial_dependence,
    sample_size_sensitivity,
    summarize_sensitivity
)

from .simulation import (
    simulate_elevations,
    simulate_range_shift,
    sample_size_extent,
    run_scenarios
)

from .visualization import setup_plot_style

from .main import (
    load_data,
    prepare_analysis_table,
    analyze_elevation,
    analyze_model_sensitivity,
    analyze_simulations,
    run_full_analysis,
    quick_start
)
