"""
Configuration settings for Elevational Range Analysis
======================================================

This module contains all paths, parameters, and constants for the analysis.
Users should modify the PATHS section for their specific system.

Project: Elevational Range - eBird detections vs. elevation
"""

import os
from pathlib import Path

# ============================================================================
# PATHS - USER MODIFIES THESE FOR THEIR SYSTEM
# ============================================================================

DATA_DIR = os.environ.get("ELEVATIONAL_RANGE_DATA", "data")

PATHS = {
    # eBird Basic Dataset extracts (tab-delimited, as downloaded from eBird)
    'observations': os.path.join(DATA_DIR, "ebd_US-CO_relJun-2024.txt"),
    'sampling': os.path.join(DATA_DIR, "ebd_sampling_relJun-2024.txt"),

    # Zero-filled detection/non-detection table (regenerated if missing)
    'zero_filled': os.path.join(DATA_DIR, "ebd_zero_filled.csv"),

    # GMBA Mountain Inventory v2 polygons
    'mountain_ranges': os.path.join(DATA_DIR, "GMBA_Inventory_v2.0_standard.shp"),

    # Elevation raster (GeoTIFF, any CRS)
    'elevation': os.path.join(DATA_DIR, "dem_cropped.tif"),

    # Aspect raster computed from the DEM (cached, regenerated if missing)
    'aspect': os.path.join(DATA_DIR, "aspect_cropped.tif"),

    # Optional land-cover raster (categorical codes); None to skip
    'landcover': None,
}

# Output directory (will be created if it doesn't exist)
OUTPUT_DIR = os.environ.get("ELEVATIONAL_RANGE_OUTPUT", "outputs")

# ============================================================================
# COLUMN NAME MAPPING
# ============================================================================
# Raw eBird headers are upper case with spaces ("OBSERVATION DATE"); they are
# normalised to snake_case on read. Keys are the names used in this package.

COLS = {
    'checklist': 'sampling_event_identifier',
    'species': 'common_name',
    'count': 'observation_count',
    'detected': 'species_observed',
    'lat': 'latitude',
    'lon': 'longitude',
    'date': 'observation_date',
    'time': 'time_observations_started',
    'protocol': 'protocol_type',
    'duration': 'duration_minutes',
    'distance': 'effort_distance_km',
    'observers': 'number_observers',
    'state': 'state_code',
    'complete': 'all_species_reported',
    'group': 'group_identifier',
    'elevation': 'elevation',
    'aspect': 'aspect',
    'mountain_range': 'mountain_range',
    'cell': 'cell_id',
}

# Columns kept from the sampling-event file when zero-filling
CHECKLIST_COLS = [
    'sampling_event_identifier', 'group_identifier', 'latitude', 'longitude',
    'observation_date', 'time_observations_started', 'protocol_type',
    'duration_minutes', 'effort_distance_km', 'number_observers',
    'state_code', 'all_species_reported', 'observer_id',
]

# Fields that must be present for a row to enter the statistics / model
REQUIRED_FIELDS = [
    'latitude', 'longitude', 'observation_date', 'species_observed',
    'duration_minutes', 'number_observers', 'hours_of_day',
]

# ============================================================================
# FILTERING PARAMETERS
# ============================================================================

FILTER_PARAMS = {
    'species': "Brown-capped Rosy-Finch",
    'months': [6, 7],                     # breeding season
    'protocols': ["Stationary", "Traveling"],
    'states': ["US-CO"],
    'max_duration_minutes': 300,
    'max_distance_km': 5.0,
    'max_observers': 10,
    'min_year': 2014,
    'max_year': None,
    'complete_only': True,
}

# ============================================================================
# SPATIAL SUBSAMPLING
# ============================================================================

# Centre-to-centre hexagon spacing (km)
HEX_SPACING_KM = 3.0

# The hexagon lattice is laid out in HEX_CRS, defined below STUDY_BOUNDS

# Grouping keys for the one-record-per-cell subsample
SUBSAMPLE_KEYS = ['species_observed', 'year', 'week', 'cell_id']

# ============================================================================
# ELEVATION SUMMARY PARAMETERS
# ============================================================================

ELEV_BIN_WIDTH = 50  # meters

ELEV_PERCENTILES = (5, 50, 95)

# Interpolation rule for every percentile in the package (numpy `method`)
PERCENTILE_METHOD = 'linear'

NO_DATA_LABEL = "no data"

# ============================================================================
# MOUNTAIN RANGES (GMBA)
# ============================================================================

MOUNTAIN_FIELDS = {
    'name': 'MapName',
    'country': 'Countries',
    'region': 'Level_03',
    # Selection applied when loading the polygons
    'countries': ["United States of America"],
    'region_value': "Southern Rocky Mountains",
}

# Geographic CRS of the observation coordinates
OBS_CRS = "EPSG:4326"

# Bounding box (lon_min, lat_min, lon_max, lat_max) used to crop the DEM
STUDY_BOUNDS = (-109.1, 36.9, -102.0, 41.1)

# Lambert azimuthal equal-area centred on STUDY_BOUNDS (metres). Equal area,
# and ground distances inside the bounds are true to better than 0.1 %, so
# hexagon centres really are HEX_SPACING_KM apart in every direction.
HEX_CRS = (
    "+proj=laea +lat_0={lat:.3f} +lon_0={lon:.3f} +x_0=0 +y_0=0 "
    "+datum=WGS84 +units=m +no_defs"
).format(
    lon=(STUDY_BOUNDS[0] + STUDY_BOUNDS[2]) / 2.0,
    lat=(STUDY_BOUNDS[1] + STUDY_BOUNDS[3]) / 2.0,
)

# ============================================================================
# LAND COVER
# ============================================================================

# NLCD-style class codes -> labels; only used when PATHS['landcover'] is set
LANDCOVER_CLASSES = {
    11: 'water',
    21: 'developed', 22: 'developed', 23: 'developed', 24: 'developed',
    31: 'barren',
    41: 'forest', 42: 'forest', 43: 'forest',
    52: 'shrubland',
    71: 'grassland',
    81: 'agriculture', 82: 'agriculture',
    90: 'wetland', 95: 'wetland',
}

# ============================================================================
# MODEL PARAMETERS (random forest, sample-size sensitivity)
# ============================================================================

MODEL_PARAMS = {
    'n_estimators': 250,
    'min_samples_leaf': 5,
    'max_features': 'sqrt',
    'covariates': [
        'elevation', 'northness', 'eastness', 'day_of_year', 'hours_of_day',
        'duration_minutes', 'effort_distance_km', 'number_observers',
    ],
    'grid_resolution': 50,
}

# Number of checklists used for each model fit
SAMPLE_SIZES = [100, 250, 500, 1000, 2500]

N_REPLICATES = 10

# ============================================================================
# SIMULATION SCENARIOS (meters)
# ============================================================================
# Each scenario is a (before, after) pair of distribution parameters.
# skew = 0 is a normal distribution; otherwise a skew-normal with shape `skew`.

SIMULATION_SCENARIOS = {
    'upslope_shift': {
        'before': {'loc': 2500, 'scale': 300, 'skew': 0},
        'after': {'loc': 2650, 'scale': 300, 'skew': 0},
    },
    'lower_edge_contraction': {
        'before': {'loc': 2500, 'scale': 300, 'skew': 0},
        'after': {'loc': 2300, 'scale': 420, 'skew': 4},
    },
    'expansion': {
        'before': {'loc': 2500, 'scale': 300, 'skew': 0},
        'after': {'loc': 2500, 'scale': 400, 'skew': 0},
    },
}

SIMULATION_SAMPLE_SIZES = [10, 25, 50, 100, 250, 1000]

SIMULATION_REPLICATES = 200

# ============================================================================
# PROCESSING PARAMETERS
# ============================================================================

# Random seed for reproducibility
RANDOM_SEED = 42

# ============================================================================
# VISUALIZATION PARAMETERS
# ============================================================================

PLOT_STYLE = 'seaborn-v0_8-whitegrid'

PLOT_PARAMS = {
    'font.size': 10,
    'axes.labelsize': 11,
    'axes.titlesize': 12,
    'legend.fontsize': 9,
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'pdf.fonttype': 42,
}

# Fixed figure sizes (inches) for the manuscript
FIGURE_SIZES = {
    'single': (3.5, 3.0),
    'wide': (7.0, 3.5),
    'tall': (3.5, 6.0),
    'panel': (7.0, 6.0),
}

COLORMAPS = {
    'elevation': 'terrain',
    'sample_size': 'viridis',
    'metrics': 'tab10',
}

DETECTION_COLORS = {
    True: '#b2182b',
    False: '#bababa',
}


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def ensure_output_dir():
    """Create output directory if it doesn't exist."""
    Path(OUTPUT_DIR).mkdir(parents=True, exist_ok=True)
    return OUTPUT_DIR


def get_path(name):
    """Get a configured input path by name."""
    if name not in PATHS:
        raise ValueError(f"Unknown path: {name}. Available: {list(PATHS.keys())}")
    return PATHS[name]


def print_config_summary():
    """Print summary of current configuration."""
    print("=" * 60)
    print("ELEVATIONAL RANGE ANALYSIS - Configuration Summary")
    print("=" * 60)
    print(f"\nInputs:")
    for name, path in PATHS.items():
        if path is None:
            print(f"  [-] {name}: not configured")
            continue
        exists = "✓" if os.path.exists(path) else "✗"
        print(f"  [{exists}] {name}: {path}")
    print(f"\nSpecies: {FILTER_PARAMS['species']}")
    print(f"Months: {FILTER_PARAMS['months']}")
    print(f"Hex spacing: {HEX_SPACING_KM} km ({HEX_CRS})")
    print(f"Elevation bins: {ELEV_BIN_WIDTH} m")
    print(f"Output Directory: {OUTPUT_DIR}")
    print("=" * 60)


if __name__ == "__main__":
    print_config_summary()
