"""
Data Loading Module for Elevational Range Analysis
====================================================

This module handles loading and cleaning the eBird inputs:
- eBird Basic Dataset observation file (tab-delimited)
- eBird sampling-event (checklist) file
- Zero-filled detection/non-detection table (cached CSV)

Key Features:
- Header normalisation to snake_case
- Season / protocol / region / effort filters
- Zero-filling against the checklist table
- Explicit validation of required fields
- One-time regeneration of the cached zero-filled table

Dependencies:
- pandas
- numpy
"""

import csv
import os
import warnings
import numpy as np
import pandas as pd
from pathlib import Path

# Handle imports for both package and direct execution
try:
    from .config import (
        PATHS, COLS, CHECKLIST_COLS, REQUIRED_FIELDS, FILTER_PARAMS, get_path
    )
except ImportError:
    from config import (
        PATHS, COLS, CHECKLIST_COLS, REQUIRED_FIELDS, FILTER_PARAMS, get_path
    )


NUMERIC_COLUMNS = [
    'latitude', 'longitude', 'duration_minutes', 'effort_distance_km',
    'number_observers', 'all_species_reported',
]


# ============================================================================
# RAW EBIRD FILES
# ============================================================================

def normalize_column_names(columns):
    """Convert raw eBird headers ("OBSERVATION DATE") to snake_case."""
    return [
        str(c).strip().lower().replace('/', '_').replace(' ', '_')
        for c in columns
    ]


def read_ebird_file(path, usecols=None, verbose=True):
    """
    Read a tab-delimited eBird file into a DataFrame.

    Parameters
    ----------
    path : str
        Path to an EBD observation or sampling-event file
    usecols : list, optional
        Normalised column names to keep
    verbose : bool
        Print loading statistics

    Returns
    -------
    pandas.DataFrame
        Records with snake_case columns and numeric effort fields
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"eBird file not found: {path}")

    if verbose:
        print(f"Loading eBird file: {path}")

    df = pd.read_csv(path, sep='\t', quoting=csv.QUOTE_NONE,
                     dtype=str, low_memory=False)
    df.columns = normalize_column_names(df.columns)

    # EBD files end every line with a tab, which produces an empty column
    df = df.loc[:, [c for c in df.columns if not c.startswith('unnamed')]]

    if usecols is not None:
        missing = [c for c in usecols if c not in df.columns]
        if missing:
            raise ValueError(f"Columns not found in {path}: {missing}")
        df = df[usecols]

    for col in NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors='coerce')

    if verbose:
        print(f"  Raw records loaded: {len(df):,}")
        print(f"  Columns: {len(df.columns)}")

    return df


def read_ebird_observations(path=None, verbose=True):
    """Load the EBD observation file (one row per species per checklist)."""
    return read_ebird_file(path or get_path('observations'), verbose=verbose)


def read_ebird_sampling(path=None, verbose=True):
    """Load the sampling-event file (one row per checklist)."""
    return read_ebird_file(path or get_path('sampling'), verbose=verbose)


# ============================================================================
# FILTERING
# ============================================================================

def filter_records(df, params=None, verbose=True):
    """
    Apply season, protocol, region and effort filters.

    Filters (each skipped when its parameter is None/empty):
    - months of observation_date
    - protocol_type
    - state_code
    - complete checklists only
    - duration, distance and observer-count ceilings
    - year range

    Non-traveling protocols get an effort distance of 0 km before the
    distance filter is applied.

    Parameters
    ----------
    df : DataFrame
        Observation or sampling-event records
    params : dict, optional
        Filter settings (default FILTER_PARAMS)
    verbose : bool
        Print filtering statistics

    Returns
    -------
    DataFrame
        Filtered copy
    """
    if params is None:
        params = FILTER_PARAMS

    initial_count = len(df)
    df = df.copy()

    if verbose:
        print(f"Filtering {initial_count:,} records...")

    dates = pd.to_datetime(df[COLS['date']], errors='coerce')
    mask = pd.Series(True, index=df.index)

    months = params.get('months')
    if months:
        mask &= dates.dt.month.isin(months)
        if verbose:
            print(f"  After month filter {list(months)}: {mask.sum():,}")

    years = dates.dt.year
    if params.get('min_year') is not None:
        mask &= years >= params['min_year']
    if params.get('max_year') is not None:
        mask &= years <= params['max_year']
    if verbose and (params.get('min_year') is not None or params.get('max_year') is not None):
        print(f"  After year filter ({params.get('min_year')}-{params.get('max_year')}): {mask.sum():,}")

    protocols = params.get('protocols')
    protocol_col = COLS['protocol']
    if protocols and protocol_col in df.columns:
        mask &= df[protocol_col].isin(protocols)
        if verbose:
            print(f"  After protocol filter: {mask.sum():,}")

    states = params.get('states')
    state_col = COLS['state']
    if states and state_col in df.columns:
        mask &= df[state_col].isin(states)
        if verbose:
            print(f"  After region filter {list(states)}: {mask.sum():,}")

    complete_col = COLS['complete']
    if params.get('complete_only') and complete_col in df.columns:
        mask &= df[complete_col] == 1
        if verbose:
            print(f"  After complete-checklist filter: {mask.sum():,}")

    # Stationary counts have no distance; treat it as 0 km
    distance_col = COLS['distance']
    if distance_col in df.columns and protocol_col in df.columns:
        not_traveling = df[protocol_col] != "Traveling"
        df.loc[not_traveling, distance_col] = 0.0

    effort_limits = [
        ('max_duration_minutes', COLS['duration']),
        ('max_distance_km', distance_col),
        ('max_observers', COLS['observers']),
    ]
    for key, col in effort_limits:
        limit = params.get(key)
        if limit is not None and col in df.columns:
            mask &= df[col] <= limit
    if verbose:
        print(f"  After effort filters: {mask.sum():,}")

    df_clean = df[mask].copy()

    if verbose and initial_count > 0:
        removed = initial_count - len(df_clean)
        print(f"  Final count: {len(df_clean):,} ({100 * removed / initial_count:.1f}% removed)")

    return df_clean


def collapse_shared_checklists(df):
    """
    Keep one record per group checklist.

    Checklists shared between observers carry the same group_identifier;
    the first record of each group is kept and the group identifier becomes
    the checklist id.
    """
    checklist_col = COLS['checklist']
    group_col = COLS['group']
    if group_col not in df.columns:
        return df.copy()

    df = df.copy()
    has_group = df[group_col].notna() & (df[group_col] != '')
    df.loc[has_group, checklist_col] = df.loc[has_group, group_col]
    subset = [checklist_col]
    if COLS['species'] in df.columns:
        subset.append(COLS['species'])
    return df.drop_duplicates(subset=subset, keep='first')


# ============================================================================
# ZERO-FILLING
# ============================================================================

def zero_fill(observations, sampling, species=None, verbose=True):
    """
    Build a complete detection/non-detection table for one species.

    Every checklist in `sampling` appears exactly once. species_observed is
    True where the species was reported on that checklist. Counts reported
    as 'X' (present, not counted) become NaN; non-detections get a count of 0.

    Parameters
    ----------
    observations : DataFrame
        EBD observation records (any species)
    sampling : DataFrame
        Sampling-event records (all checklists)
    species : str, optional
        Common name to keep (default FILTER_PARAMS['species']); None uses all
        observation rows as detections

    Returns
    -------
    DataFrame
        One row per checklist
    """
    checklist_col = COLS['checklist']
    species_col = COLS['species']
    count_col = COLS['count']
    detected_col = COLS['detected']

    if species is None:
        species = FILTER_PARAMS.get('species')

    for name, frame in (('observations', observations), ('sampling', sampling)):
        if checklist_col not in frame.columns:
            raise ValueError(f"'{checklist_col}' not found in {name} columns")

    obs = collapse_shared_checklists(observations)
    checklists = collapse_shared_checklists(sampling)

    if species is not None and species_col in obs.columns:
        obs = obs[obs[species_col] == species]

    if verbose:
        print(f"Zero-filling detections for: {species}")
        print(f"  Detections: {len(obs):,}")
        print(f"  Checklists: {checklists[checklist_col].nunique():,}")

    detections = obs[[checklist_col, count_col]].drop_duplicates(subset=checklist_col)

    unmatched = ~detections[checklist_col].isin(checklists[checklist_col])
    if unmatched.any():
        warnings.warn(
            f"{unmatched.sum():,} detections have no matching checklist and were dropped"
        )

    keep_cols = [c for c in CHECKLIST_COLS if c in checklists.columns]
    result = checklists[keep_cols].drop_duplicates(subset=checklist_col)
    result = result.merge(detections, on=checklist_col, how='left')

    result[detected_col] = result[count_col].notna()
    counts = result[count_col].replace('X', np.nan)
    counts = pd.to_numeric(counts, errors='coerce')
    counts[~result[detected_col]] = 0
    result[count_col] = counts
    result[species_col] = species

    if verbose:
        n_det = int(result[detected_col].sum())
        prevalence = n_det / len(result) if len(result) else np.nan
        print(f"  Zero-filled records: {len(result):,}")
        print(f"  Detection prevalence: {prevalence:.3f}")

    return result.reset_index(drop=True)


# ============================================================================
# DERIVED FIELDS AND VALIDATION
# ============================================================================

def time_to_decimal_hours(times):
    """Convert 'HH:MM:SS' strings to decimal hours (NaN where missing)."""
    deltas = pd.to_timedelta(times, errors='coerce')
    return deltas.dt.total_seconds() / 3600


def derive_time_fields(df):
    """
    Add year, day_of_year, week and hours_of_day columns.

    week is the calendar week counted from January 1st,
    (day_of_year - 1) // 7 + 1, so it runs from 1 to 53.
    """
    df = df.copy()
    dates = pd.to_datetime(df[COLS['date']], errors='coerce')
    df[COLS['date']] = dates
    df['year'] = dates.dt.year
    df['day_of_year'] = dates.dt.dayofyear
    df['week'] = (df['day_of_year'] - 1) // 7 + 1

    time_col = COLS['time']
    if time_col in df.columns:
        df['hours_of_day'] = time_to_decimal_hours(df[time_col])
    else:
        df['hours_of_day'] = np.nan

    return df


def validate_required_fields(df, required=None, verbose=True):
    """
    Drop rows with a missing value in any required field.

    Parameters
    ----------
    df : DataFrame
    required : list, optional
        Column names that must be non-missing (default REQUIRED_FIELDS)
    verbose : bool
        Print how many rows were dropped per field

    Returns
    -------
    DataFrame
        Copy restricted to complete rows

    Raises
    ------
    ValueError
        If a required column is absent from the frame
    """
    if required is None:
        required = REQUIRED_FIELDS

    missing_cols = [c for c in required if c not in df.columns]
    if missing_cols:
        raise ValueError(
            f"Required columns missing: {missing_cols}. Available: {list(df.columns)}"
        )

    nulls = df[list(required)].isna()
    mask = ~nulls.any(axis=1)

    if verbose:
        print(f"Validating {len(required)} required fields...")
        for col in required:
            n_missing = int(nulls[col].sum())
            if n_missing:
                print(f"  {col}: {n_missing:,} missing")
        removed = len(df) - int(mask.sum())
        print(f"  Rows kept: {int(mask.sum()):,} ({removed:,} dropped)")

    return df[mask].copy()


# ============================================================================
# CACHED ZERO-FILLED TABLE
# ============================================================================

def build_zero_filled(observations_path=None, sampling_path=None,
                      params=None, verbose=True):
    """Run read -> filter -> zero-fill -> derive fields from the raw files."""
    if params is None:
        params = FILTER_PARAMS

    observations = read_ebird_observations(observations_path, verbose=verbose)
    sampling = read_ebird_sampling(sampling_path, verbose=verbose)

    observations = filter_records(observations, params, verbose=verbose)
    sampling = filter_records(sampling, params, verbose=verbose)

    zf = zero_fill(observations, sampling, species=params.get('species'),
                   verbose=verbose)
    return derive_time_fields(zf)


def load_zero_filled(cache_path=None, regenerate=False, params=None,
                     observations_path=None, sampling_path=None,
                     verbose=True):
    """
    Load the zero-filled table, regenerating the cache when it is absent.

    Parameters
    ----------
    cache_path : str, optional
        CSV cache (default PATHS['zero_filled'])
    regenerate : bool
        Rebuild from the raw eBird files even if the cache exists

    Returns
    -------
    DataFrame
        Zero-filled records with derived time fields
    """
    if cache_path is None:
        cache_path = get_path('zero_filled')

    if os.path.exists(cache_path) and not regenerate:
        if verbose:
            print(f"Loading zero-filled table: {cache_path}")
        df = pd.read_csv(cache_path, parse_dates=[COLS['date']], low_memory=False)
        df[COLS['detected']] = df[COLS['detected']].astype(bool)
        if verbose:
            print(f"  Records: {len(df):,}")
        return df

    if verbose:
        print(f"Zero-filled cache not found, building: {cache_path}")

    df = build_zero_filled(observations_path, sampling_path, params, verbose)

    Path(cache_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(cache_path, index=False)
    if verbose:
        print(f"  Saved to: {cache_path}")
        print(f"  File size: {os.path.getsize(cache_path) / 1e6:.1f} MB")

    return df


# ============================================================================
# DATA SUMMARY FUNCTIONS
# ============================================================================

def summarize_observations(df):
    """
    Print summary of a zero-filled observation table.

    Parameters
    ----------
    df : DataFrame
        Zero-filled records
    """
    print("\n" + "=" * 60)
    print("OBSERVATION DATA SUMMARY")
    print("=" * 60)

    print(f"\nTotal checklists: {len(df):,}")

    detected_col = COLS['detected']
    if detected_col in df.columns:
        n_det = int(df[detected_col].sum())
        print(f"  Detections: {n_det:,} ({100 * df[detected_col].mean():.1f}%)")

    if 'year' in df.columns and len(df):
        print(f"  Years: {int(df['year'].min())} to {int(df['year'].max())}")

    for key, units in (('duration', 'min'), ('distance', 'km'), ('observers', '')):
        col = COLS[key]
        if col in df.columns:
            values = df[col]
            print(f"\n{col}:")
            print(f"  Median: {values.median():.1f} {units}")
            print(f"  Mean:   {values.mean():.1f} {units}")
            print(f"  Max:    {values.max():.1f} {units}")

    lat_col = COLS['lat']
    lon_col = COLS['lon']
    if lat_col in df.columns and lon_col in df.columns:
        print(f"\nGeographic Extent:")
        print(f"  Latitude:  {df[lat_col].min():.2f}° to {df[lat_col].max():.2f}°")
        print(f"  Longitude: {df[lon_col].min():.2f}° to {df[lon_col].max():.2f}°")

    print("\n" + "=" * 60)


def describe_vector_file(path):
    """
    Layer names and feature counts of a vector file.

    Returns
    -------
    dict
        {layer name: number of features}
    """
    import fiona

    counts = {}
    for layer in fiona.listlayers(path):
        with fiona.open(path, layer=layer) as src:
            counts[layer] = len(src)
    return counts


def quick_data_check():
    """
    Perform quick check of all data sources.
    Useful for initial validation that everything is accessible.
    """
    print("\n" + "=" * 60)
    print("DATA AVAILABILITY CHECK")
    print("=" * 60)

    for i, (name, path) in enumerate(PATHS.items(), start=1):
        if path is None:
            print(f"\n[{i}] {name}: not configured")
        elif os.path.exists(path):
            size_mb = os.path.getsize(path) / 1e6
            print(f"\n[{i}] {name}:")
            print(f"  ✓ Found: {path} ({size_mb:.1f} MB)")
            if name == 'mountain_ranges':
                from fiona.errors import DriverError
                try:
                    for layer, n in describe_vector_file(path).items():
                        print(f"  ✓ Layer '{layer}': {n:,} polygons")
                except DriverError as e:
                    print(f"  ✗ Cannot read layers: {e}")
        else:
            print(f"\n[{i}] {name}:")
            print(f"  ✗ NOT FOUND: {path}")

    print("\n" + "=" * 60)


if __name__ == "__main__":
    # Run quick data check when module is executed directly
    quick_data_check()
