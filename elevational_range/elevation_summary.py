"""
Elevational Summary Statistics
===============================

Descriptive statistics of where a species is detected along the elevation
gradient, and the encounter rate within fixed-width elevation bins.

Two ways of describing the same elevational range are reported side by side:
- absolute limits (minimum / maximum detection elevation)
- percentile limits (5th / 95th percentile of detection elevations)

All percentiles in this package use one interpolation rule
(config.PERCENTILE_METHOD). A group with no detections has no elevational
range; its statistics are None and are rendered as "no data", never as 0.
"""

import numpy as np
import pandas as pd
from typing import Any, Dict, Optional

try:
    from .config import (
        COLS, ELEV_BIN_WIDTH, ELEV_PERCENTILES, PERCENTILE_METHOD, NO_DATA_LABEL
    )
except ImportError:
    from config import (
        COLS, ELEV_BIN_WIDTH, ELEV_PERCENTILES, PERCENTILE_METHOD, NO_DATA_LABEL
    )


STAT_NAMES = ['min', 'p5', 'median', 'mean', 'p95', 'max']

# Key of the all-groups summary in summarize_by_group()
OVERALL_GROUP = 'All'


def percentile(values, q, method: str = PERCENTILE_METHOD):
    """numpy.percentile with the package-wide interpolation rule."""
    return np.percentile(np.asarray(values, dtype=float), q, method=method)


def _usable_rows(df, elevation_col, detection_col):
    """Rows with both an elevation and a detection flag, flag as bool."""
    for col in (elevation_col, detection_col):
        if col not in df.columns:
            raise ValueError(f"Column '{col}' not found. Available: {list(df.columns)}")

    # A missing flag is unknown, not a detection
    known = df[elevation_col].notna() & df[detection_col].notna()
    data = df.loc[known, [elevation_col]].astype(float)
    data['_detected'] = df.loc[known, detection_col].astype(bool)
    return data


# ============================================================================
# DETECTION ELEVATION STATISTICS
# ============================================================================

def summarize_elevations(
    df: pd.DataFrame,
    elevation_col: Optional[str] = None,
    detection_col: Optional[str] = None,
    method: str = PERCENTILE_METHOD
) -> Dict[str, Any]:
    """
    Summarise the elevations of detected observations.

    Parameters
    ----------
    df : DataFrame
        Observations with an elevation column and a boolean detection flag.
        Rows missing either value are left out.
    elevation_col, detection_col : str, optional
        Column names (default COLS['elevation'], COLS['detected'])
    method : str
        numpy percentile interpolation method

    Returns
    -------
    dict
        'has_data', 'n_checklists', 'n_detections', 'min', 'p5', 'median',
        'mean', 'p95', 'max'. The percentiles are ELEV_PERCENTILES.
        Statistics are None when nothing was detected.

    Examples
    --------
    >>> df = pd.DataFrame({'elevation': [1000, 1200, 1500, 1800, 2000],
    ...                    'species_observed': [True] * 5})
    >>> summarize_elevations(df)['median']
    1500.0
    """
    elevation_col = elevation_col or COLS['elevation']
    detection_col = detection_col or COLS['detected']

    data = _usable_rows(df, elevation_col, detection_col)
    values = data.loc[data['_detected'], elevation_col].to_numpy()

    summary = {
        'has_data': len(values) > 0,
        'n_checklists': int(len(data)),
        'n_detections': int(len(values)),
    }

    if len(values) == 0:
        summary.update({name: None for name in STAT_NAMES})
        return summary

    lower, mid, upper = percentile(values, list(ELEV_PERCENTILES), method)
    summary.update({
        'min': float(np.min(values)),
        'p5': float(lower),
        'median': float(mid),
        'mean': float(np.mean(values)),
        'p95': float(upper),
        'max': float(np.max(values)),
    })
    return summary


def print_elevation_summary(summary, label=''):
    """Print one summary dict."""
    title = f"ELEVATIONAL RANGE{': ' + label if label else ''}"
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)
    print(f"  Checklists: {summary['n_checklists']:,}")
    print(f"  Detections: {summary['n_detections']:,}")
    for name in STAT_NAMES:
        value = summary.get(name)
        shown = NO_DATA_LABEL if value is None else f"{value:,.0f} m"
        print(f"  {name:>6}: {shown}")


# ============================================================================
# BINNED ENCOUNTER RATE
# ============================================================================

def binned_encounter_rate(
    df: pd.DataFrame,
    bin_width: float = ELEV_BIN_WIDTH,
    elevation_col: Optional[str] = None,
    detection_col: Optional[str] = None
) -> pd.DataFrame:
    """
    Encounter rate in fixed-width elevation bins.

    Bin edges are multiples of `bin_width`; a value on an edge belongs to the
    bin above it ([lower, upper)). Bins without checklists are omitted.

    Returns
    -------
    DataFrame
        Columns: bin_lower, bin_upper, bin_mid, n_checklists, n_detections,
        encounter_rate (in [0, 1])
    """
    elevation_col = elevation_col or COLS['elevation']
    detection_col = detection_col or COLS['detected']

    if bin_width <= 0:
        raise ValueError(f"bin_width must be positive, got {bin_width}")

    columns = ['bin_lower', 'bin_upper', 'bin_mid',
               'n_checklists', 'n_detections', 'encounter_rate']

    data = _usable_rows(df, elevation_col, detection_col)
    if len(data) == 0:
        return pd.DataFrame(columns=columns)

    data['_detected'] = data['_detected'].astype(int)
    data['bin_lower'] = np.floor(data[elevation_col] / bin_width) * bin_width

    result = data.groupby('bin_lower')['_detected'].agg(['size', 'sum', 'mean'])
    result = result.rename(columns={
        'size': 'n_checklists', 'sum': 'n_detections', 'mean': 'encounter_rate',
    }).reset_index()

    result['bin_upper'] = result['bin_lower'] + bin_width
    result['bin_mid'] = result['bin_lower'] + bin_width / 2
    result['n_checklists'] = result['n_checklists'].astype(int)
    result['n_detections'] = result['n_detections'].astype(int)

    return result[columns].sort_values('bin_lower').reset_index(drop=True)


# ============================================================================
# GROUPED SUMMARIES AND TABLES
# ============================================================================

def summarize_by_group(
    df: pd.DataFrame,
    group_col: Optional[str] = None,
    elevation_col: Optional[str] = None,
    detection_col: Optional[str] = None,
    verbose: bool = True
) -> Dict[str, Dict[str, Any]]:
    """
    summarize_elevations() for each value of `group_col`, plus 'All'.

    Rows with a missing group value only count towards 'All'. A group
    literally named 'All' is rejected.
    """
    group_col = group_col or COLS['mountain_range']
    if group_col not in df.columns:
        raise ValueError(f"Column '{group_col}' not found. Available: {list(df.columns)}")
    if (df[group_col].dropna().astype(str) == OVERALL_GROUP).any():
        raise ValueError(
            f"'{group_col}' has a group named '{OVERALL_GROUP}', "
            "which is reserved for the overall summary"
        )

    summaries = {OVERALL_GROUP: summarize_elevations(df, elevation_col, detection_col)}
    for name, group in df.groupby(group_col, sort=True):
        summaries[str(name)] = summarize_elevations(group, elevation_col, detection_col)

    if verbose:
        print(f"\nElevational summaries by {group_col}:")
        for name, summary in summaries.items():
            if summary['has_data']:
                print(f"  {name:<30} n={summary['n_detections']:>5,}  "
                      f"p5-p95: {summary['p5']:,.0f}-{summary['p95']:,.0f} m")
            else:
                print(f"  {name:<30} {NO_DATA_LABEL}")

    return summaries


def range_limits_table(summaries: Dict[str, Dict[str, Any]]) -> pd.DataFrame:
    """
    Compare range definitions per group.

    Returns
    -------
    DataFrame
        One row per (group, definition) with lower, upper and breadth, for
        the 'absolute' (min-max) and 'percentile' (p5-p95) definitions
    """
    rows = []
    definitions = [('absolute', 'min', 'max'), ('percentile', 'p5', 'p95')]
    for group, summary in summaries.items():
        for definition, lower_key, upper_key in definitions:
            lower = summary.get(lower_key)
            upper = summary.get(upper_key)
            rows.append({
                'group': group,
                'definition': definition,
                'n_detections': summary['n_detections'],
                'lower': lower,
                'upper': upper,
                'breadth': None if lower is None else upper - lower,
            })
    return pd.DataFrame(rows)


def format_summary_table(summaries: Dict[str, Dict[str, Any]],
                         decimals: int = 0) -> pd.DataFrame:
    """
    Tabulate summaries for export, writing "no data" for undefined stats.

    Returns
    -------
    DataFrame
        Columns: group, n_checklists, n_detections, min, p5, median, mean,
        p95, max
    """
    rows = []
    for group, summary in summaries.items():
        row = {
            'group': group,
            'n_checklists': summary['n_checklists'],
            'n_detections': summary['n_detections'],
        }
        for name in STAT_NAMES:
            value = summary.get(name)
            row[name] = NO_DATA_LABEL if value is None else round(value, decimals)
        rows.append(row)

    return pd.DataFrame(rows, columns=['group', 'n_checklists', 'n_detections'] + STAT_NAMES)
