"""
Spatiotemporal Subsampling Module
==================================

eBird checklists are spatially and temporally clustered: popular trailheads
and summits are visited far more often than the surrounding terrain. Before
summarising elevations we thin the data so that each combination of

    (detection flag, year, calendar week, hexagonal grid cell)

contributes exactly one checklist, chosen uniformly at random.

Hexagonal cells are laid out on a Lambert azimuthal equal-area projection
centred on the study region, so cells have equal area and their centres are
the nominal spacing apart on the ground in every direction. A global
cylindrical equal-area grid would keep the area but squash cells east-west
away from its standard parallel. Cell ids are a deterministic function of
(longitude, latitude), the spacing and the projection.

Randomness is injected: every sampling function takes a
``numpy.random.Generator`` (or an integer seed), so reproducibility is in
the caller's hands.
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Sequence, Union
from pyproj import Transformer

try:
    from .config import COLS, HEX_SPACING_KM, HEX_CRS, OBS_CRS, SUBSAMPLE_KEYS
except ImportError:
    from config import COLS, HEX_SPACING_KM, HEX_CRS, OBS_CRS, SUBSAMPLE_KEYS


# Packing of axial (q, r) coordinates into one int64 id
_ID_OFFSET = 2 ** 24
_ID_STRIDE = 2 ** 25

SQRT3 = np.sqrt(3.0)

RandomSource = Union[np.random.Generator, int, None]


def as_generator(rng: RandomSource) -> np.random.Generator:
    """Return `rng` unchanged if it is a Generator, else seed a new one."""
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


# ============================================================================
# HEXAGONAL GRID
# ============================================================================

def _project(lon, lat, crs):
    transformer = Transformer.from_crs(OBS_CRS, crs, always_xy=True)
    return transformer.transform(lon, lat)


def _cube_round(q, r):
    """Round fractional axial coordinates to the nearest hexagon."""
    s = -q - r
    rq = np.round(q)
    rr = np.round(r)
    rs = np.round(s)

    dq = np.abs(rq - q)
    dr = np.abs(rr - r)
    ds = np.abs(rs - s)

    fix_q = (dq > dr) & (dq > ds)
    fix_r = ~fix_q & (dr > ds)

    rq = np.where(fix_q, -rr - rs, rq)
    rr = np.where(fix_r, -rq - rs, rr)
    return rq.astype(np.int64), rr.astype(np.int64)


def encode_cell(q, r):
    """Pack axial hexagon coordinates into an int64 cell id."""
    q = np.asarray(q, dtype=np.int64)
    r = np.asarray(r, dtype=np.int64)
    return (q + _ID_OFFSET) * _ID_STRIDE + (r + _ID_OFFSET)


def decode_cell(cell_id):
    """Inverse of encode_cell -> (q, r)."""
    cell_id = np.asarray(cell_id, dtype=np.int64)
    return cell_id // _ID_STRIDE - _ID_OFFSET, cell_id % _ID_STRIDE - _ID_OFFSET


def assign_hex_cells(
    lon: Sequence[float],
    lat: Sequence[float],
    spacing_km: float = HEX_SPACING_KM,
    crs: str = HEX_CRS
) -> np.ndarray:
    """
    Assign points to pointy-top hexagonal cells.

    Parameters
    ----------
    lon, lat : array-like
        Geographic coordinates (degrees, WGS84)
    spacing_km : float
        Distance between neighbouring cell centres (km)
    crs : str
        Projected equal-area CRS in metres

    Returns
    -------
    ndarray of int64
        Cell id per point
    """
    lon = np.asarray(lon, dtype=float)
    lat = np.asarray(lat, dtype=float)

    if lon.shape != lat.shape:
        raise ValueError("lon and lat must have the same shape")
    if spacing_km <= 0:
        raise ValueError(f"spacing_km must be positive, got {spacing_km}")
    if np.isnan(lon).any() or np.isnan(lat).any():
        raise ValueError("Coordinates contain NaN; validate records before gridding")

    x, y = _project(lon, lat, crs)
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)

    # Circumradius of a hexagon whose centres are spacing_km apart
    size = spacing_km * 1000.0 / SQRT3

    q = (SQRT3 / 3.0 * x - y / 3.0) / size
    r = (2.0 / 3.0 * y) / size

    q_int, r_int = _cube_round(q, r)
    return encode_cell(q_int, r_int)


def hex_cell_centers(
    cell_ids: Sequence[int],
    spacing_km: float = HEX_SPACING_KM,
    crs: str = HEX_CRS
) -> pd.DataFrame:
    """
    Centre coordinates of cells, in the projected CRS and in lon/lat.

    Returns
    -------
    DataFrame
        Columns: cell_id, x, y, lon, lat
    """
    cell_ids = np.asarray(cell_ids, dtype=np.int64)
    q, r = decode_cell(cell_ids)
    size = spacing_km * 1000.0 / SQRT3

    x = size * (SQRT3 * q + SQRT3 / 2.0 * r)
    y = size * (1.5 * r)

    back = Transformer.from_crs(crs, OBS_CRS, always_xy=True)
    lon, lat = back.transform(x, y)

    return pd.DataFrame({
        'cell_id': cell_ids,
        'x': x,
        'y': y,
        'lon': lon,
        'lat': lat,
    })


def add_grid_cells(
    df: pd.DataFrame,
    spacing_km: float = HEX_SPACING_KM,
    lon_col: Optional[str] = None,
    lat_col: Optional[str] = None
) -> pd.DataFrame:
    """Return a copy of `df` with a cell_id column."""
    lon_col = lon_col or COLS['lon']
    lat_col = lat_col or COLS['lat']

    if lat_col not in df.columns or lon_col not in df.columns:
        raise ValueError(
            f"Lat/lon columns not found. Looking for '{lat_col}' and '{lon_col}'. "
            f"Available columns: {list(df.columns)}"
        )

    result = df.copy()
    result[COLS['cell']] = assign_hex_cells(
        result[lon_col].to_numpy(), result[lat_col].to_numpy(), spacing_km
    )
    return result


# ============================================================================
# SPATIOTEMPORAL SUBSAMPLING
# ============================================================================

def spatiotemporal_subsample(
    df: pd.DataFrame,
    rng: RandomSource = None,
    keys: Optional[List[str]] = None,
    verbose: bool = True
) -> pd.DataFrame:
    """
    Keep one randomly chosen record per (flag, year, week, cell) group.

    Parameters
    ----------
    df : DataFrame
        Records with the grouping columns (see SUBSAMPLE_KEYS)
    rng : numpy.random.Generator or int, optional
        Random source. The same seed always yields the same subsample.
        None draws fresh OS entropy.
    keys : list of str, optional
        Grouping columns (default SUBSAMPLE_KEYS)
    verbose : bool
        Print before/after counts

    Returns
    -------
    DataFrame
        Subset of `df` in its original row order, one row per group
    """
    if keys is None:
        keys = SUBSAMPLE_KEYS

    missing = [k for k in keys if k not in df.columns]
    if missing:
        raise ValueError(f"Grouping columns missing: {missing}")
    if df[keys].isna().any().any():
        raise ValueError("Grouping columns contain missing values; validate records first")

    rng = as_generator(rng)

    # A uniform shuffle makes "first in group" a uniform pick within the group
    order = rng.permutation(len(df))
    shuffled = df.iloc[order]
    keep = ~shuffled.duplicated(subset=keys, keep='first').to_numpy()
    positions = np.sort(order[keep])

    result = df.iloc[positions].copy()

    if verbose:
        print(f"Spatiotemporal subsample on {keys}:")
        print(f"  Records before: {len(df):,}")
        print(f"  Records after:  {len(result):,}")

    return result


def subsample_report(before: pd.DataFrame, after: pd.DataFrame) -> Dict[str, float]:
    """Counts and detection prevalence before and after subsampling."""
    detected_col = COLS['detected']

    def _prevalence(frame):
        if len(frame) == 0:
            return np.nan
        return float(frame[detected_col].mean())

    report = {
        'n_before': len(before),
        'n_after': len(after),
        'fraction_kept': len(after) / len(before) if len(before) else np.nan,
        'detections_before': int(before[detected_col].sum()),
        'detections_after': int(after[detected_col].sum()),
        'prevalence_before': _prevalence(before),
        'prevalence_after': _prevalence(after),
    }
    if COLS['cell'] in after.columns:
        report['n_cells'] = int(after[COLS['cell']].nunique())
    return report
