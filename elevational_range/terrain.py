"""
Terrain and Mountain-Range Join Module
=======================================

Attaches terrain attributes to each observation:
- Elevation sampled from a DEM at the checklist location
- Slope aspect (computed once from the DEM and cached as a GeoTIFF)
- Northness / eastness (cosine / sine of aspect)
- Optional land-cover class and one-hot land-cover columns
- Name of the enclosing mountain range (GMBA polygons, "within" join)

Dependencies:
- rasterio (raster I/O, windows, CRS transforms)
- geopandas / shapely (point-in-polygon)
- numpy, pandas
"""

import os
import warnings
import numpy as np
import pandas as pd
import geopandas as gpd
import rasterio
from rasterio.crs import CRS
from rasterio.transform import rowcol
from rasterio.warp import transform as warp_transform, transform_bounds
from rasterio.windows import Window
from pathlib import Path

# Handle imports for both package and direct execution
try:
    from .config import (
        PATHS, COLS, OBS_CRS, STUDY_BOUNDS, MOUNTAIN_FIELDS, LANDCOVER_CLASSES,
        get_path
    )
except ImportError:
    from config import (
        PATHS, COLS, OBS_CRS, STUDY_BOUNDS, MOUNTAIN_FIELDS, LANDCOVER_CLASSES,
        get_path
    )


# Metres per degree of latitude / of longitude at the equator
M_PER_DEG_LAT = 110574.0
M_PER_DEG_LON = 111320.0

ASPECT_NODATA = -9999.0


# ============================================================================
# RASTER METADATA AND CROPPING
# ============================================================================

def get_raster_info(raster_path):
    """
    Get information about a raster file without loading data.

    Parameters
    ----------
    raster_path : str
        Path to a GDAL-readable raster

    Returns
    -------
    dict
        CRS, dimensions, bounds, pixel size (native units and approx. metres),
        nodata value
    """
    with rasterio.open(raster_path) as src:
        transform = src.transform
        pixel_width = abs(transform.a)
        pixel_height = abs(transform.e)

        crs = src.crs
        if crs and crs.is_geographic:
            center_lat = (src.bounds.bottom + src.bounds.top) / 2
            pixel_width_m = pixel_width * M_PER_DEG_LON * np.cos(np.radians(center_lat))
            pixel_height_m = pixel_height * M_PER_DEG_LAT
            units = 'degrees'
        else:
            pixel_width_m = pixel_width
            pixel_height_m = pixel_height
            units = 'meters' if crs else 'unknown'

        return {
            'path': raster_path,
            'width': src.width,
            'height': src.height,
            'crs': str(crs),
            'crs_units': units,
            'bounds': src.bounds,
            'transform': transform,
            'pixel_width': pixel_width,
            'pixel_height': pixel_height,
            'pixel_width_m': pixel_width_m,
            'pixel_height_m': pixel_height_m,
            'nodata': src.nodata,
            'dtype': str(src.dtypes[0]),
            'count': src.count,
        }


def crop_raster_to_bounds(src_path, out_path, bounds=STUDY_BOUNDS,
                          bounds_crs=OBS_CRS, verbose=True):
    """
    Crop a raster to a bounding box and write it as a GeoTIFF.

    Parameters
    ----------
    src_path : str
        Input raster
    out_path : str
        Output GeoTIFF path
    bounds : tuple
        (left, bottom, right, top) in `bounds_crs`
    bounds_crs : str
        CRS of `bounds` (default: geographic lon/lat)

    Returns
    -------
    str
        Path to the cropped raster
    """
    if not os.path.exists(src_path):
        raise FileNotFoundError(f"Raster not found: {src_path}")

    if verbose:
        print(f"Cropping {Path(src_path).name} to {bounds}...")

    with rasterio.open(src_path) as src:
        left, bottom, right, top = transform_bounds(bounds_crs, src.crs, *bounds)

        row_start, col_start = rowcol(src.transform, left, top)
        row_stop, col_stop = rowcol(src.transform, right, bottom)

        row_start = max(int(row_start), 0)
        col_start = max(int(col_start), 0)
        row_stop = min(int(row_stop), src.height - 1)
        col_stop = min(int(col_stop), src.width - 1)

        if row_stop < row_start or col_stop < col_start:
            raise ValueError(f"Bounds {bounds} do not overlap raster {src_path}")

        window = Window(col_start, row_start,
                        col_stop - col_start + 1, row_stop - row_start + 1)
        data = src.read(window=window)

        profile = src.profile.copy()
        profile.update({
            'driver': 'GTiff',
            'height': data.shape[1],
            'width': data.shape[2],
            'transform': src.window_transform(window),
            'compress': 'lzw',
        })

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(out_path, 'w', **profile) as dst:
        dst.write(data)

    if verbose:
        print(f"  Size: {data.shape[2]} x {data.shape[1]} pixels")
        print(f"  Saved to: {out_path}")

    return out_path


def read_band(raster_path):
    """Read band 1 as float with nodata replaced by NaN -> (data, transform, crs)."""
    with rasterio.open(raster_path) as src:
        data = src.read(1, masked=True).astype(float).filled(np.nan)
        return data, src.transform, src.crs


# ============================================================================
# ASPECT
# ============================================================================

def compute_aspect(elevation, transform, crs=None):
    """
    Compute slope aspect from an elevation grid.

    Aspect is the compass direction the slope faces (direction of steepest
    descent), in degrees clockwise from north: 0 = N, 90 = E, 180 = S,
    270 = W. Flat cells and cells next to NaN elevations are NaN.

    Parameters
    ----------
    elevation : 2D ndarray
        Elevation (m), north-up, NaN for nodata
    transform : affine.Affine
        Raster transform
    crs : rasterio.crs.CRS or str, optional
        If geographic, pixel widths are converted to metres per row

    Returns
    -------
    2D ndarray
        Aspect in degrees
    """
    elevation = np.asarray(elevation, dtype=float)
    if elevation.ndim != 2 or min(elevation.shape) < 2:
        raise ValueError("Elevation grid must be 2D with at least 2 rows and 2 columns")

    dx = abs(transform.a)
    dy = abs(transform.e)

    is_geographic = False
    if crs is not None:
        is_geographic = CRS.from_user_input(crs).is_geographic

    if is_geographic:
        rows = np.arange(elevation.shape[0])
        lats = transform.f + (rows + 0.5) * transform.e
        dx_m = (dx * M_PER_DEG_LON * np.cos(np.radians(lats)))[:, np.newaxis]
        dy_m = dy * M_PER_DEG_LAT
    else:
        dx_m = dx
        dy_m = dy

    d_row, d_col = np.gradient(elevation)

    # Rows run north to south
    dz_east = d_col / dx_m
    dz_north = -d_row / dy_m

    aspect = np.degrees(np.arctan2(-dz_east, -dz_north)) % 360.0

    flat = (dz_east == 0) & (dz_north == 0)
    aspect[flat] = np.nan
    aspect[np.isnan(dz_east) | np.isnan(dz_north)] = np.nan

    return aspect


def build_aspect_raster(dem_path=None, out_path=None, overwrite=False,
                        verbose=True):
    """
    Compute an aspect GeoTIFF from the DEM, reusing the cache when present.

    Returns
    -------
    str
        Path to the aspect raster
    """
    dem_path = dem_path or get_path('elevation')
    out_path = out_path or get_path('aspect')

    if os.path.exists(out_path) and not overwrite:
        if verbose:
            print(f"Using cached aspect raster: {out_path}")
        return out_path

    if not os.path.exists(dem_path):
        raise FileNotFoundError(f"DEM not found: {dem_path}")

    if verbose:
        print(f"Computing aspect from {Path(dem_path).name}...")

    elevation, transform, crs = read_band(dem_path)
    aspect = compute_aspect(elevation, transform, crs)

    with rasterio.open(dem_path) as src:
        profile = src.profile.copy()

    profile.update({
        'driver': 'GTiff',
        'dtype': 'float32',
        'count': 1,
        'nodata': ASPECT_NODATA,
        'compress': 'lzw',
    })

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(out_path, 'w', **profile) as dst:
        dst.write(np.where(np.isnan(aspect), ASPECT_NODATA, aspect).astype('float32'), 1)

    if verbose:
        valid = np.isfinite(aspect)
        print(f"  Valid aspect cells: {valid.sum():,} ({100 * valid.mean():.1f}%)")
        print(f"  Saved to: {out_path}")

    return out_path


# ============================================================================
# POINT EXTRACTION
# ============================================================================

def observations_to_gdf(df, lat_col=None, lon_col=None):
    """
    Convert observation DataFrame to GeoDataFrame with point geometry.

    Returns
    -------
    GeoDataFrame
        Points in geographic CRS (EPSG:4326)
    """
    lat_col = lat_col or COLS['lat']
    lon_col = lon_col or COLS['lon']

    if lat_col not in df.columns or lon_col not in df.columns:
        raise ValueError(
            f"Lat/lon columns not found. Looking for '{lat_col}' and '{lon_col}'. "
            f"Available columns: {list(df.columns)}"
        )

    geometry = gpd.points_from_xy(df[lon_col], df[lat_col])
    return gpd.GeoDataFrame(df.copy(), geometry=geometry, crs=OBS_CRS)


def extract_raster_values(points, raster_path):
    """
    Sample band 1 of a raster at point locations.

    Parameters
    ----------
    points : GeoDataFrame
        Point geometries (any CRS; reprojected to the raster CRS)
    raster_path : str

    Returns
    -------
    ndarray
        One value per point; NaN for nodata or points outside the raster
    """
    if not os.path.exists(raster_path):
        raise FileNotFoundError(f"Raster not found: {raster_path}")

    values = np.full(len(points), np.nan)
    if len(points) == 0:
        return values

    data, transform, crs = read_band(raster_path)

    xs = points.geometry.x.to_numpy()
    ys = points.geometry.y.to_numpy()
    if points.crs is not None and crs is not None:
        points_crs = CRS.from_user_input(points.crs)
        if points_crs != crs:
            xs, ys = warp_transform(points_crs, crs, xs, ys)

    rows, cols = rowcol(transform, xs, ys)
    rows = np.asarray(rows, dtype=np.int64)
    cols = np.asarray(cols, dtype=np.int64)

    inside = (rows >= 0) & (rows < data.shape[0]) & (cols >= 0) & (cols < data.shape[1])
    values[inside] = data[rows[inside], cols[inside]]
    return values


def classify_landcover(codes, classes=None):
    """Map land-cover codes to labels (unknown codes -> NaN)."""
    if classes is None:
        classes = LANDCOVER_CLASSES
    return pd.Series(codes).map(classes)


# ============================================================================
# MOUNTAIN RANGES
# ============================================================================

def load_mountain_ranges(path=None, countries=None, region_value=None,
                         fields=None, verbose=True):
    """
    Load mountain-range polygons and select a country / region.

    GMBA inventory rows list all countries a range touches in one string
    ("Canada - United States of America"), so a row is kept if any of the
    requested countries occurs in it.

    Parameters
    ----------
    path : str, optional
        Polygon file (default PATHS['mountain_ranges'])
    countries : list of str, optional
        Country names to keep (default MOUNTAIN_FIELDS['countries'])
    region_value : str, optional
        Value of the hierarchical region column to keep
        (default MOUNTAIN_FIELDS['region_value'])

    Returns
    -------
    GeoDataFrame
        Columns: name, country, region, geometry
    """
    fields = fields or MOUNTAIN_FIELDS
    path = path or get_path('mountain_ranges')
    if countries is None:
        countries = fields.get('countries')
    if region_value is None:
        region_value = fields.get('region_value')

    if not os.path.exists(path):
        raise FileNotFoundError(f"Mountain range file not found: {path}")

    if verbose:
        print(f"Loading mountain ranges: {path}")

    ranges = gpd.read_file(path)
    if verbose:
        print(f"  Polygons loaded: {len(ranges):,}")

    name_col = fields['name']
    country_col = fields['country']
    region_col = fields['region']

    missing = [c for c in (name_col, country_col, region_col) if c not in ranges.columns]
    if missing:
        raise ValueError(f"Mountain range columns missing: {missing}")

    mask = pd.Series(True, index=ranges.index)
    if countries:
        country_values = ranges[country_col].fillna('')
        in_country = pd.Series(False, index=ranges.index)
        for country in countries:
            in_country |= country_values.str.contains(country, regex=False)
        mask &= in_country
    if region_value:
        mask &= ranges[region_col] == region_value

    ranges = ranges.loc[mask, [name_col, country_col, region_col, 'geometry']]
    ranges = ranges.rename(columns={
        name_col: 'name', country_col: 'country', region_col: 'region',
    }).reset_index(drop=True)

    if verbose:
        print(f"  Selected: {len(ranges):,} ranges")
    if len(ranges) == 0:
        warnings.warn("No mountain ranges matched the country/region selection")

    return ranges


def assign_mountain_range(points, ranges, name_col='name'):
    """
    Name the mountain range each point falls within.

    Points inside overlapping polygons take the first match; points outside
    every polygon get NaN.

    Returns
    -------
    GeoDataFrame
        Copy of `points` with a mountain_range column
    """
    result = points.copy()
    range_col = COLS['mountain_range']

    if len(result) == 0 or len(ranges) == 0:
        result[range_col] = np.nan
        return result

    if ranges.crs is not None and result.crs is not None and ranges.crs != result.crs:
        ranges = ranges.to_crs(result.crs)

    left = gpd.GeoDataFrame(
        {'_row': np.arange(len(result))}, geometry=result.geometry.values, crs=result.crs
    )
    joined = gpd.sjoin(
        left,
        ranges[[name_col, 'geometry']],
        how='left',
        predicate='within'
    )
    joined = joined.drop_duplicates(subset='_row', keep='first').sort_values('_row')

    result[range_col] = joined[name_col].to_numpy()
    return result


# ============================================================================
# DERIVED ANALYSIS TABLE
# ============================================================================

def attach_terrain(df, elevation_path=None, aspect_path=None, ranges=None,
                   landcover_path=None, verbose=True):
    """
    Build the derived analysis table.

    Parameters
    ----------
    df : DataFrame
        Observation records with latitude/longitude
    elevation_path, aspect_path : str, optional
        Rasters (default PATHS); the aspect raster is built if missing
    ranges : GeoDataFrame, optional
        Mountain ranges from load_mountain_ranges(); skipped when None
    landcover_path : str, optional
        Categorical land-cover raster (default PATHS['landcover'])

    Returns
    -------
    DataFrame
        Input columns plus elevation, aspect, northness, eastness,
        mountain_range and (when configured) land-cover columns
    """
    elevation_path = elevation_path or get_path('elevation')
    aspect_path = aspect_path or get_path('aspect')
    if landcover_path is None:
        landcover_path = PATHS.get('landcover')

    if verbose:
        print("\n" + "-" * 60)
        print("ATTACHING TERRAIN ATTRIBUTES")
        print("-" * 60)

    points = observations_to_gdf(df)

    points[COLS['elevation']] = extract_raster_values(points, elevation_path)

    aspect_path = build_aspect_raster(elevation_path, aspect_path, verbose=verbose)
    aspect = extract_raster_values(points, aspect_path)
    points[COLS['aspect']] = aspect
    points['northness'] = np.cos(np.radians(aspect))
    points['eastness'] = np.sin(np.radians(aspect))

    if landcover_path:
        codes = extract_raster_values(points, landcover_path)
        labels = classify_landcover(codes).to_numpy()
        points['landcover'] = labels
        dummies = pd.get_dummies(points['landcover'], prefix='lc', dtype=int)
        for col in dummies.columns:
            points[col] = dummies[col].to_numpy()

    if ranges is not None:
        points = assign_mountain_range(points, ranges)
    else:
        points[COLS['mountain_range']] = np.nan

    if verbose:
        n_elev = int(points[COLS['elevation']].notna().sum())
        n_range = int(points[COLS['mountain_range']].notna().sum())
        print(f"  Records: {len(points):,}")
        print(f"  With elevation: {n_elev:,}")
        print(f"  Within a mountain range: {n_range:,}")

    return pd.DataFrame(points.drop(columns='geometry'))
