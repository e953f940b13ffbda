"""
Random-Forest Encounter Model: Sample-Size Sensitivity
=======================================================

Shows how the inferred relationship between encounter probability and
elevation depends on how many checklists the model sees.

For each sample size a random forest is fit to repeated random subsets of
the analysis table and the partial dependence of predicted encounter
probability on elevation is evaluated on a common elevation grid. Small
samples give noisy, often shifted response curves; the curves converge as
the sample grows.

The forest itself is scikit-learn's RandomForestClassifier, used as a
black-box predictor.
"""

import warnings
import numpy as np
import pandas as pd
from typing import List, Optional, Sequence, Tuple
from sklearn.ensemble import RandomForestClassifier
from sklearn.inspection import partial_dependence

try:
    from .config import COLS, MODEL_PARAMS, SAMPLE_SIZES, N_REPLICATES
    from .subsampling import as_generator
except ImportError:
    from config import COLS, MODEL_PARAMS, SAMPLE_SIZES, N_REPLICATES
    from subsampling import as_generator


def _seed_from(rng: np.random.Generator) -> int:
    """Draw an integer seed for scikit-learn from a Generator."""
    return int(rng.integers(0, 2 ** 31 - 1))


# ============================================================================
# DATA PREPARATION
# ============================================================================

def prepare_model_data(
    df: pd.DataFrame,
    covariates: Optional[List[str]] = None,
    detection_col: Optional[str] = None,
    verbose: bool = True
) -> Tuple[pd.DataFrame, np.ndarray]:
    """
    Build the design matrix and response.

    Covariates listed in MODEL_PARAMS that are absent from `df` are skipped
    (with a warning), except elevation, which is required. Land-cover
    one-hot columns (prefix 'lc_') are added when present.

    Returns
    -------
    X : DataFrame
        Covariates, rows with missing values dropped
    y : ndarray of int
        1 = detected, 0 = not detected
    """
    detection_col = detection_col or COLS['detected']
    if covariates is None:
        covariates = list(MODEL_PARAMS['covariates'])
        covariates += [c for c in df.columns if c.startswith('lc_') and c not in covariates]

    elevation_col = COLS['elevation']
    if elevation_col not in df.columns:
        raise ValueError(f"'{elevation_col}' is required for the encounter model")
    if detection_col not in df.columns:
        raise ValueError(f"Column '{detection_col}' not found")

    present = [c for c in covariates if c in df.columns]
    skipped = [c for c in covariates if c not in df.columns]
    if skipped:
        warnings.warn(f"Covariates not in data, skipped: {skipped}")
    if elevation_col not in present:
        present = [elevation_col] + present

    data = df[present + [detection_col]].dropna()
    X = data[present].astype(float)
    y = data[detection_col].astype(bool).astype(int).to_numpy()

    if verbose:
        print(f"Model data: {len(X):,} rows, {len(present)} covariates")
        print(f"  Covariates: {present}")
        print(f"  Detections: {y.sum():,} ({100 * y.mean() if len(y) else 0:.1f}%)")

    return X, y


# ============================================================================
# MODEL FIT AND PARTIAL DEPENDENCE
# ============================================================================

def fit_encounter_model(
    X: pd.DataFrame,
    y: np.ndarray,
    rng=None,
    **params
) -> RandomForestClassifier:
    """
    Fit a random-forest classifier of detection.

    Parameters
    ----------
    X : DataFrame
        Covariates
    y : array-like
        Detection (0/1)
    rng : numpy.random.Generator or int, optional
        Random source for the forest
    **params
        Overrides for n_estimators, min_samples_leaf, max_features

    Returns
    -------
    RandomForestClassifier
        Fitted model with oob_score_
    """
    if len(np.unique(y)) < 2:
        raise ValueError("Both detections and non-detections are needed to fit the model")

    rng = as_generator(rng)
    settings = {
        'n_estimators': MODEL_PARAMS['n_estimators'],
        'min_samples_leaf': MODEL_PARAMS['min_samples_leaf'],
        'max_features': MODEL_PARAMS['max_features'],
    }
    settings.update(params)

    model = RandomForestClassifier(
        oob_score=True,
        random_state=_seed_from(rng),
        **settings
    )
    with warnings.catch_warnings():
        # Few trees on tiny samples leave some rows without OOB predictions
        warnings.simplefilter('ignore', UserWarning)
        model.fit(X, y)
    return model


def elevation_grid(elevations, n_points: int = MODEL_PARAMS['grid_resolution'],
                   percentiles: Tuple[float, float] = (2.5, 97.5)) -> np.ndarray:
    """Common evaluation grid spanning the central range of `elevations`."""
    lower, upper = np.nanpercentile(np.asarray(elevations, dtype=float), percentiles)
    return np.linspace(lower, upper, n_points)


def elevation_partial_dependence(
    model: RandomForestClassifier,
    X: pd.DataFrame,
    grid: np.ndarray,
    feature: Optional[str] = None
) -> np.ndarray:
    """
    Partial dependence of encounter probability on elevation.

    scikit-learn evaluates partial dependence on its own grid; the curve is
    interpolated onto `grid` so fits from different samples can be compared.
    Outside the sample's elevation span the curve is held flat.

    Returns
    -------
    ndarray
        Predicted probability of detection at each grid value
    """
    feature = feature or COLS['elevation']
    feature_idx = list(X.columns).index(feature)

    result = partial_dependence(
        model, X, features=[feature_idx],
        kind='average',
        response_method='predict_proba',
        grid_resolution=len(grid),
    )
    values = result['grid_values'][0] if 'grid_values' in result else result['values'][0]
    averages = result['average'][0]

    return np.interp(grid, values, averages)


# ============================================================================
# SAMPLE-SIZE SENSITIVITY
# ============================================================================

def sample_size_sensitivity(
    df: pd.DataFrame,
    sample_sizes: Sequence[int] = SAMPLE_SIZES,
    n_replicates: int = N_REPLICATES,
    rng=None,
    covariates: Optional[List[str]] = None,
    grid: Optional[np.ndarray] = None,
    verbose: bool = True,
    **model_params
) -> pd.DataFrame:
    """
    Partial-dependence curves for repeated fits at several sample sizes.

    Parameters
    ----------
    df : DataFrame
        Derived analysis table
    sample_sizes : sequence of int
        Checklists per fit; sizes above the available rows are capped
    n_replicates : int
        Fits per sample size
    rng : numpy.random.Generator or int, optional
        Random source for both subsampling and the forests
    grid : ndarray, optional
        Elevations at which to evaluate (default elevation_grid of all data)

    Returns
    -------
    DataFrame
        Long format: sample_size, replicate, elevation, probability,
        oob_score
    """
    rng = as_generator(rng)
    X_all, y_all = prepare_model_data(df, covariates, verbose=verbose)

    if grid is None:
        grid = elevation_grid(X_all[COLS['elevation']])

    if verbose:
        print("\n" + "=" * 60)
        print("SAMPLE-SIZE SENSITIVITY OF ELEVATION RESPONSE")
        print("=" * 60)
        print(f"  Sample sizes: {list(sample_sizes)}")
        print(f"  Replicates: {n_replicates}")

    frames = []
    n_skipped = 0
    for size in sample_sizes:
        n = min(int(size), len(X_all))
        if n < int(size):
            warnings.warn(f"Sample size {size} exceeds available rows; using {n}")

        for replicate in range(n_replicates):
            idx = rng.choice(len(X_all), size=n, replace=False)
            X = X_all.iloc[idx]
            y = y_all[idx]

            if len(np.unique(y)) < 2:
                n_skipped += 1
                continue

            model = fit_encounter_model(X, y, rng, **model_params)
            curve = elevation_partial_dependence(model, X, grid)

            frames.append(pd.DataFrame({
                'sample_size': int(size),
                'replicate': replicate,
                'elevation': grid,
                'probability': curve,
                'oob_score': model.oob_score_,
            }))

        if verbose:
            print(f"  n = {size:>6,}: done")

    if n_skipped:
        warnings.warn(
            f"{n_skipped} replicate(s) skipped: subsample lacked detections or non-detections"
        )

    if not frames:
        return pd.DataFrame(columns=['sample_size', 'replicate', 'elevation',
                                     'probability', 'oob_score'])
    return pd.concat(frames, ignore_index=True)


def summarize_sensitivity(pd_df: pd.DataFrame) -> pd.DataFrame:
    """
    Per sample size: spread of the curves and where they peak.

    Returns
    -------
    DataFrame
        Columns: sample_size, n_fits, mean_curve_sd, peak_elevation_mean,
        peak_elevation_sd, oob_score_mean
    """
    rows = []
    for size, group in pd_df.groupby('sample_size'):
        wide = group.pivot(index='replicate', columns='elevation', values='probability')
        peaks = wide.idxmax(axis=1).astype(float)
        oob = group.groupby('replicate')['oob_score'].first()
        rows.append({
            'sample_size': size,
            'n_fits': len(wide),
            'mean_curve_sd': float(wide.std(axis=0, ddof=1).mean()) if len(wide) > 1 else np.nan,
            'peak_elevation_mean': float(peaks.mean()),
            'peak_elevation_sd': float(peaks.std(ddof=1)) if len(peaks) > 1 else np.nan,
            'oob_score_mean': float(oob.mean()),
        })
    return pd.DataFrame(rows)
