"""
Visualization Module for Elevational Range Analysis
=====================================================

Manuscript figures, all saved as fixed-size PDFs:
- Encounter rate and checklist effort along the elevation gradient
- Detection elevations per mountain range
- Observation map over the DEM with mountain-range outlines
- Aspect of detections (rose diagram)
- Partial dependence on elevation by model sample size
- Simulated before/after distributions and inferred shifts
- Observed range extent vs. sample size
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

# Handle imports for both package and direct execution
try:
    from .config import (
        PLOT_STYLE, PLOT_PARAMS, FIGURE_SIZES, COLORMAPS, DETECTION_COLORS,
        COLS
    )
    from .simulation import get_distribution
except ImportError:
    from config import (
        PLOT_STYLE, PLOT_PARAMS, FIGURE_SIZES, COLORMAPS, DETECTION_COLORS,
        COLS
    )
    from simulation import get_distribution


METRIC_LABELS = {
    'min': 'Minimum',
    'p5': '5th percentile',
    'median': 'Median',
    'mean': 'Mean',
    'p95': '95th percentile',
    'max': 'Maximum',
}


# ============================================================================
# PLOT SETUP
# ============================================================================

def setup_plot_style():
    """Apply publication-quality plot settings."""
    try:
        plt.style.use(PLOT_STYLE)
    except OSError:
        plt.style.use('default')
    plt.rcParams.update(PLOT_PARAMS)


def _save(fig, save_path):
    if save_path:
        fig.savefig(save_path, bbox_inches='tight')
        print(f"Figure saved to: {save_path}")


# ============================================================================
# OBSERVED ELEVATIONAL RANGE
# ============================================================================

def plot_encounter_rate_by_elevation(binned_df, summary=None,
                                     figsize=FIGURE_SIZES['wide'], save_path=None):
    """
    Encounter rate per elevation bin with checklist effort underneath.

    Parameters
    ----------
    binned_df : DataFrame
        Output from binned_encounter_rate()
    summary : dict, optional
        Output from summarize_elevations(); percentile limits and the median
        are drawn as vertical lines when it has data

    Returns
    -------
    tuple
        (fig, axes)
    """
    setup_plot_style()
    fig, axes = plt.subplots(2, 1, figsize=figsize, sharex=True,
                             gridspec_kw={'height_ratios': [2, 1]})

    width = (binned_df['bin_upper'] - binned_df['bin_lower']).to_numpy()

    ax1 = axes[0]
    ax1.bar(binned_df['bin_mid'], binned_df['encounter_rate'], width=width * 0.9,
            color=DETECTION_COLORS[True], alpha=0.8)
    ax1.set_ylabel('Encounter rate')
    top = binned_df['encounter_rate'].max()
    ax1.set_ylim(0, max(0.05, top * 1.15) if pd.notna(top) else 1)

    if summary is not None and summary.get('has_data'):
        for key, style in (('p5', '--'), ('median', '-'), ('p95', '--')):
            for ax in axes:
                ax.axvline(summary[key], color='black', linestyle=style, linewidth=0.8)
        ax1.annotate(f"5-95%: {summary['p5']:,.0f}-{summary['p95']:,.0f} m",
                     xy=(0.98, 0.95), xycoords='axes fraction', ha='right', va='top',
                     fontsize=8, bbox=dict(boxstyle='round', facecolor='white', alpha=0.8))

    ax2 = axes[1]
    ax2.bar(binned_df['bin_mid'], binned_df['n_checklists'], width=width * 0.9,
            color=DETECTION_COLORS[False])
    ax2.set_ylabel('Checklists')
    ax2.set_xlabel('Elevation (m)')

    fig.tight_layout()
    _save(fig, save_path)
    return fig, axes


def plot_elevation_by_mountain_range(df, min_detections=5,
                                     figsize=FIGURE_SIZES['tall'], save_path=None):
    """
    Detection elevations per mountain range (violins ordered by median).

    Ranges with fewer than `min_detections` detections are left out.
    """
    setup_plot_style()
    range_col = COLS['mountain_range']
    elev_col = COLS['elevation']

    detected = df[df[COLS['detected']].astype(bool) & df[range_col].notna()]
    counts = detected[range_col].value_counts()
    keep = counts[counts >= min_detections].index
    detected = detected[detected[range_col].isin(keep)]

    fig, ax = plt.subplots(figsize=figsize)
    if len(detected) == 0:
        ax.text(0.5, 0.5, 'no data', ha='center', va='center', transform=ax.transAxes)
        _save(fig, save_path)
        return fig, ax

    order = detected.groupby(range_col)[elev_col].median().sort_values().index
    sns.violinplot(data=detected, x=elev_col, y=range_col, order=order,
                   color='lightsteelblue', inner='quartile', cut=0, ax=ax)
    ax.set_xlabel('Detection elevation (m)')
    ax.set_ylabel('')

    fig.tight_layout()
    _save(fig, save_path)
    return fig, ax


def plot_observation_map(df, dem=None, ranges=None,
                         figsize=FIGURE_SIZES['panel'], save_path=None):
    """
    Checklists over the DEM, detections highlighted.

    Parameters
    ----------
    df : DataFrame
        Observations with latitude / longitude and detection flag
    dem : tuple, optional
        (data, transform, crs) from terrain.read_band(); must be geographic
    ranges : GeoDataFrame, optional
        Mountain-range polygons drawn as outlines
    """
    setup_plot_style()
    fig, ax = plt.subplots(figsize=figsize)

    if dem is not None:
        data, transform, _ = dem
        extent = (transform.c, transform.c + transform.a * data.shape[1],
                  transform.f + transform.e * data.shape[0], transform.f)
        image = ax.imshow(data, extent=extent, cmap=COLORMAPS['elevation'], origin='upper')
        fig.colorbar(image, ax=ax, shrink=0.7, label='Elevation (m)')

    if ranges is not None and len(ranges):
        ranges.to_crs('EPSG:4326').boundary.plot(ax=ax, color='black', linewidth=0.5)

    detected = df[COLS['detected']].astype(bool)
    for flag, size in ((False, 2), (True, 6)):
        subset = df[detected == flag]
        ax.scatter(subset[COLS['lon']], subset[COLS['lat']], s=size,
                   color=DETECTION_COLORS[flag], alpha=0.7,
                   label='Detected' if flag else 'Not detected')

    ax.set_xlabel('Longitude')
    ax.set_ylabel('Latitude')
    ax.set_aspect('equal')
    ax.legend(loc='lower left', markerscale=2)

    fig.tight_layout()
    _save(fig, save_path)
    return fig, ax


def plot_aspect_rose(df, n_bins=16, figsize=FIGURE_SIZES['single'], save_path=None):
    """Polar histogram of slope aspect for detections vs all checklists."""
    setup_plot_style()
    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(projection='polar')
    ax.set_theta_zero_location('N')
    ax.set_theta_direction(-1)

    edges = np.linspace(0, 2 * np.pi, n_bins + 1)
    width = edges[1] - edges[0]

    aspect = np.radians(df[COLS['aspect']].astype(float))
    detected = df[COLS['detected']].astype(bool)

    for flag, alpha in ((False, 0.5), (True, 0.8)):
        values = aspect[(detected == flag) & aspect.notna()]
        counts, _ = np.histogram(values, bins=edges)
        share = counts / counts.sum() if counts.sum() else counts
        ax.bar(edges[:-1], share, width=width, align='edge', alpha=alpha,
               color=DETECTION_COLORS[flag], edgecolor='white',
               label='Detected' if flag else 'All other checklists')

    ax.legend(loc='upper right', bbox_to_anchor=(1.3, 1.1), fontsize=7)
    _save(fig, save_path)
    return fig, ax


# ============================================================================
# MODEL SENSITIVITY
# ============================================================================

def plot_partial_dependence_by_sample_size(pd_df, figsize=FIGURE_SIZES['panel'],
                                           save_path=None):
    """
    One panel per sample size: replicate curves plus their mean.

    Parameters
    ----------
    pd_df : DataFrame
        Output from sample_size_sensitivity()
    """
    setup_plot_style()
    sizes = sorted(pd_df['sample_size'].unique())
    n_cols = min(3, max(1, len(sizes)))
    n_rows = int(np.ceil(len(sizes) / n_cols)) if sizes else 1

    fig, axes = plt.subplots(n_rows, n_cols, figsize=figsize,
                             sharex=True, sharey=True, squeeze=False)
    colors = plt.get_cmap(COLORMAPS['sample_size'])(np.linspace(0, 0.85, max(1, len(sizes))))

    for ax, size, color in zip(axes.flat, sizes, colors):
        group = pd_df[pd_df['sample_size'] == size]
        for _, curve in group.groupby('replicate'):
            ax.plot(curve['elevation'], curve['probability'], color=color,
                    alpha=0.3, linewidth=0.8)
        mean_curve = group.groupby('elevation')['probability'].mean()
        ax.plot(mean_curve.index, mean_curve.values, color='black', linewidth=1.5)
        ax.set_title(f'n = {size:,}')

    for ax in axes.flat[len(sizes):]:
        ax.set_visible(False)
    for ax in axes[-1, :]:
        ax.set_xlabel('Elevation (m)')
    for ax in axes[:, 0]:
        ax.set_ylabel('P(detection)')

    fig.tight_layout()
    _save(fig, save_path)
    return fig, axes


# ============================================================================
# SIMULATIONS
# ============================================================================

def plot_simulated_distributions(scenario_results, figsize=FIGURE_SIZES['wide'],
                                 save_path=None):
    """
    Before/after densities for each scenario with percentile limits marked.

    Parameters
    ----------
    scenario_results : dict
        Output from run_scenarios()
    """
    setup_plot_style()
    names = list(scenario_results)
    fig, axes = plt.subplots(1, len(names), figsize=figsize, sharey=True, squeeze=False)

    for ax, name in zip(axes[0], names):
        result = scenario_results[name]
        for key, color in (('before', 'grey'), ('after', DETECTION_COLORS[True])):
            params = result[key]
            dist = get_distribution(params['loc'], params['scale'], params.get('skew', 0))
            x = np.linspace(dist.ppf(0.001), dist.ppf(0.999), 400)
            ax.plot(x, dist.pdf(x), color=color, label=key.capitalize())
            ax.fill_between(x, dist.pdf(x), color=color, alpha=0.15)
            for q in (0.05, 0.95):
                ax.axvline(dist.ppf(q), color=color, linestyle='--', linewidth=0.8)
        ax.set_title(name.replace('_', ' ').capitalize())
        ax.set_xlabel('Elevation (m)')
        ax.set_yticks([])

    axes[0, 0].set_ylabel('Density')
    axes[0, 0].legend(fontsize=7)

    fig.tight_layout()
    _save(fig, save_path)
    return fig, axes


def plot_inferred_shifts(scenario_results, sample_size=None,
                         figsize=FIGURE_SIZES['wide'], save_path=None):
    """
    Distribution of inferred shifts per range metric, true shift marked.

    Parameters
    ----------
    sample_size : int, optional
        Sample size to show (default: the smallest simulated)
    """
    setup_plot_style()
    names = list(scenario_results)
    fig, axes = plt.subplots(1, len(names), figsize=figsize, sharey=True, squeeze=False)
    metrics = list(METRIC_LABELS)

    for ax, name in zip(axes[0], names):
        shifts = scenario_results[name]['shifts']
        n = sample_size if sample_size is not None else shifts['sample_size'].min()
        subset = shifts[shifts['sample_size'] == n]

        sns.boxplot(data=subset, x='shift', y='metric', order=metrics,
                    color='lightsteelblue', fliersize=1, ax=ax)
        ax.axvline(0, color='grey', linewidth=0.8)

        truth = scenario_results[name]['true_shifts']
        for i, metric in enumerate(metrics):
            if metric in truth:
                ax.plot(truth[metric], i, marker='D', color=DETECTION_COLORS[True],
                        markersize=4, zorder=5)

        ax.set_title(f"{name.replace('_', ' ').capitalize()} (n = {n})")
        ax.set_xlabel('Inferred shift (m)')
        ax.set_ylabel('')

    axes[0, 0].set_yticks(range(len(metrics)))
    axes[0, 0].set_yticklabels([METRIC_LABELS[m] for m in metrics])

    fig.tight_layout()
    _save(fig, save_path)
    return fig, axes


def plot_sample_size_extent(extent_df, figsize=FIGURE_SIZES['single'], save_path=None):
    """Absolute vs percentile range breadth as sample size grows."""
    setup_plot_style()
    fig, ax = plt.subplots(figsize=figsize)

    summary = extent_df.groupby('sample_size')[['absolute_extent', 'percentile_extent']]
    means = summary.mean()
    lower = summary.quantile(0.025)
    upper = summary.quantile(0.975)

    styles = (('absolute_extent', 'Max - min', DETECTION_COLORS[True]),
              ('percentile_extent', '95th - 5th percentile', 'black'))
    for col, label, color in styles:
        ax.plot(means.index, means[col], 'o-', color=color, label=label, markersize=3)
        ax.fill_between(means.index, lower[col], upper[col], color=color, alpha=0.15)

    ax.set_xscale('log')
    ax.set_xlabel('Detections (n)')
    ax.set_ylabel('Range breadth (m)')
    ax.legend(fontsize=7)

    fig.tight_layout()
    _save(fig, save_path)
    return fig, ax
