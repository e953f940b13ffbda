"""
Range Definition and Sample Size
=================================

This example needs no eBird data. It simulates detection elevations for a
species whose lower range edge contracts while the upper edge barely moves,
and compares the shift each range definition reports.

Key Finding:
  - The minimum and maximum wander with sample size; the 5th/95th
    percentiles settle after a few hundred detections
  - An edge contraction moves the mean and median upslope even though
    the upper limit is almost unchanged

Usage:
    python example_range_definitions.py

Outputs:
    - example_inferred_shifts.pdf
    - example_sample_size_extent.pdf
    - Console table of mean inferred shift per metric and sample size
"""

import matplotlib.pyplot as plt

from elevational_range import (
    run_scenarios,
    sample_size_extent,
    setup_plot_style,
    RANDOM_SEED,
)
from elevational_range.config import SIMULATION_SCENARIOS
from elevational_range.visualization import plot_inferred_shifts, plot_sample_size_extent

print("\n" + "=" * 70)
print("RANGE DEFINITION AND SAMPLE SIZE")
print("=" * 70)

scenario = {'lower_edge_contraction': SIMULATION_SCENARIOS['lower_edge_contraction']}
sample_sizes = [10, 50, 250, 1000]

# Step 1: Simulate
print("\n[STEP 1/3] Simulating before/after surveys...")
results = run_scenarios(scenario, sample_sizes=sample_sizes, n_replicates=100,
                        rng=RANDOM_SEED, verbose=True)
result = results['lower_edge_contraction']

# Step 2: Tabulate
print("\n[STEP 2/3] Mean inferred shift (m)")
print("=" * 70)
table = result['summary'].pivot(index='sample_size', columns='metric', values='mean')
print(table.round(0).to_string())

print("\nTrue shift of each population metric:")
for metric, value in result['true_shifts'].items():
    print(f"  {metric:>6}: {value:+.0f} m")

# Step 3: Figures
print("\n[STEP 3/3] Saving figures...")
setup_plot_style()
fig, _ = plot_inferred_shifts(results, sample_size=50,
                              save_path="example_inferred_shifts.pdf")
plt.close(fig)

extent = sample_size_extent(scenario['lower_edge_contraction']['before'],
                            sample_sizes=sample_sizes, n_replicates=100,
                            rng=RANDOM_SEED)
fig, _ = plot_sample_size_extent(extent, save_path="example_sample_size_extent.pdf")
plt.close(fig)

print("\n" + "=" * 70)
