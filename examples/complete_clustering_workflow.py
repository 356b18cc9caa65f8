"""Complete pathcluster workflow with plain-text output.

This example demonstrates:
1. Building (or loading) a trajectory coordinate matrix
2. Configuring the clustering run from a CLUSTER.CFG namelist
3. Running PCA + k-means, PCA + AHC and direct k-means
4. Writing labels, representatives, mean lines and a quality summary
"""

import dataclasses
import logging
from pathlib import Path

import numpy as np

from pathcluster.analysis.pipeline import TrajectoryClustering
from pathcluster.core.models import MetricOption, PostProcessing
from pathcluster.data.config_parser import parse_config, write_cluster_cfg
from pathcluster.io import ResultWriter, SummaryWriter


CLUSTER_CFG = """\
&CLUSTER
 NCLUST = 4,
 INITOPT = 3,
 POSTPROC = 1,
 NORM = 0,
 NTHREADS = 4,
 SEED = 7,
 CACHEDIR = 'output/cache',
 /
"""


def make_streamlines(n_per_bundle=25, n_points=40, seed=0):
    """Four bundles of noisy helical streamlines, one flattened row each."""
    rng = np.random.default_rng(seed)
    t = np.linspace(0.0, 4.0 * np.pi, n_points)
    rows = []
    for radius, pitch in [(1.0, 0.5), (2.0, 0.5), (1.0, 1.5), (3.0, 1.0)]:
        base = np.column_stack([radius * np.cos(t), radius * np.sin(t), pitch * t])
        for _ in range(n_per_bundle):
            noisy = base + rng.normal(scale=0.05, size=base.shape)
            rows.append(noisy.ravel())
    return np.array(rows)


def main():
    """Run complete workflow with output generation."""
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    # ========================================================================
    # 1. Load Trajectories
    # ========================================================================
    print("Building trajectory matrix...")
    data = make_streamlines()
    print(f"✓ Loaded {data.shape[0]} trajectories of {data.shape[1] // 3} points")

    # ========================================================================
    # 2. Configure Clustering
    # ========================================================================
    print("\nConfiguring clustering...")
    config = parse_config(CLUSTER_CFG)
    print("✓ Configuration:")
    print(write_cluster_cfg(config))

    output_dir = Path("output")
    summary = SummaryWriter(output_dir / "README")

    # ========================================================================
    # 3. PCA + k-means
    # ========================================================================
    print("\nRunning PCA + k-means...")
    pipeline = TrajectoryClustering(config, summary_writer=summary)
    kmeans_result = pipeline.perform_pca_clustering(data)
    print(f"✓ {kmeans_result.group_count} groups from {kmeans_result.n_components} "
          f"principal components in {kmeans_result.n_iter} iterations")
    print(f"  Balanced entropy: {kmeans_result.entropy:.4f}")
    print(f"  Silhouette: {kmeans_result.evaluation.silhouette:.4f}")
    ResultWriter(output_dir, prefix="pca_kmeans_").write(kmeans_result)

    # ========================================================================
    # 4. PCA + average-linkage AHC
    # ========================================================================
    print("\nRunning PCA + AHC...")
    ahc_config = dataclasses.replace(config, post_processing=PostProcessing.AHC_AVERAGE)
    ahc_result = TrajectoryClustering(ahc_config, summary_writer=summary).perform_pca_clustering(data)
    print(f"✓ {ahc_result.group_count} groups after {ahc_result.n_iter} merges")
    print(f"  Last merge height: {ahc_result.metadata['linkage'][-1, 2]:.4f}")
    ResultWriter(output_dir, prefix="pca_ahc_").write(ahc_result)

    # ========================================================================
    # 5. Direct k-means per metric
    # ========================================================================
    for metric in (MetricOption.EUCLIDEAN, MetricOption.MANHATTAN,
                   MetricOption.MEAN_POINTWISE):
        print(f"\nRunning direct k-means ({metric.name})...")
        result = pipeline.perform_direct_kmeans(data, metric=metric)
        print(f"✓ {result.group_count} groups, entropy {result.entropy:.4f}, "
              f"validity {result.evaluation.validity:.4f}")
        ResultWriter(output_dir, prefix=f"norm{int(metric)}_").write(result)

    # ========================================================================
    # 6. Summary
    # ========================================================================
    print("\n" + "="*70)
    print("WORKFLOW COMPLETE")
    print("="*70)
    print(f"\nOutput directory: {output_dir.resolve()}")
    for path in sorted(output_dir.glob("*.txt")):
        print(f"  {path.name}")
    print(f"\nQuality summary: {summary.filepath}")


if __name__ == "__main__":
    main()
