"""Scenario tests for the PCA and direct clustering entry points."""

import numpy as np
import pytest

from pathcluster.analysis import evaluation
from pathcluster.analysis.pipeline import (
    TrajectoryClustering,
    as_coordinate_matrix,
    run_from_config,
)
from pathcluster.compute.parallel import ParallelExecutor
from pathcluster.core.models import (
    ClusteringConfig,
    ConfigurationError,
    InitializationStrategy,
    InvalidDataError,
    MetricOption,
    PostProcessing,
)
from pathcluster.data.distance_cache import DistanceMatrixCache, dataset_key
from pathcluster.io.summary_writer import SummaryWriter


TWO_GROUPS = np.array([
    [0.0, 0.0], [0.0, 1.0], [1.0, 0.0],
    [10.0, 10.0], [10.0, 11.0], [11.0, 10.0],
])
GROUP_A = {0, 1, 2}
GROUP_B = {3, 4, 5}


def _groups(labels):
    return {frozenset(np.flatnonzero(labels == c).tolist()) for c in np.unique(labels)}


def _streamlines(n_per_group=6, n_points=10, seed=0):
    """Three bundles of noisy 3-D polylines, flattened to rows."""
    rng = np.random.default_rng(seed)
    t = np.linspace(0.0, 1.0, n_points)
    rows = []
    for offset in (0.0, 20.0, 40.0):
        base = np.column_stack([t * 10.0, np.full_like(t, offset), np.sin(t) * 3.0])
        for _ in range(n_per_group):
            rows.append((base + rng.normal(scale=0.2, size=base.shape)).ravel())
    return np.array(rows)


# ---------------------------------------------------------------------------
# Two well-separated groups of three
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("strategy", [InitializationStrategy.FROM_SAMPLES,
                                      InitializationStrategy.FAR_SAMPLES])
@pytest.mark.parametrize("seed", range(5))
def test_direct_two_groups(strategy, seed):
    config = ClusteringConfig(n_clusters=2, initialization=strategy, seed=seed, num_workers=2)
    result = TrajectoryClustering(config).perform_direct_kmeans(TWO_GROUPS)

    assert result.group_count == 2
    assert _groups(result.labels) == {frozenset(GROUP_A), frozenset(GROUP_B)}
    assert result.entropy == pytest.approx(1.0)
    assert result.sizes.tolist() == [3] * 6


@pytest.mark.parametrize("post", list(PostProcessing))
@pytest.mark.parametrize("seed", range(3))
def test_pca_two_groups(post, seed):
    config = ClusteringConfig(n_clusters=2, post_processing=post, seed=seed)
    result = TrajectoryClustering(config).perform_pca_clustering(TWO_GROUPS)

    assert _groups(result.labels) == {frozenset(GROUP_A), frozenset(GROUP_B)}
    assert result.entropy == pytest.approx(1.0)
    for line in result.mean_lines:
        members = np.flatnonzero(result.labels == line.cluster_id)
        np.testing.assert_allclose(line.coordinates, TWO_GROUPS[members].mean(axis=0),
                                   atol=1e-9)


def test_random_position_two_groups():
    """Random centers may leave a cluster empty, so only some seeds split the groups."""
    exact = 0
    for seed in range(20):
        config = ClusteringConfig(n_clusters=2, seed=seed,
                                  initialization=InitializationStrategy.RANDOM_POSITION)
        result = TrajectoryClustering(config).perform_direct_kmeans(TWO_GROUPS)
        assert result.group_count in (1, 2)
        assert set(result.labels.tolist()) == set(range(result.group_count))
        if result.group_count == 1:
            assert result.entropy is None
        elif _groups(result.labels) == {frozenset(GROUP_A), frozenset(GROUP_B)}:
            exact += 1
    assert exact > 0


# ---------------------------------------------------------------------------
# Outputs and metadata
# ---------------------------------------------------------------------------

def test_pca_kmeans_on_streamlines():
    data = _streamlines()
    config = ClusteringConfig(n_clusters=3, seed=0)
    result = TrajectoryClustering(config).perform_pca_clustering(data)

    assert result.labels.shape == (18,)
    assert result.centers.shape == (3, data.shape[1])
    assert result.reduced.shape[0] == 18
    assert result.n_components == result.reduced.shape[1]
    assert result.metadata["mode"] == "pca"
    assert result.evaluation.silhouette > 0.5
    assert len(result.closest) == len(result.furthest) == 3
    for line in result.closest:
        assert result.labels[line.row_index] == line.cluster_id


def test_pca_ahc_on_streamlines_records_linkage():
    data = _streamlines()
    config = ClusteringConfig(n_clusters=3, post_processing=PostProcessing.AHC_AVERAGE)
    result = TrajectoryClustering(config).perform_pca_clustering(data)

    assert result.group_count == 3
    assert result.n_iter == 15
    assert result.metadata["linkage"].shape == (15, 4)
    assert sorted(np.bincount(result.labels).tolist()) == [6, 6, 6]


def test_single_cluster_skips_entropy_and_evaluation():
    config = ClusteringConfig(n_clusters=1)
    result = TrajectoryClustering(config).perform_direct_kmeans(TWO_GROUPS)

    assert result.group_count == 1
    assert result.entropy is None
    assert result.evaluation.silhouette is None
    assert result.labels.tolist() == [0] * 6

    config = ClusteringConfig(n_clusters=1, post_processing=PostProcessing.AHC_AVERAGE)
    result = TrajectoryClustering(config).perform_pca_clustering(TWO_GROUPS)
    assert result.entropy is None


def test_n_clusters_override():
    pipeline = TrajectoryClustering(ClusteringConfig(n_clusters=8, seed=0))
    result = pipeline.perform_direct_kmeans(_streamlines(), n_clusters=3)
    assert result.metadata["n_clusters_requested"] == 3
    assert result.group_count <= 3


@pytest.mark.parametrize("metric", [MetricOption.MANHATTAN, MetricOption.MEAN_POINTWISE,
                                    MetricOption.CHEBYSHEV])
def test_direct_metrics(metric):
    config = ClusteringConfig(n_clusters=3, seed=2)
    result = TrajectoryClustering(config).perform_direct_kmeans(_streamlines(), metric=metric)

    assert result.metadata["metric"] == metric.name
    assert _groups(result.labels) == {frozenset(range(0, 6)), frozenset(range(6, 12)),
                                      frozenset(range(12, 18))}
    assert result.evaluation.validity is not None


# ---------------------------------------------------------------------------
# Cache and reporting
# ---------------------------------------------------------------------------

def test_direct_run_uses_distance_cache(tmp_path):
    data = _streamlines()
    config = ClusteringConfig(n_clusters=3, seed=0, metric=MetricOption.MANHATTAN,
                              cache_dir=str(tmp_path))
    first = TrajectoryClustering(config).perform_direct_kmeans(data)

    key = dataset_key(as_coordinate_matrix(data), MetricOption.MANHATTAN)
    assert DistanceMatrixCache(tmp_path).exists(key)

    second = TrajectoryClustering(config).perform_direct_kmeans(data)
    assert second.evaluation.silhouette == pytest.approx(first.evaluation.silhouette)


@pytest.mark.parametrize("metric", [MetricOption.EUCLIDEAN, MetricOption.MANHATTAN,
                                    MetricOption.MEAN_POINTWISE])
def test_pbf_dataset_skips_cache(tmp_path, monkeypatch, metric):
    data = _streamlines()
    plain = TrajectoryClustering(
        ClusteringConfig(n_clusters=3, seed=0, metric=metric)).perform_direct_kmeans(data)

    def _no_full_matrix(*args, **kwargs):
        raise AssertionError("full distance matrix built for a PBF dataset")

    monkeypatch.setattr(ParallelExecutor, "pairwise_distance_matrix", _no_full_matrix)
    monkeypatch.setattr(evaluation, "pdist", _no_full_matrix)
    config = ClusteringConfig(n_clusters=3, seed=0, metric=metric,
                              cache_dir=str(tmp_path), is_pbf=True)
    result = TrajectoryClustering(config).perform_direct_kmeans(data)

    assert list(tmp_path.iterdir()) == []
    np.testing.assert_array_equal(result.labels, plain.labels)
    assert result.evaluation.silhouette == pytest.approx(plain.evaluation.silhouette)
    assert result.evaluation.validity == pytest.approx(plain.evaluation.validity)


def test_summary_written_with_norm_label(tmp_path):
    writer = SummaryWriter(tmp_path / "README")
    config = ClusteringConfig(n_clusters=2, seed=0)
    pipeline = TrajectoryClustering(config, summary_writer=writer)
    pipeline.perform_direct_kmeans(TWO_GROUPS, metric=MetricOption.MANHATTAN)
    pipeline.perform_pca_clustering(TWO_GROUPS)

    text = (tmp_path / "README").read_text()
    assert "For norm 1" in text
    assert text.count("Balanced entropy: 1.000000") == 2


def test_run_from_config_leaves_config_untouched():
    config = ClusteringConfig(n_clusters=2, initialization=2, seed=0)
    result = run_from_config(config, TWO_GROUPS, direct=True)
    assert result.group_count == 2
    assert config.initialization == 2


# ---------------------------------------------------------------------------
# Configuration and data errors
# ---------------------------------------------------------------------------

def test_too_many_clusters_fails_before_work():
    pipeline = TrajectoryClustering(ClusteringConfig(n_clusters=7))
    with pytest.raises(ConfigurationError):
        pipeline.perform_direct_kmeans(TWO_GROUPS)
    with pytest.raises(ConfigurationError):
        pipeline.perform_pca_clustering(TWO_GROUPS)


@pytest.mark.parametrize("field, value", [("initialization", 4), ("post_processing", 0),
                                          ("metric", 9), ("n_clusters", 0),
                                          ("n_clusters", 2.5), ("n_clusters", True),
                                          ("num_workers", 1.5), ("max_iterations", 0.5),
                                          ("seed", -1), ("seed", 3.7)])
def test_invalid_config_rejected(field, value):
    with pytest.raises(ConfigurationError):
        TrajectoryClustering(ClusteringConfig(**{field: value}))


def test_integral_floats_normalised():
    config = ClusteringConfig(n_clusters=3.0, seed=0.0).validate()
    assert config.n_clusters == 3 and isinstance(config.n_clusters, int)
    assert config.seed == 0 and isinstance(config.seed, int)


def test_unknown_metric_argument():
    with pytest.raises(ConfigurationError):
        TrajectoryClustering().perform_direct_kmeans(TWO_GROUPS, metric=17)


def test_constant_data_has_no_components():
    with pytest.raises(ConfigurationError):
        TrajectoryClustering(ClusteringConfig(n_clusters=2)).perform_pca_clustering(
            np.ones((5, 4)))


@pytest.mark.parametrize("bad", [[[0.0, np.nan]], np.zeros((0, 2)), [1.0, 2.0]])
def test_invalid_data(bad):
    with pytest.raises(InvalidDataError):
        as_coordinate_matrix(bad)


def test_coordinate_matrix_is_read_only():
    arr = as_coordinate_matrix(TWO_GROUPS)
    assert not arr.flags.writeable
    assert arr.dtype == np.float64
