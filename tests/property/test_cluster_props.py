"""Property-based tests for k-means, AHC and result post-processing."""

from __future__ import annotations

import numpy as np
from hypothesis import assume, given, settings, strategies as st

from pathcluster.analysis.pipeline import TrajectoryClustering
from pathcluster.analysis.postprocess import ClusterPostProcessor
from pathcluster.compute.parallel import ParallelExecutor
from pathcluster.core.ahc import AHCEngine, replay
from pathcluster.core.initialization import Initializer
from pathcluster.core.kmeans import KMeansEngine
from pathcluster.core.models import ClusteringConfig, InitializationStrategy, MetricOption
from pathcluster.core.pca import PCAReducer
from pathcluster.utils.dissimilarity import StandardDissimilarity


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

coordinate = st.floats(min_value=-100.0, max_value=100.0,
                       allow_nan=False, allow_infinity=False)


@st.composite
def coordinate_matrix(draw, min_rows=2, max_rows=12, min_cols=1, max_cols=6):
    """A small ``(N, M)`` matrix of bounded finite coordinates."""
    n = draw(st.integers(min_value=min_rows, max_value=max_rows))
    m = draw(st.integers(min_value=min_cols, max_value=max_cols))
    values = draw(st.lists(coordinate, min_size=n * m, max_size=n * m))
    return np.array(values, dtype=np.float64).reshape(n, m)


@st.composite
def matrix_and_k(draw, **kwargs):
    data = draw(coordinate_matrix(**kwargs))
    k = draw(st.integers(min_value=1, max_value=data.shape[0]))
    return data, k


strategy_st = st.sampled_from(list(InitializationStrategy))


# ---------------------------------------------------------------------------
# k-means
# ---------------------------------------------------------------------------

@given(case=matrix_and_k(), strategy=strategy_st, seed=st.integers(0, 2**16))
@settings(max_examples=100, deadline=None)
def test_kmeans_assignment_and_iteration_bounds(case, strategy, seed):
    """Every row gets exactly one cluster in [0, K) and at most 20 iterations run."""
    data, k = case
    engine = KMeansEngine(k, Initializer(strategy, seed=seed), executor=ParallelExecutor(3))
    state = engine.fit(data)

    assert state.assignment.shape == (data.shape[0],)
    assert np.all((state.assignment >= 0) & (state.assignment < k))
    assert state.counts.sum() == data.shape[0]
    assert sorted(r for rows in state.members for r in rows) == list(range(data.shape[0]))
    for cluster, rows in enumerate(state.members):
        assert rows == sorted(rows)
        assert np.all(state.assignment[rows] == cluster)
    assert 1 <= state.n_iter <= 20


@given(case=matrix_and_k(), seed=st.integers(0, 2**16))
@settings(max_examples=50, deadline=None)
def test_kmeans_centers_are_member_means(case, seed):
    """Non-empty clusters end centred on the mean of their members."""
    data, k = case
    state = KMeansEngine(k, Initializer(InitializationStrategy.FROM_SAMPLES, seed=seed)).fit(data)
    # The last update ran on the final assignment
    for cluster, rows in enumerate(state.members):
        if rows:
            np.testing.assert_allclose(state.centers[cluster], data[rows].mean(axis=0),
                                       atol=1e-9)


@given(case=matrix_and_k(), strategy=strategy_st, seed=st.integers(0, 2**16))
@settings(max_examples=50, deadline=None)
def test_same_seed_same_result(case, strategy, seed):
    data, k = case
    config = ClusteringConfig(n_clusters=k, initialization=strategy, seed=seed)
    first = TrajectoryClustering(config).perform_direct_kmeans(data)
    second = TrajectoryClustering(ClusteringConfig(n_clusters=k, initialization=strategy,
                                                   seed=seed)).perform_direct_kmeans(data)
    np.testing.assert_array_equal(first.labels, second.labels)
    np.testing.assert_array_equal(first.centers, second.centers)


# ---------------------------------------------------------------------------
# Renumbering and entropy
# ---------------------------------------------------------------------------

@given(counts=st.lists(st.integers(min_value=0, max_value=50), min_size=1, max_size=15))
@settings(max_examples=100)
def test_renumbering_orders_by_population(counts):
    counts = np.array(counts)
    mapping, group_no = ClusterPostProcessor.renumber(counts)

    assert group_no == int(np.count_nonzero(counts))
    assert np.all(mapping[counts == 0] == -1)
    live = mapping[counts > 0]
    assert sorted(live.tolist()) == list(range(group_no))
    by_id = np.empty(group_no, dtype=np.int64)
    by_id[live] = counts[counts > 0]
    assert np.all(np.diff(by_id) >= 0)
    # Equal populations keep their raw order
    raws = np.flatnonzero(counts > 0)
    for a, b in zip(raws, raws[1:]):
        if counts[a] == counts[b]:
            assert mapping[a] < mapping[b]


@given(counts=st.lists(st.integers(min_value=1, max_value=100), min_size=2, max_size=12))
@settings(max_examples=100)
def test_balanced_entropy_in_unit_interval(counts):
    value = ClusterPostProcessor.balanced_entropy(np.array(counts), sum(counts))
    assert value is not None
    assert -1e-12 <= value <= 1.0 + 1e-12
    if len(set(counts)) == 1:
        assert abs(value - 1.0) < 1e-12


@given(case=matrix_and_k(), seed=st.integers(0, 2**16))
@settings(max_examples=50, deadline=None)
def test_labels_are_dense_and_smallest_first(case, seed):
    data, k = case
    result = TrajectoryClustering(
        ClusteringConfig(n_clusters=k, seed=seed)).perform_direct_kmeans(data)

    assert set(result.labels.tolist()) == set(range(result.group_count))
    populations = np.bincount(result.labels, minlength=result.group_count)
    assert np.all(np.diff(populations) >= 0)
    np.testing.assert_array_equal(result.sizes, populations[result.labels])
    for line in result.closest + result.furthest:
        assert result.labels[line.row_index] == line.cluster_id


# ---------------------------------------------------------------------------
# AHC
# ---------------------------------------------------------------------------

@given(case=matrix_and_k(min_rows=1, max_rows=10))
@settings(max_examples=100, deadline=None)
def test_ahc_partition_invariant(case):
    """Live clusters always partition the rows and each merge removes one."""
    data, k = case
    dist = ParallelExecutor(2).pairwise_distance_matrix(data)
    engine = AHCEngine(k)
    state = engine.initial_state(dist)

    live = len(state.live)
    while live > k:
        engine.merge_step(state, dist)
        assert len(state.live) == live - 1
        assert state.check_partition()
        live -= 1

    assert len(state.merges) == data.shape[0] - k
    clusters = state.clusters()
    assert sum(node.size for node in clusters) == data.shape[0]
    assert [(c.size, c.node_id) for c in clusters] == sorted((c.size, c.node_id)
                                                             for c in clusters)


@given(case=matrix_and_k(min_rows=2, max_rows=10))
@settings(max_examples=50, deadline=None)
def test_ahc_replay_matches_fit(case):
    data, k = case
    dist = ParallelExecutor(2).pairwise_distance_matrix(data)
    full = AHCEngine(1).fit(dist)
    direct = AHCEngine(k).fit(dist)
    assert replay(full.merges, data.shape[0], k) == [c.members for c in direct.clusters()]


# ---------------------------------------------------------------------------
# Distance matrix
# ---------------------------------------------------------------------------

@given(data=coordinate_matrix(min_cols=3, max_cols=3),
       metric=st.sampled_from([MetricOption.EUCLIDEAN, MetricOption.MANHATTAN,
                               MetricOption.CHEBYSHEV, MetricOption.MEAN_POINTWISE]))
@settings(max_examples=100, deadline=None)
def test_distance_matrix_symmetry(data, metric):
    fn = None if metric == MetricOption.EUCLIDEAN else StandardDissimilarity().bind(metric)
    dist = ParallelExecutor(4).pairwise_distance_matrix(data, fn)

    np.testing.assert_allclose(dist, dist.T, atol=1e-10)
    np.testing.assert_allclose(np.diag(dist), 0.0, atol=1e-10)
    assert np.all(dist >= 0.0)

    dup = np.vstack([data, data[:1]])
    dist2 = ParallelExecutor(4).pairwise_distance_matrix(dup, fn)
    assert abs(dist2[0, -1]) < 1e-10


@given(data=coordinate_matrix(min_rows=3))
@settings(max_examples=50, deadline=None)
def test_pca_ahc_mean_lines_are_back_projected_member_means(data):
    assume(np.ptp(data, axis=0).max() > 1e-3)
    config = ClusteringConfig(n_clusters=2, post_processing=2)
    result = TrajectoryClustering(config).perform_pca_clustering(data)

    pca = PCAReducer().fit(data)
    assert len(result.mean_lines) == result.group_count
    for line in result.mean_lines:
        members = np.flatnonzero(result.labels == line.cluster_id)
        expected = pca.back_project(pca.reduced[members].mean(axis=0))
        np.testing.assert_allclose(line.coordinates, expected, atol=1e-6)
