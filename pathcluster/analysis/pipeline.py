"""Clustering entry points for trajectory coordinate matrices.

Two paths are exposed:

- :meth:`TrajectoryClustering.perform_pca_clustering` reduces the matrix
  with PCA, then runs either k-means or average-linkage AHC in the reduced
  space and maps the centroids back to full coordinates.
- :meth:`TrajectoryClustering.perform_direct_kmeans` runs k-means on the
  raw rows with a selectable dissimilarity metric.

Both validate the configuration before any work starts, evaluate the
result, and report it to an optional summary sink.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Optional

import numpy as np

from pathcluster.analysis.evaluation import SilhouetteEvaluator, ValidityEvaluator
from pathcluster.analysis.postprocess import ClusterPostProcessor
from pathcluster.compute.parallel import ParallelExecutor
from pathcluster.core.ahc import AHCEngine
from pathcluster.core.initialization import Initializer
from pathcluster.core.kmeans import KMeansEngine
from pathcluster.core.models import (
    ClusterEvaluation,
    ClusteringConfig,
    ClusteringResult,
    ConfigurationError,
    InvalidDataError,
    MetricOption,
    PostProcessing,
    resolve_metric,
)
from pathcluster.core.pca import PCAReducer, PCAResult
from pathcluster.data.distance_cache import DistanceMatrixCache
from pathcluster.io.summary_writer import SummaryWriter
from pathcluster.utils.dissimilarity import DissimilarityProvider, StandardDissimilarity

logger = logging.getLogger(__name__)


def as_coordinate_matrix(data) -> np.ndarray:
    """Validate *data* as a finite, non-empty ``(N, M)`` float matrix.

    Float input keeps its precision; anything else becomes float64. The
    returned array is read-only.
    """
    arr = np.array(data, copy=True)
    if arr.ndim != 2 or arr.shape[0] == 0 or arr.shape[1] == 0:
        raise InvalidDataError(f"Expected a non-empty (N, M) matrix, got shape {arr.shape}")
    if not np.issubdtype(arr.dtype, np.floating):
        arr = arr.astype(np.float64)
    if not np.all(np.isfinite(arr)):
        raise InvalidDataError("Coordinate matrix contains NaN or Inf values")
    arr.setflags(write=False)
    return arr


class TrajectoryClustering:
    """Runs PCA-based or direct clustering on trajectory coordinates.

    Parameters
    ----------
    config : ClusteringConfig, optional
        Run configuration; defaults are used when omitted.
    dissimilarity : DissimilarityProvider, optional
        Metric implementation for direct k-means.
    cache : DistanceMatrixCache, optional
        Distance-matrix cache for direct runs. Built from
        ``config.cache_dir`` when not given.
    summary_writer : SummaryWriter, optional
        Receives entropy and evaluation scores after each run.
    executor : ParallelExecutor, optional
        Worker pool; ``config.num_workers`` threads by default.
    """

    def __init__(
        self,
        config: Optional[ClusteringConfig] = None,
        dissimilarity: Optional[DissimilarityProvider] = None,
        cache: Optional[DistanceMatrixCache] = None,
        summary_writer: Optional[SummaryWriter] = None,
        executor: Optional[ParallelExecutor] = None,
    ) -> None:
        self.config = (config or ClusteringConfig()).validate()
        self.dissimilarity = dissimilarity or StandardDissimilarity()
        if cache is None and self.config.cache_dir is not None:
            cache = DistanceMatrixCache(self.config.cache_dir)
        self.cache = cache
        self.summary_writer = summary_writer
        self.executor = executor or ParallelExecutor(self.config.num_workers)

    # -- Setup --------------------------------------------------------------

    def _cluster_count(self, n_clusters: Optional[int], n_rows: int) -> int:
        k = self.config.n_clusters if n_clusters is None else int(n_clusters)
        if k < 1:
            raise ConfigurationError(f"Number of clusters must be >= 1, got {k}")
        if k > n_rows:
            raise ConfigurationError(
                f"Number of clusters {k} exceeds the number of trajectories {n_rows}"
            )
        return k

    def _initializer(self, metric: MetricOption) -> Initializer:
        return Initializer(
            self.config.initialization,
            seed=self.config.seed,
            dissimilarity=self.dissimilarity,
            metric=metric,
        )

    # -- PCA path -----------------------------------------------------------

    def perform_pca_clustering(self, data, n_clusters: Optional[int] = None) -> ClusteringResult:
        """PCA, then k-means or AHC in the reduced space.

        Parameters
        ----------
        data : array_like
            ``(N, M)`` trajectory coordinates.
        n_clusters : int, optional
            Overrides ``config.n_clusters``.

        Raises
        ------
        ConfigurationError
            If the cluster count exceeds N or PCA selects zero components.
        """
        coords = as_coordinate_matrix(data)
        k = self._cluster_count(n_clusters, coords.shape[0])

        pca = PCAReducer(self.config.variance_threshold).fit(coords)
        reduced = pca.reduced

        if self.config.post_processing == PostProcessing.KMEANS:
            result = self._reduced_kmeans(reduced, k, pca)
        else:
            result = self._reduced_ahc(reduced, k, pca)

        result.metadata.update({
            "mode": "pca",
            "post_processing": self.config.post_processing.name,
            "n_clusters_requested": k,
            "explained_ratio": pca.explained_ratio,
        })
        result.evaluation = self._evaluate_coordinates(reduced, result)
        self._report(result, "")
        return result

    def _reduced_kmeans(self, reduced: np.ndarray, k: int, pca: PCAResult) -> ClusteringResult:
        engine = KMeansEngine(
            k,
            self._initializer(MetricOption.EUCLIDEAN),
            distance_fn=None,
            executor=self.executor,
            max_iter=self.config.max_iterations,
        )
        state = engine.fit(reduced)
        return ClusterPostProcessor().finalize(
            reduced, state.centers, state.assignment, state.counts, state.members,
            pca=pca, n_iter=state.n_iter,
        )

    def _reduced_ahc(self, reduced: np.ndarray, k: int, pca: PCAResult) -> ClusteringResult:
        dist = self.executor.pairwise_distance_matrix(reduced)
        state = AHCEngine(k, self.executor).fit(dist)

        # Raw cluster index = position after sorting by (size, id)
        clusters = state.clusters()
        assignment = np.empty(reduced.shape[0], dtype=np.int64)
        members: list[list[int]] = []
        centers = np.zeros((len(clusters), reduced.shape[1]), dtype=np.float64)
        for idx, node in enumerate(clusters):
            rows = list(node.members)
            assignment[rows] = idx
            members.append(rows)
            centers[idx] = reduced[rows].mean(axis=0)
        counts = np.array([len(m) for m in members], dtype=np.int64)

        result = ClusterPostProcessor().finalize(
            reduced, centers, assignment, counts, members,
            pca=pca, n_iter=len(state.merges),
        )
        result.metadata["linkage"] = state.linkage_matrix()
        return result

    # -- Direct path --------------------------------------------------------

    def perform_direct_kmeans(
        self,
        data,
        metric: Optional[MetricOption | int] = None,
        n_clusters: Optional[int] = None,
    ) -> ClusteringResult:
        """k-means on raw coordinates with a selectable metric.

        Parameters
        ----------
        data : array_like
            ``(N, M)`` trajectory coordinates.
        metric : MetricOption or int, optional
            Overrides ``config.metric``.
        n_clusters : int, optional
            Overrides ``config.n_clusters``.
        """
        metric = resolve_metric(self.config.metric if metric is None else metric)
        coords = as_coordinate_matrix(data)
        k = self._cluster_count(n_clusters, coords.shape[0])

        self.dissimilarity.preprocess(coords, metric)
        distance_fn = self.dissimilarity.bind(metric)
        # Built-in Euclidean goes through the vectorised cdist path
        fast_fn = None if (metric == MetricOption.EUCLIDEAN
                           and isinstance(self.dissimilarity, StandardDissimilarity)) else distance_fn

        engine = KMeansEngine(
            k,
            self._initializer(metric),
            distance_fn=fast_fn,
            executor=self.executor,
            max_iter=self.config.max_iterations,
        )
        state = engine.fit(coords)
        result = ClusterPostProcessor(distance_fn).finalize(
            coords, state.centers, state.assignment, state.counts, state.members,
            n_iter=state.n_iter,
        )
        result.metadata.update({
            "mode": "direct",
            "metric": metric.name,
            "n_clusters_requested": k,
        })

        if result.group_count > 1:
            result.evaluation = self._evaluate_direct(coords, metric, fast_fn, result)
        self._report(result, f"For norm {int(metric)}")
        return result

    def _distance_matrix(self, coords: np.ndarray, metric: MetricOption,
                         distance_fn) -> np.ndarray:
        def _compute() -> np.ndarray:
            return self.executor.pairwise_distance_matrix(coords, distance_fn)

        if self.cache is not None:
            return self.cache.load_or_compute(coords, metric, _compute)
        return _compute()

    # -- Evaluation ---------------------------------------------------------

    def _evaluate_coordinates(self, coords: np.ndarray,
                              result: ClusteringResult) -> ClusterEvaluation:
        if result.group_count <= 1:
            return ClusterEvaluation()
        start = time.perf_counter()
        sil = SilhouetteEvaluator()
        silhouette = sil.compute_value(coords, result.labels, result.group_count,
                                       self.config.is_pbf)
        validity = ValidityEvaluator().compute_value(coords, result.labels,
                                                     result.group_count)
        logger.info("Clustering evaluation computing takes: %.3fs",
                    time.perf_counter() - start)
        return ClusterEvaluation(silhouette, sil.cluster_values, validity)

    def _evaluate_direct(self, coords: np.ndarray, metric: MetricOption, distance_fn,
                         result: ClusteringResult) -> ClusterEvaluation:
        start = time.perf_counter()
        sil = SilhouetteEvaluator()
        validity_eval = ValidityEvaluator()
        if self.config.is_pbf:
            # Special datasets are scored block by block, never as N x N
            def _rows(lo: int, hi: int) -> np.ndarray:
                return self.executor.distance_block(coords, lo, hi, distance_fn)

            silhouette = sil.compute_value_blockwise(_rows, result.labels, result.group_count)
            validity = validity_eval.compute_value_blockwise(_rows, result.labels,
                                                             result.group_count)
        else:
            dist = self._distance_matrix(coords, metric, distance_fn)
            silhouette = sil.compute_value_from_matrix(dist, result.labels, result.group_count)
            validity = validity_eval.compute_value_from_matrix(dist, result.labels,
                                                               result.group_count)
        logger.info("Clustering evaluation for norm %d takes: %.3fs",
                    int(metric), time.perf_counter() - start)
        return ClusterEvaluation(silhouette, sil.cluster_values, validity)

    def _report(self, result: ClusteringResult, label: str) -> None:
        if self.summary_writer is not None:
            self.summary_writer.write_summary(result.entropy, result.evaluation, label)


def run_from_config(config: ClusteringConfig, data, direct: bool = False,
                    **kwargs) -> ClusteringResult:
    """Convenience wrapper: build a pipeline from *config* and run one path."""
    pipeline = TrajectoryClustering(dataclasses.replace(config), **kwargs)
    if direct:
        return pipeline.perform_direct_kmeans(data)
    return pipeline.perform_pca_clustering(data)
