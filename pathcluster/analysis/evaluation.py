"""Clustering quality scores: silhouette and a Davies–Bouldin validity ratio.

Both evaluators accept coordinates (reduced-space runs), a full pairwise
distance matrix (raw-data runs with a non-Euclidean metric), or a
``block_fn(start, stop)`` that yields the distance rows ``start:stop``
against every sample. The block form never holds more than
:data:`SILHOUETTE_BLOCK` rows at once, which is how special (PBF) datasets
are scored. All forms report ``None`` when fewer than two clusters exist.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np
from scipy.spatial.distance import cdist, pdist, squareform

logger = logging.getLogger(__name__)

# Rows per block when the full matrix is not materialised
SILHOUETTE_BLOCK = 1024

BlockFn = Callable[[int, int], np.ndarray]


def _iter_blocks(block_fn: BlockFn, n_rows: int, block_size: int):
    for start in range(0, n_rows, block_size):
        stop = min(start + block_size, n_rows)
        yield start, stop, np.asarray(block_fn(start, stop), dtype=np.float64)


def _cluster_sums(block: np.ndarray, labels: np.ndarray, group_count: int) -> np.ndarray:
    """``sums[r, c]`` = total distance from block row r to the members of cluster c."""
    sums = np.zeros((block.shape[0], group_count), dtype=np.float64)
    for c in range(group_count):
        sums[:, c] = block[:, labels == c].sum(axis=1)
    return sums


class ClusterEvaluator(ABC):
    """A scalar clustering-quality score."""

    @abstractmethod
    def compute_value(
        self,
        coordinates: np.ndarray,
        labels: np.ndarray,
        group_count: int,
        is_special_dataset: bool = False,
    ) -> Optional[float]:
        ...

    @abstractmethod
    def compute_value_blockwise(
        self,
        block_fn: BlockFn,
        labels: np.ndarray,
        group_count: int,
        block_size: int = SILHOUETTE_BLOCK,
    ) -> Optional[float]:
        ...

    def compute_value_from_matrix(
        self,
        distance_matrix: np.ndarray,
        labels: np.ndarray,
        group_count: int,
    ) -> Optional[float]:
        dist = np.asarray(distance_matrix, dtype=np.float64)
        return self.compute_value_blockwise(lambda start, stop: dist[start:stop],
                                            labels, group_count,
                                            block_size=max(dist.shape[0], 1))


class SilhouetteEvaluator(ClusterEvaluator):
    """Mean silhouette coefficient; rows in singleton clusters score 0.

    After each call, :attr:`cluster_values` holds the mean silhouette of
    every cluster id.
    """

    def __init__(self) -> None:
        self.cluster_values: list[float] = []

    def compute_value(self, coordinates, labels, group_count, is_special_dataset=False):
        coords = np.asarray(coordinates, dtype=np.float64)
        if not is_special_dataset:
            return self.compute_value_from_matrix(squareform(pdist(coords)), labels, group_count)

        # Large datasets: stream row blocks instead of holding N x N
        return self.compute_value_blockwise(
            lambda start, stop: cdist(coords[start:stop], coords), labels, group_count)

    def compute_value_blockwise(self, block_fn, labels, group_count,
                                block_size=SILHOUETTE_BLOCK):
        if group_count <= 1:
            self.cluster_values = []
            return None
        labels = np.asarray(labels)
        values = np.empty(labels.shape[0], dtype=np.float64)
        for start, stop, block in _iter_blocks(block_fn, labels.shape[0], block_size):
            values[start:stop] = self._row_values(block, labels, labels[start:stop],
                                                  group_count)
        return self._summarise(values, labels, group_count)

    @staticmethod
    def _row_values(block: np.ndarray, labels: np.ndarray, row_labels: np.ndarray,
                    group_count: int) -> np.ndarray:
        """Silhouette of each row of *block* (rows × all samples)."""
        counts = np.bincount(labels, minlength=group_count).astype(np.float64)
        sums = _cluster_sums(block, labels, group_count)

        rows = np.arange(block.shape[0])
        own_size = counts[row_labels]
        a = np.where(own_size > 1, sums[rows, row_labels] / np.maximum(own_size - 1, 1), 0.0)

        means = sums / np.where(counts > 0, counts, 1.0)
        means[:, counts == 0] = np.inf
        means[rows, row_labels] = np.inf
        b = means.min(axis=1)

        denom = np.maximum(a, b)
        s = np.where(denom > 0, (b - a) / np.where(denom > 0, denom, 1.0), 0.0)
        return np.where(own_size > 1, s, 0.0)

    def _summarise(self, values: np.ndarray, labels: np.ndarray, group_count: int) -> float:
        self.cluster_values = [
            float(values[labels == c].mean()) if np.any(labels == c) else 0.0
            for c in range(group_count)
        ]
        score = float(values.mean())
        logger.info("Silhouette: %.4f over %d groups", score, group_count)
        return score


class ValidityEvaluator(ClusterEvaluator):
    """Davies–Bouldin ratio ``f_c``; lower means better separated clusters.

    The coordinate form measures scatter as the mean distance to the
    centroid. The matrix and block forms, which only see distances, use
    the mean intra-cluster distance for scatter and the mean
    cross-cluster distance for separation.
    """

    def __init__(self) -> None:
        self.f_c: Optional[float] = None

    def compute_value(self, coordinates, labels, group_count, is_special_dataset=False):
        if group_count <= 1:
            self.f_c = None
            return None
        coords = np.asarray(coordinates, dtype=np.float64)
        labels = np.asarray(labels)
        centroids = np.array([coords[labels == c].mean(axis=0) for c in range(group_count)])
        scatter = np.array([
            np.linalg.norm(coords[labels == c] - centroids[c], axis=1).mean()
            for c in range(group_count)
        ])
        return self._ratio(scatter, cdist(centroids, centroids))

    def compute_value_blockwise(self, block_fn, labels, group_count,
                                block_size=SILHOUETTE_BLOCK):
        if group_count <= 1:
            self.f_c = None
            return None
        labels = np.asarray(labels)
        # totals[c, d] = summed distance from members of c to members of d
        totals = np.zeros((group_count, group_count), dtype=np.float64)
        for start, stop, block in _iter_blocks(block_fn, labels.shape[0], block_size):
            np.add.at(totals, labels[start:stop], _cluster_sums(block, labels, group_count))
        totals = (totals + totals.T) / 2.0

        counts = np.bincount(labels, minlength=group_count).astype(np.float64)
        intra_pairs = counts * (counts - 1)
        scatter = np.where(intra_pairs > 0, np.diag(totals) / np.maximum(intra_pairs, 1.0), 0.0)
        cross_pairs = np.outer(counts, counts)
        separation = np.where(cross_pairs > 0, totals / np.maximum(cross_pairs, 1.0), 0.0)
        np.fill_diagonal(separation, 0.0)
        return self._ratio(scatter, separation)

    def _ratio(self, scatter: np.ndarray, separation: np.ndarray) -> float:
        k = scatter.shape[0]
        worst = np.zeros(k)
        for i in range(k):
            for j in range(k):
                if i == j or separation[i, j] <= 0.0:
                    continue
                worst[i] = max(worst[i], (scatter[i] + scatter[j]) / separation[i, j])
        self.f_c = float(worst.mean())
        logger.info("Validity measure is: %.4f", self.f_c)
        return self.f_c
