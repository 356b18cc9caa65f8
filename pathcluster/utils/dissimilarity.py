"""Dissimilarity measures between a cluster center and a trajectory row.

The clustering engines only need ``distance(center, data, row_index,
metric)``; anything implementing :class:`DissimilarityProvider` can be
plugged in. :class:`StandardDissimilarity` covers the built-in
:class:`~pathcluster.core.models.MetricOption` values.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

import numpy as np

from pathcluster.core.models import ConfigurationError, MetricOption, resolve_metric

logger = logging.getLogger(__name__)

DistanceFn = Callable[[np.ndarray, np.ndarray, int], float]


class DissimilarityProvider(ABC):
    """Abstract distance between a center vector and one row of a matrix."""

    def preprocess(self, data: np.ndarray, metric: MetricOption) -> None:
        """Pre-compute per-row statistics for *metric*. No-op by default."""

    @abstractmethod
    def distance(
        self,
        center: np.ndarray,
        data: np.ndarray,
        row_index: int,
        metric: MetricOption,
    ) -> float:
        """Non-negative, deterministic distance from *center* to ``data[row_index]``."""
        ...

    def bind(self, metric: MetricOption) -> DistanceFn:
        """Fix *metric* and return a ``fn(center, data, row_index)`` callable."""
        metric = resolve_metric(metric)

        def _fn(center: np.ndarray, data: np.ndarray, row_index: int) -> float:
            return self.distance(center, data, row_index, metric)

        return _fn


class StandardDissimilarity(DissimilarityProvider):
    """Built-in metrics over flattened trajectory rows.

    Parameters
    ----------
    point_dim : int
        Number of coordinates per trajectory vertex, used by
        ``MEAN_POINTWISE``. Defaults to 3.
    """

    def __init__(self, point_dim: int = 3) -> None:
        self.point_dim = point_dim
        self._row_norms: np.ndarray | None = None

    def preprocess(self, data: np.ndarray, metric: MetricOption) -> None:
        metric = resolve_metric(metric)
        self._row_norms = None
        if metric == MetricOption.COSINE:
            self._row_norms = np.linalg.norm(data, axis=1)
            logger.debug("Cached %d row norms for cosine distance", data.shape[0])
        elif metric == MetricOption.MEAN_POINTWISE and data.shape[1] % self.point_dim:
            raise ConfigurationError(
                f"Row length {data.shape[1]} is not a multiple of the vertex "
                f"dimension {self.point_dim}"
            )

    def distance(
        self,
        center: np.ndarray,
        data: np.ndarray,
        row_index: int,
        metric: MetricOption,
    ) -> float:
        row = data[row_index]
        diff = np.asarray(center, dtype=np.float64) - row

        if metric == MetricOption.EUCLIDEAN:
            return float(np.sqrt(np.dot(diff, diff)))
        if metric == MetricOption.MANHATTAN:
            return float(np.sum(np.abs(diff)))
        if metric == MetricOption.CHEBYSHEV:
            return float(np.max(np.abs(diff))) if diff.size else 0.0
        if metric == MetricOption.MEAN_POINTWISE:
            per_vertex = diff.reshape(-1, self.point_dim)
            return float(np.mean(np.linalg.norm(per_vertex, axis=1)))
        if metric == MetricOption.COSINE:
            return self._cosine(center, row, row_index)

        raise ConfigurationError(f"Unknown metric option '{metric}'")

    def _cosine(self, center: np.ndarray, row: np.ndarray, row_index: int) -> float:
        if self._row_norms is not None and row_index < self._row_norms.shape[0]:
            row_norm = float(self._row_norms[row_index])
        else:
            row_norm = float(np.linalg.norm(row))
        center_norm = float(np.linalg.norm(center))
        if center_norm == 0.0 or row_norm == 0.0:
            return 0.0 if center_norm == row_norm else 1.0
        cos = float(np.dot(center, row)) / (center_norm * row_norm)
        return float(np.clip(1.0 - cos, 0.0, 2.0))
