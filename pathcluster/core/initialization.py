"""Initial cluster centers for k-means."""

from __future__ import annotations

import logging

import numpy as np

from pathcluster.core.models import (
    ConfigurationError,
    InitializationStrategy,
    MetricOption,
    resolve_initialization,
)
from pathcluster.utils.dissimilarity import DissimilarityProvider, StandardDissimilarity

logger = logging.getLogger(__name__)


class Initializer:
    """Produces ``K`` starting centers from a coordinate matrix.

    Parameters
    ----------
    strategy : InitializationStrategy or int
        1 = random position, 2 = from samples, 3 = far samples.
    seed : int or None
        Seed for :func:`numpy.random.default_rng`.
    dissimilarity : DissimilarityProvider, optional
        Used by far-samples selection. Euclidean by default.
    metric : MetricOption
        Metric passed to *dissimilarity*.
    """

    def __init__(
        self,
        strategy: InitializationStrategy | int,
        seed: int | None = None,
        dissimilarity: DissimilarityProvider | None = None,
        metric: MetricOption = MetricOption.EUCLIDEAN,
    ) -> None:
        self.strategy = resolve_initialization(strategy)
        self.seed = seed
        self.dissimilarity = dissimilarity or StandardDissimilarity()
        self.metric = metric

    def generate(self, data: np.ndarray, n_clusters: int) -> np.ndarray:
        """Return a ``(n_clusters, D)`` float64 array of centers."""
        n = data.shape[0]
        if n_clusters < 1 or n_clusters > n:
            raise ConfigurationError(
                f"Cannot initialize {n_clusters} clusters from {n} samples"
            )
        rng = np.random.default_rng(self.seed)

        if self.strategy == InitializationStrategy.RANDOM_POSITION:
            centers = self._random_position(data, n_clusters, rng)
        elif self.strategy == InitializationStrategy.FROM_SAMPLES:
            centers = self._from_samples(data, n_clusters, rng)
        else:
            centers = self._far_samples(data, n_clusters, rng)

        logger.debug("Initialized %d centers with %s", n_clusters, self.strategy.name)
        return centers

    @staticmethod
    def _random_position(data: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        low = data.min(axis=0).astype(np.float64)
        high = data.max(axis=0).astype(np.float64)
        return low + rng.random((k, data.shape[1])) * (high - low)

    @staticmethod
    def _from_samples(data: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        chosen = rng.choice(data.shape[0], size=k, replace=False)
        return data[chosen].astype(np.float64)

    def _far_samples(self, data: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        """Greedy max-min selection; ties go to the lowest row index."""
        n = data.shape[0]
        chosen = [int(rng.integers(0, n))]
        self.dissimilarity.preprocess(data, self.metric)

        # min distance from every row to the chosen set
        nearest = np.array([
            self.dissimilarity.distance(data[chosen[0]], data, i, self.metric)
            for i in range(n)
        ])
        nearest[chosen[0]] = -1.0

        while len(chosen) < k:
            # argmax returns the first maximum
            best = int(np.argmax(nearest))
            chosen.append(best)
            for i in range(n):
                if nearest[i] < 0.0:
                    continue
                d = self.dissimilarity.distance(data[best], data, i, self.metric)
                if d < nearest[i]:
                    nearest[i] = d
            nearest[best] = -1.0

        return data[chosen].astype(np.float64)
