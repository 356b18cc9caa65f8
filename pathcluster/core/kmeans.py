"""Lloyd's k-means over raw or PCA-reduced trajectory coordinates.

Each iteration is a full barrier: rows are assigned to their nearest
center in parallel blocks, every block fills private accumulators
(counts, coordinate sums, member lists), and the partials are merged in
block order before the centers are updated.

Termination follows a pragmatic triple bound rather than exact
convergence: stop when the largest center displacement changes by less
than 1 % between iterations, when it falls to 0.01 or below, or after 20
iterations.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import numpy as np
from scipy.spatial.distance import cdist

from pathcluster.compute.parallel import ParallelExecutor
from pathcluster.core.initialization import Initializer
from pathcluster.core.models import ConfigurationError, InvalidDataError

logger = logging.getLogger(__name__)

DistanceFn = Callable[[np.ndarray, np.ndarray, int], float]

INITIAL_MOVING = 1000.0


class KMeansPhase(Enum):
    INITIALIZING = "initializing"
    ASSIGNING = "assigning"
    UPDATING = "updating"
    CONVERGED = "converged"


@dataclass
class _Partial:
    """Per-worker accumulators for one block of rows."""
    assignment: np.ndarray
    counts: np.ndarray
    sums: np.ndarray
    members: list[list[int]]


@dataclass
class KMeansState:
    """Final state of a k-means run, in raw (un-renumbered) cluster order.

    Attributes
    ----------
    centers : np.ndarray
        ``(K, D)`` cluster centers; empty clusters keep their last center.
    assignment : np.ndarray
        ``(N,)`` raw cluster index of every row.
    counts : np.ndarray
        ``(K,)`` cluster populations.
    members : list[list[int]]
        Row indices of each cluster in ascending order.
    """
    centers: np.ndarray
    assignment: np.ndarray
    counts: np.ndarray
    members: list[list[int]]
    n_iter: int = 0
    moving: float = INITIAL_MOVING
    movement_history: list[float] = field(default_factory=list)
    phase_history: list[KMeansPhase] = field(default_factory=list)


class KMeansEngine:
    """Iterative partition clustering with a pluggable distance function.

    Parameters
    ----------
    n_clusters : int
        Number of clusters K.
    initializer : Initializer
        Produces the starting centers.
    distance_fn : callable, optional
        ``distance_fn(center, data, row_index)``. Euclidean (vectorised via
        :func:`scipy.spatial.distance.cdist`) when omitted.
    executor : ParallelExecutor, optional
        Worker pool for the assignment and update phases.
    max_iter : int
        Hard iteration cap. Defaults to 20.
    tolerance : float
        Relative change in max displacement treated as converged.
    min_moving : float
        Max displacement treated as converged.
    """

    def __init__(
        self,
        n_clusters: int,
        initializer: Initializer,
        distance_fn: Optional[DistanceFn] = None,
        executor: Optional[ParallelExecutor] = None,
        max_iter: int = 20,
        tolerance: float = 1.0e-2,
        min_moving: float = 0.01,
    ) -> None:
        self.n_clusters = n_clusters
        self.initializer = initializer
        self.distance_fn = distance_fn
        self.executor = executor or ParallelExecutor()
        self.max_iter = max_iter
        self.tolerance = tolerance
        self.min_moving = min_moving

    # -- Driver -------------------------------------------------------------

    def fit(self, data: np.ndarray) -> KMeansState:
        """Cluster the rows of *data*.

        Raises
        ------
        ConfigurationError
            If ``n_clusters`` is outside ``[1, N]``.
        """
        if data.ndim != 2 or data.shape[0] == 0:
            raise InvalidDataError(f"Expected a non-empty 2-D matrix, got shape {data.shape}")
        n = data.shape[0]
        if self.n_clusters < 1 or self.n_clusters > n:
            raise ConfigurationError(
                f"Number of clusters {self.n_clusters} exceeds sample count {n}"
            )

        phases = [KMeansPhase.INITIALIZING]
        centers = self.initializer.generate(data, self.n_clusters)

        start = time.perf_counter()
        moving = INITIAL_MOVING
        movements: list[float] = []
        n_iter = 0
        while True:
            before = moving

            phases.append(KMeansPhase.ASSIGNING)
            assignment, counts, sums, members = self._assign(data, centers)

            phases.append(KMeansPhase.UPDATING)
            moving = self._update(centers, counts, sums)

            n_iter += 1
            movements.append(moving)
            logger.info("K-means iteration %d completed, and moving is %g", n_iter, moving)

            if self.is_converged(moving, before, n_iter):
                break

        phases.append(KMeansPhase.CONVERGED)
        logger.info("k-means iteration takes: %.3fs", time.perf_counter() - start)

        return KMeansState(
            centers=centers,
            assignment=assignment,
            counts=counts,
            members=members,
            n_iter=n_iter,
            moving=moving,
            movement_history=movements,
            phase_history=phases,
        )

    def is_converged(self, moving: float, before: float, n_iter: int) -> bool:
        """Triple stopping rule; a zero previous displacement counts as converged."""
        if n_iter >= self.max_iter:
            return True
        if moving <= self.min_moving:
            return True
        if before == 0.0:
            return True
        return abs(moving - before) / before < self.tolerance

    # -- Assigning ----------------------------------------------------------

    def _assign(
        self, data: np.ndarray, centers: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray, list[list[int]]]:
        k = centers.shape[0]

        def _block(start: int, stop: int) -> _Partial:
            nearest = self._nearest_centers(data, centers, start, stop)
            sums = np.zeros((k, data.shape[1]), dtype=np.float64)
            np.add.at(sums, nearest, data[start:stop])
            members: list[list[int]] = [[] for _ in range(k)]
            for offset, cluster in enumerate(nearest):
                members[cluster].append(start + offset)
            return _Partial(
                assignment=nearest,
                counts=np.bincount(nearest, minlength=k),
                sums=sums,
                members=members,
            )

        partials = self.executor.map_blocks(_block, data.shape[0])

        # Merge in block order so member lists stay in ascending row order
        counts = np.zeros(k, dtype=np.int64)
        sums = np.zeros((k, data.shape[1]), dtype=np.float64)
        members: list[list[int]] = [[] for _ in range(k)]
        for part in partials:
            counts += part.counts
            sums += part.sums
            for cluster in range(k):
                members[cluster].extend(part.members[cluster])
        assignment = np.concatenate([part.assignment for part in partials])
        return assignment, counts, sums, members

    def _nearest_centers(
        self, data: np.ndarray, centers: np.ndarray, start: int, stop: int,
    ) -> np.ndarray:
        """Index of the nearest center for rows ``start:stop``; ties pick the lowest index."""
        if self.distance_fn is None:
            dist = cdist(data[start:stop], centers)
        else:
            dist = np.empty((stop - start, centers.shape[0]), dtype=np.float64)
            for i in range(start, stop):
                for j in range(centers.shape[0]):
                    dist[i - start, j] = self.distance_fn(centers[j], data, i)
        return np.argmin(dist, axis=1).astype(np.int64)

    # -- Updating -----------------------------------------------------------

    def _update(self, centers: np.ndarray, counts: np.ndarray, sums: np.ndarray) -> float:
        """Move non-empty centers to their member means; return the max displacement."""

        def _block(start: int, stop: int) -> float:
            block_max = 0.0
            for i in range(start, stop):
                if counts[i] == 0:
                    logger.debug("Cluster %d is empty; keeping its previous center", i)
                    continue
                new_center = sums[i] / counts[i]
                shift = float(np.linalg.norm(new_center - centers[i]))
                centers[i] = new_center
                if shift > block_max:
                    block_max = shift
            return block_max

        return self.executor.reduce_max(_block, centers.shape[0], initial=0.0)
