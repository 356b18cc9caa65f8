"""ParallelExecutor: fork-join data parallelism over a fixed worker pool.

Splits row ranges into contiguous blocks and runs them on a
ThreadPoolExecutor. NumPy and SciPy release the GIL inside their kernels,
so threads share the coordinate matrix without copying it into child
processes. Results always come back in block order, which keeps every
reduction and every merged membership list deterministic regardless of
scheduling.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, TypeVar

import numpy as np
from scipy.spatial.distance import cdist

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WORKERS = 8


class ParallelExecutor:
    """Runs block-wise work on a fixed-size thread pool.

    Parameters
    ----------
    num_workers : int or None
        Number of parallel workers. Defaults to 8.
    """

    def __init__(self, num_workers: int | None = None) -> None:
        self.num_workers = max(1, num_workers or DEFAULT_WORKERS)

    def blocks(self, n_items: int) -> list[tuple[int, int]]:
        """Split ``range(n_items)`` into at most ``num_workers`` contiguous blocks."""
        if n_items <= 0:
            return []
        n_blocks = min(self.num_workers, n_items)
        bounds = np.linspace(0, n_items, n_blocks + 1).astype(int)
        return [(int(bounds[i]), int(bounds[i + 1])) for i in range(n_blocks)]

    def map_blocks(self, fn: Callable[[int, int], T], n_items: int) -> list[T]:
        """Apply ``fn(start, stop)`` to every block and return results in block order."""
        blocks = self.blocks(n_items)
        if not blocks:
            return []

        # For a single block or single worker, skip pool overhead
        if len(blocks) == 1 or self.num_workers <= 1:
            return [fn(start, stop) for start, stop in blocks]

        with ThreadPoolExecutor(max_workers=len(blocks)) as pool:
            futures = [pool.submit(fn, start, stop) for start, stop in blocks]
            return [f.result() for f in futures]

    def reduce_max(self, fn: Callable[[int, int], float], n_items: int,
                   initial: float = -np.inf) -> float:
        """Parallel max-reduction of per-block partial maxima."""
        result = initial
        for partial in self.map_blocks(fn, n_items):
            if partial > result:
                result = partial
        return result

    def reduce_sum(self, fn: Callable[[int, int], float], n_items: int) -> float:
        """Parallel sum-reduction, combining partial sums in block order."""
        return float(sum(self.map_blocks(fn, n_items)))

    def pairwise_distance_matrix(
        self,
        data: np.ndarray,
        distance_fn: Optional[Callable[[np.ndarray, np.ndarray, int], float]] = None,
    ) -> np.ndarray:
        """Compute the full ``(N, N)`` distance matrix by row blocks.

        Parameters
        ----------
        data : np.ndarray
            ``(N, D)`` coordinates.
        distance_fn : callable, optional
            ``distance_fn(center, data, row_index)``. Euclidean via
            :func:`scipy.spatial.distance.cdist` when omitted.

        Returns
        -------
        np.ndarray
            Symmetric ``(N, N)`` matrix with zero diagonal.
        """
        n = data.shape[0]
        dist = np.zeros((n, n), dtype=np.float64)

        if distance_fn is None:
            def _fill(start: int, stop: int) -> None:
                dist[start:stop] = cdist(data[start:stop], data)
        else:
            def _fill(start: int, stop: int) -> None:
                for i in range(start, stop):
                    for j in range(i + 1, n):
                        dist[i, j] = distance_fn(data[i], data, j)

        logger.info("Computing %dx%d distance matrix with %d workers",
                    n, n, min(self.num_workers, max(n, 1)))
        self.map_blocks(_fill, n)

        if distance_fn is not None:
            upper = np.triu_indices(n, k=1)
            dist[(upper[1], upper[0])] = dist[upper]
        np.fill_diagonal(dist, 0.0)
        return dist

    def distance_block(
        self,
        data: np.ndarray,
        start: int,
        stop: int,
        distance_fn: Optional[Callable[[np.ndarray, np.ndarray, int], float]] = None,
    ) -> np.ndarray:
        """Distances from rows ``start:stop`` to every row of *data*.

        Lets callers walk a distance matrix row block by row block without
        ever allocating the full ``(N, N)`` array.

        Returns
        -------
        np.ndarray
            ``(stop - start, N)`` block; entry ``[r, r + start]`` is zero.
        """
        if distance_fn is None:
            return cdist(data[start:stop], data)

        n = data.shape[0]
        block = np.zeros((stop - start, n), dtype=np.float64)

        def _fill(lo: int, hi: int) -> None:
            for r in range(lo, hi):
                i = start + r
                for j in range(n):
                    if j != i:
                        block[r, j] = distance_fn(data[i], data, j)

        self.map_blocks(_fill, stop - start)
        return block
