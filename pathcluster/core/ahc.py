"""Agglomerative hierarchical clustering with average linkage.

Nodes live in an arena indexed by a monotonically increasing id: leaves
take ids ``0 .. N-1`` and every merge appends a node with the next id.
Alongside the arena the engine keeps a flat list of :class:`DistNode`
entries, exactly one per unordered pair of live nodes. Each step scans
that list for the first minimum, merges the pair, copies the untouched
pairs over unchanged, and appends one freshly linked pair per surviving
node.

The ids follow SciPy's linkage convention (the i-th merge creates node
``N + i``), so :meth:`AHCState.linkage_matrix` can be handed straight to
:mod:`scipy.cluster.hierarchy` once the hierarchy is complete.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from pathcluster.compute.parallel import ParallelExecutor
from pathcluster.core.models import ConfigurationError, InvalidDataError

logger = logging.getLogger(__name__)

# Linkage blocks smaller than this are summed in one NumPy call
PARALLEL_LINKAGE_MIN = 1 << 16


@dataclass(frozen=True)
class AHCNode:
    """A cluster in the hierarchy: its id, its rows, and the ids it came from."""
    node_id: int
    members: tuple[int, ...]
    parents: Optional[tuple[int, int]] = None

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class DistNode:
    """Average-linkage distance between two live nodes."""
    first: int
    second: int
    distance: float


@dataclass(frozen=True)
class MergeRecord:
    """One merge step, enough to replay the hierarchy."""
    first: int
    second: int
    merged: int
    distance: float
    size: int


@dataclass
class AHCState:
    """Arena, live set and pair list of a hierarchical clustering run."""
    nodes: list[AHCNode]
    live: list[int]
    pairs: list[DistNode]
    merges: list[MergeRecord] = field(default_factory=list)

    @property
    def n_rows(self) -> int:
        return sum(1 for node in self.nodes if node.parents is None)

    def live_nodes(self) -> list[AHCNode]:
        return [self.nodes[i] for i in self.live]

    def clusters(self) -> list[AHCNode]:
        """Live nodes sorted by member count, ties by ascending id."""
        return sorted(self.live_nodes(), key=lambda node: (node.size, node.node_id))

    def check_partition(self) -> bool:
        """True if the live nodes cover every row exactly once."""
        rows = [row for node in self.live_nodes() for row in node.members]
        return sorted(rows) == list(range(self.n_rows))

    def linkage_matrix(self) -> np.ndarray:
        """Merge history as a SciPy-style ``(n_merges, 4)`` linkage matrix."""
        z = np.zeros((len(self.merges), 4), dtype=np.float64)
        for i, rec in enumerate(self.merges):
            z[i] = (min(rec.first, rec.second), max(rec.first, rec.second),
                    rec.distance, rec.size)
        return z


class AHCEngine:
    """Average-linkage AHC cut at a requested number of clusters.

    Parameters
    ----------
    n_clusters : int
        Number of live nodes at which merging stops.
    executor : ParallelExecutor, optional
        Used for large linkage sums.
    """

    def __init__(self, n_clusters: int, executor: Optional[ParallelExecutor] = None) -> None:
        self.n_clusters = n_clusters
        self.executor = executor or ParallelExecutor()

    @staticmethod
    def initial_state(distance_matrix: np.ndarray) -> AHCState:
        """N singleton nodes and all ``N(N-1)/2`` pairs in row-major order."""
        n = distance_matrix.shape[0]
        nodes = [AHCNode(node_id=i, members=(i,)) for i in range(n)]
        pairs = [
            DistNode(i, j, float(distance_matrix[i, j]))
            for i in range(n - 1)
            for j in range(i + 1, n)
        ]
        return AHCState(nodes=nodes, live=list(range(n)), pairs=pairs)

    def fit(self, distance_matrix: np.ndarray) -> AHCState:
        """Merge until exactly ``n_clusters`` live nodes remain.

        Raises
        ------
        ConfigurationError
            If ``n_clusters`` is outside ``[1, N]``.
        """
        dist = np.asarray(distance_matrix, dtype=np.float64)
        if dist.ndim != 2 or dist.shape[0] != dist.shape[1] or dist.shape[0] == 0:
            raise InvalidDataError(f"Expected a square distance matrix, got shape {dist.shape}")
        n = dist.shape[0]
        if self.n_clusters < 1 or self.n_clusters > n:
            raise ConfigurationError(
                f"Cannot cut {n} trajectories into {self.n_clusters} clusters"
            )

        start = time.perf_counter()
        state = self.initial_state(dist)
        while len(state.live) > self.n_clusters:
            self.merge_step(state, dist)

        logger.info("Hierarchical clustering for %d groups takes: %.3fs",
                    self.n_clusters, time.perf_counter() - start)
        return state

    def merge_step(self, state: AHCState, dist: np.ndarray) -> MergeRecord:
        """Merge the closest live pair and rebuild the pair list."""
        distances = np.fromiter((p.distance for p in state.pairs), dtype=np.float64,
                                count=len(state.pairs))
        # argmin returns the first minimum in scan order
        closest = state.pairs[int(np.argmin(distances))]

        first = state.nodes[closest.first]
        second = state.nodes[closest.second]
        new_id = len(state.nodes)
        merged = AHCNode(
            node_id=new_id,
            members=first.members + second.members,
            parents=(first.node_id, second.node_id),
        )
        state.nodes.append(merged)
        state.live = [i for i in state.live if i not in (first.node_id, second.node_id)]

        gone = {first.node_id, second.node_id}
        pairs = [p for p in state.pairs if p.first not in gone and p.second not in gone]
        for survivor in state.live:
            pairs.append(DistNode(
                survivor, new_id,
                self.average_linkage(merged.members, state.nodes[survivor].members, dist),
            ))
        state.live.append(new_id)
        state.pairs = pairs

        record = MergeRecord(first.node_id, second.node_id, new_id,
                             closest.distance, merged.size)
        state.merges.append(record)
        logger.debug("Merged %d and %d into %d (distance %g, %d live)",
                     record.first, record.second, new_id, record.distance, len(state.live))
        return record

    def average_linkage(self, first: tuple[int, ...], second: tuple[int, ...],
                        dist: np.ndarray) -> float:
        """Mean original-space distance over every cross pair of members."""
        rows = np.asarray(first)
        cols = np.asarray(second)
        if rows.size * cols.size < PARALLEL_LINKAGE_MIN:
            return float(dist[np.ix_(rows, cols)].mean())

        def _partial(start: int, stop: int) -> float:
            return float(dist[np.ix_(rows[start:stop], cols)].sum())

        return self.executor.reduce_sum(_partial, rows.size) / (rows.size * cols.size)


def replay(merges: list[MergeRecord], n_rows: int, n_clusters: int) -> list[tuple[int, ...]]:
    """Rebuild the member sets at a cut of *n_clusters* from a merge history.

    Returns member tuples sorted by size, ties by node id.
    """
    if n_clusters < 1 or n_clusters > n_rows:
        raise ConfigurationError(
            f"Cannot cut {n_rows} trajectories into {n_clusters} clusters"
        )
    if n_rows - len(merges) > n_clusters:
        raise ConfigurationError(
            f"History of {len(merges)} merges cannot reach {n_clusters} clusters"
        )
    live: dict[int, tuple[int, ...]] = {i: (i,) for i in range(n_rows)}
    for rec in merges:
        if len(live) == n_clusters:
            break
        live[rec.merged] = live.pop(rec.first) + live.pop(rec.second)
    return [members for _, members in sorted(live.items(), key=lambda kv: (len(kv[1]), kv[0]))]
