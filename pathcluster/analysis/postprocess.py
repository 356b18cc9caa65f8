"""Shared post-processing for k-means and AHC clustering results.

Renumbers raw clusters by ascending population, computes the balanced
entropy of the cluster-size distribution, picks the closest and furthest
member of every cluster, and maps reduced-space centroids back to the
original coordinate space.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import numpy as np

from pathcluster.core.models import ClusteringResult, MeanLine, RepresentativeLine
from pathcluster.core.pca import PCAResult

logger = logging.getLogger(__name__)

DistanceFn = Callable[[np.ndarray, np.ndarray, int], float]


def euclidean(center: np.ndarray, data: np.ndarray, row_index: int) -> float:
    return float(np.linalg.norm(center - data[row_index]))


class ClusterPostProcessor:
    """Turns raw cluster bookkeeping into a :class:`ClusteringResult`.

    Parameters
    ----------
    distance_fn : callable, optional
        Same distance used for assignment; Euclidean when omitted.
    """

    def __init__(self, distance_fn: Optional[DistanceFn] = None) -> None:
        self.distance_fn = distance_fn or euclidean

    # -- Renumbering --------------------------------------------------------

    @staticmethod
    def renumber(counts: np.ndarray) -> tuple[np.ndarray, int]:
        """Dense ids by ascending population; empty clusters map to -1.

        Equal populations keep their raw order.

        Returns
        -------
        tuple
            ``(mapping, group_count)`` where ``mapping[raw] = new id``.
        """
        counts = np.asarray(counts)
        mapping = np.full(counts.shape[0], -1, dtype=np.int64)
        group_no = 0
        for raw in np.argsort(counts, kind="stable"):
            if counts[raw] > 0:
                mapping[raw] = group_no
                group_no += 1
        return mapping, group_no

    # -- Entropy ------------------------------------------------------------

    @staticmethod
    def balanced_entropy(counts: np.ndarray, n_rows: int) -> Optional[float]:
        """Shannon entropy of cluster sizes normalised by ``log2(groupNo)``.

        Returns ``None`` when fewer than two clusters are non-empty.
        """
        sizes = np.asarray(counts, dtype=np.float64)
        sizes = sizes[sizes > 0]
        if sizes.size <= 1:
            logger.warning("Only %d non-empty cluster; balanced entropy is undefined",
                           sizes.size)
            return None
        p = sizes / float(n_rows)
        return float(-np.sum(p * np.log2(p)) / np.log2(sizes.size))

    # -- Representatives ----------------------------------------------------

    def select_representatives(
        self,
        centers: np.ndarray,
        data: np.ndarray,
        members: list[list[int]],
        mapping: np.ndarray,
    ) -> tuple[list[RepresentativeLine], list[RepresentativeLine]]:
        """Closest and furthest member of every non-empty cluster.

        Members are scanned in list order and only a strictly better
        distance replaces the current pick.
        """
        closest: list[RepresentativeLine] = []
        furthest: list[RepresentativeLine] = []
        for raw, rows in enumerate(members):
            if mapping[raw] < 0 or not rows:
                continue
            shortest, far_dist = np.inf, -np.inf
            shortest_index = furthest_index = rows[0]
            for row in rows:
                to_center = self.distance_fn(centers[raw], data, row)
                if to_center < shortest:
                    shortest, shortest_index = to_center, row
                if to_center > far_dist:
                    far_dist, furthest_index = to_center, row
            closest.append(RepresentativeLine(int(shortest_index), int(mapping[raw])))
            furthest.append(RepresentativeLine(int(furthest_index), int(mapping[raw])))
        return closest, furthest

    # -- Centroids ----------------------------------------------------------

    @staticmethod
    def back_project(centers: np.ndarray, components: np.ndarray,
                     mean: np.ndarray) -> np.ndarray:
        """``centers @ components + mean``."""
        return np.asarray(centers, dtype=np.float64) @ components + mean

    # -- Assembly -----------------------------------------------------------

    def finalize(
        self,
        data: np.ndarray,
        centers: np.ndarray,
        assignment: np.ndarray,
        counts: np.ndarray,
        members: list[list[int]],
        pca: Optional[PCAResult] = None,
        n_iter: int = 0,
    ) -> ClusteringResult:
        """Build the full result from raw-order clustering state.

        Parameters
        ----------
        data : np.ndarray
            Coordinates the clustering ran on (reduced when *pca* is given).
        centers : np.ndarray
            ``(K, D)`` raw-order centers in the same space as *data*.
        assignment, counts, members :
            Raw cluster index per row, population and member list per cluster.
        pca : PCAResult, optional
            When given, centers are back-projected to original coordinates.
        """
        mapping, group_no = self.renumber(counts)
        entropy = self.balanced_entropy(counts, data.shape[0])

        labels = mapping[assignment]
        sizes = np.asarray(counts)[assignment].astype(np.int64)

        closest, furthest = self.select_representatives(centers, data, members, mapping)

        full_centers = centers if pca is None else self.back_project(
            centers, pca.components, pca.mean)
        ordered = np.zeros((group_no, full_centers.shape[1]), dtype=np.float64)
        mean_lines: list[MeanLine] = []
        for raw in range(len(counts)):
            if mapping[raw] < 0:
                continue
            ordered[mapping[raw]] = full_centers[raw]
            mean_lines.append(MeanLine(np.array(full_centers[raw], dtype=np.float64),
                                       int(mapping[raw])))

        logger.info("There are %d groups generated", group_no)
        return ClusteringResult(
            labels=labels,
            sizes=sizes,
            centers=ordered,
            mean_lines=mean_lines,
            closest=closest,
            furthest=furthest,
            group_count=group_no,
            entropy=entropy,
            n_iter=n_iter,
            reduced=data if pca is not None else None,
            n_components=pca.n_components if pca is not None else None,
        )
