"""PCA dimensionality reduction for flattened trajectory coordinates.

Centres the coordinate matrix, takes the thin SVD, and keeps the smallest
number of principal components whose projected squared norm exceeds a
fixed fraction of the total. For typical streamline sets this leaves
three or four dimensions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import numpy as np

from pathcluster.core.models import VARIANCE_THRESHOLD, ConfigurationError, InvalidDataError

logger = logging.getLogger(__name__)


@dataclass
class PCAResult:
    """Output of :meth:`PCAReducer.fit`.

    Attributes
    ----------
    reduced : np.ndarray
        ``(N, P)`` coordinates in the principal-component space.
    components : np.ndarray
        ``(P, M)`` top-P right singular vectors (rows of Vᵀ).
    mean : np.ndarray
        ``(M,)`` column-wise mean of the input.
    singular_values : np.ndarray
        All singular values, descending.
    explained_ratio : float
        Fraction of the projected squared norm carried by the P components.
    """
    reduced: np.ndarray
    components: np.ndarray
    mean: np.ndarray
    singular_values: np.ndarray
    explained_ratio: float

    @property
    def n_components(self) -> int:
        return self.components.shape[0]

    def back_project(self, centers: np.ndarray) -> np.ndarray:
        """Map reduced-space points back to original coordinates."""
        return np.asarray(centers) @ self.components + self.mean

    def project(self, rows: np.ndarray) -> np.ndarray:
        """Map original-space rows into the reduced space."""
        return (np.asarray(rows) - self.mean) @ self.components.T


class PCAReducer:
    """Variance-threshold PCA via SVD.

    Parameters
    ----------
    variance_threshold : float
        Fraction of the total projected squared norm the kept components
        must exceed. Defaults to 0.999.
    """

    def __init__(self, variance_threshold: float = VARIANCE_THRESHOLD) -> None:
        self.variance_threshold = variance_threshold

    def fit(self, data: np.ndarray) -> PCAResult:
        """Reduce *data* to its dominant principal components.

        Raises
        ------
        InvalidDataError
            If *data* is not a non-empty 2-D array.
        ConfigurationError
            If no component is selected (e.g. all rows identical).
        """
        data = np.asarray(data)
        if data.ndim != 2 or data.shape[0] == 0 or data.shape[1] == 0:
            raise InvalidDataError(f"Expected a non-empty 2-D matrix, got shape {data.shape}")
        if not np.issubdtype(data.dtype, np.floating):
            data = data.astype(np.float64)
        dtype = data.dtype

        mean = data.mean(axis=0).astype(dtype)
        centred = data - mean

        start = time.perf_counter()
        _, s, vt = np.linalg.svd(centred, full_matrices=False)
        logger.info("SVD takes: %.3fs", time.perf_counter() - start)

        coefficient = centred @ vt.T
        column_norms = np.sum(coefficient * coefficient, axis=0, dtype=dtype)
        total = dtype.type(np.sum(column_norms, dtype=dtype))
        threshold = dtype.type(self.variance_threshold) * total

        n_components = 0
        running = dtype.type(0.0)
        for i, value in enumerate(column_norms):
            running += value
            if running > threshold:
                n_components = i + 1
                break
        else:
            # Threshold never crossed within the available columns
            if total > 0:
                n_components = coefficient.shape[1]

        if n_components == 0:
            raise ConfigurationError(
                "PCA selected zero principal components; the trajectories "
                "carry no variance to cluster on"
            )

        explained = float(np.sum(column_norms[:n_components]) / total)
        logger.info("SVD completed: %d of %d components keep %.4f of the variance",
                    n_components, coefficient.shape[1], explained)

        return PCAResult(
            reduced=np.ascontiguousarray(coefficient[:, :n_components]),
            components=np.ascontiguousarray(vt[:n_components]),
            mean=mean,
            singular_values=s,
            explained_ratio=explained,
        )
