"""On-disk cache for full pairwise trajectory distance matrices.

Entries are addressed by the dataset content and the metric, so a cache
directory can be shared across datasets and runs without stale hits.

File format: one matrix row per line, whitespace-separated decimal
floats. The diagonal is forced to zero on both read and write.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Callable

import numpy as np

from pathcluster.core.models import DistanceCacheError, MetricOption

logger = logging.getLogger(__name__)


def dataset_key(data: np.ndarray, metric: MetricOption | int) -> str:
    """Content address of *data* under *metric*."""
    arr = np.ascontiguousarray(data)
    digest = hashlib.sha1()
    digest.update(str(arr.dtype).encode())
    digest.update(str(arr.shape).encode())
    digest.update(arr.tobytes())
    return f"{digest.hexdigest()}_norm{int(metric)}"


class DistanceMatrixCache:
    """Load, save, or compute-and-persist distance matrices.

    Parameters
    ----------
    directory : str or Path
        Where cache files live. Created on first save.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.dist"

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def load(self, key: str, n_rows: int) -> np.ndarray:
        """Parse a cached matrix, checking it is ``(n_rows, n_rows)``.

        Raises
        ------
        DistanceCacheError
            If a row count, column count, or value does not parse.
        """
        path = self.path_for(key)
        lines = [line for line in path.read_text().splitlines() if line.strip()]
        if len(lines) != n_rows:
            raise DistanceCacheError(
                f"{path}: expected {n_rows} rows, found {len(lines)}"
            )
        matrix = np.empty((n_rows, n_rows), dtype=np.float64)
        for i, line in enumerate(lines):
            fields = line.split()
            if len(fields) != n_rows:
                raise DistanceCacheError(
                    f"{path}: row {i + 1} has {len(fields)} columns, expected {n_rows}"
                )
            try:
                matrix[i] = [float(v) for v in fields]
            except ValueError as exc:
                raise DistanceCacheError(f"{path}: row {i + 1}: {exc}") from exc
        np.fill_diagonal(matrix, 0.0)
        logger.info("Read distance matrix from %s", path)
        return matrix

    def save(self, key: str, matrix: np.ndarray) -> Path:
        path = self.path_for(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        out = np.array(matrix, dtype=np.float64)
        np.fill_diagonal(out, 0.0)
        with open(path, "w") as f:
            for row in out:
                f.write(" ".join(repr(float(v)) for v in row))
                f.write("\n")
        logger.info("Wrote %dx%d distance matrix to %s", out.shape[0], out.shape[1], path)
        return path

    def load_or_compute(
        self,
        data: np.ndarray,
        metric: MetricOption | int,
        compute: Callable[[], np.ndarray],
    ) -> np.ndarray:
        """Return the cached matrix for *data*/*metric*, computing and saving on a miss."""
        key = dataset_key(data, metric)
        if self.exists(key):
            return self.load(key, data.shape[0])
        matrix = compute()
        self.save(key, matrix)
        np.fill_diagonal(matrix, 0.0)
        return matrix
