"""Plain-text output of clustering results.

Three files describe a run:

- labels: one ``cluster_id cluster_size`` line per trajectory
- representatives: one ``row_index cluster_id`` line per cluster, for the
  closest and the furthest member separately
- mean lines: one ``cluster_id x0 x1 ...`` line per cluster centroid
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from pathcluster.core.models import ClusteringResult, MeanLine, RepresentativeLine


class ResultWriter:
    """Writes a :class:`ClusteringResult` under an output directory.

    Parameters
    ----------
    directory : str or Path
        Output directory, created on first write.
    prefix : str
        Prepended to every file name, e.g. ``"norm1_"``.
    """

    def __init__(self, directory: str | Path, prefix: str = "") -> None:
        self.directory = Path(directory)
        self.prefix = prefix

    def _path(self, name: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory / f"{self.prefix}{name}"

    def write(self, result: ClusteringResult) -> dict[str, Path]:
        """Write all three files and return their paths by kind."""
        return {
            "labels": self.write_labels(result.labels, result.sizes),
            "closest": self.write_representatives("closest.txt", result.closest),
            "furthest": self.write_representatives("furthest.txt", result.furthest),
            "mean_lines": self.write_mean_lines(result.mean_lines),
        }

    def write_labels(self, labels: np.ndarray, sizes: np.ndarray) -> Path:
        path = self._path("labels.txt")
        with open(path, "w") as f:
            for label, size in zip(labels, sizes):
                f.write(f"{int(label)} {int(size)}\n")
        return path

    def write_representatives(self, name: str, lines: list[RepresentativeLine]) -> Path:
        path = self._path(name)
        with open(path, "w") as f:
            for line in sorted(lines, key=lambda l: l.cluster_id):
                f.write(f"{line.row_index} {line.cluster_id}\n")
        return path

    def write_mean_lines(self, mean_lines: list[MeanLine]) -> Path:
        path = self._path("mean_lines.txt")
        with open(path, "w") as f:
            for line in sorted(mean_lines, key=lambda l: l.cluster_id):
                coords = " ".join(f"{v:.6f}" for v in line.coordinates)
                f.write(f"{line.cluster_id} {coords}\n")
        return path
