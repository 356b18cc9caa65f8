"""Readme-style summary of clustering quality scores.

Each run appends one block, so several metric runs over the same dataset
accumulate in a single file, told apart by their label::

    For norm 1
    Balanced entropy: 0.918296
    Silhouette: 0.742113
    Cluster silhouettes: 0.801 0.655 0.771
    Validity measure: 0.412250

"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pathcluster.core.models import ClusterEvaluation

logger = logging.getLogger(__name__)


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.6f}"


class SummaryWriter:
    """Appends entropy and evaluation scores to a text file.

    Parameters
    ----------
    filepath : str or Path
        Summary file; created if missing, appended to otherwise.
    """

    def __init__(self, filepath: str | Path) -> None:
        self.filepath = Path(filepath)

    def format_summary(self, entropy: Optional[float], evaluation: ClusterEvaluation,
                       label: str = "") -> str:
        lines: list[str] = []
        if label:
            lines.append(label)
        lines.append(f"Balanced entropy: {_fmt(entropy)}")
        lines.append(f"Silhouette: {_fmt(evaluation.silhouette)}")
        if evaluation.cluster_silhouettes:
            lines.append("Cluster silhouettes: " + " ".join(
                f"{v:.3f}" for v in evaluation.cluster_silhouettes))
        lines.append(f"Validity measure: {_fmt(evaluation.validity)}")
        return "\n".join(lines) + "\n\n"

    def write_summary(self, entropy: Optional[float], evaluation: ClusterEvaluation,
                      label: str = "") -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(self.filepath, "a") as f:
            f.write(self.format_summary(entropy, evaluation, label))
        logger.info("Appended clustering summary to %s", self.filepath)
