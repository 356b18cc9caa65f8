"""Core data models and custom exceptions for pathcluster.

Defines the selector enums, the clustering configuration, the result
records handed to reporting sinks, and all custom exception types used
throughout the package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

import numpy as np


# ---------------------------------------------------------------------------
# Custom Exceptions
# ---------------------------------------------------------------------------

class PathClusterError(Exception):
    """Base exception for all pathcluster errors."""


class ConfigurationError(PathClusterError):
    """Raised when a clustering run is configured in a way that cannot work.

    Examples are a cluster count larger than the number of trajectories,
    zero selected principal components, or an unknown selector value.
    Always raised before any clustering work begins.
    """


class ConfigParseError(ConfigurationError):
    """Raised when a CLUSTER.CFG namelist has format errors.

    Attributes:
        line_number: The line number where the error was detected.
        expected: Description of the expected format.
    """

    def __init__(self, message: str, line_number: int | None = None,
                 expected: str | None = None):
        self.line_number = line_number
        self.expected = expected
        parts = [message]
        if line_number is not None:
            parts.append(f"line {line_number}")
        if expected is not None:
            parts.append(f"expected: {expected}")
        super().__init__(" | ".join(parts))


class InvalidDataError(PathClusterError):
    """Raised when the coordinate matrix is empty, not 2-D, or not finite."""


class DistanceCacheError(PathClusterError):
    """Raised when a persisted distance matrix does not match the dataset."""


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------

class InitializationStrategy(IntEnum):
    """How k-means picks its first cluster centers."""
    RANDOM_POSITION = 1
    FROM_SAMPLES = 2
    FAR_SAMPLES = 3


class PostProcessing(IntEnum):
    """Clustering performed in the PCA-reduced space."""
    KMEANS = 1
    AHC_AVERAGE = 2


class MetricOption(IntEnum):
    """Built-in dissimilarity measures between a center and a trajectory."""
    EUCLIDEAN = 0
    MANHATTAN = 1
    CHEBYSHEV = 2
    MEAN_POINTWISE = 3   # mean per-vertex distance of 3-D polylines
    COSINE = 4


def _resolve(enum_cls: type[IntEnum], value: Any, what: str) -> IntEnum:
    """Coerce *value* into *enum_cls*, raising ConfigurationError if unknown."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(int(value))
    except (TypeError, ValueError):
        choices = ", ".join(f"{m.value}={m.name}" for m in enum_cls)
        raise ConfigurationError(
            f"Unknown {what} '{value}' (valid: {choices})"
        ) from None


def resolve_initialization(value: Any) -> InitializationStrategy:
    return _resolve(InitializationStrategy, value, "initialization option")


def resolve_post_processing(value: Any) -> PostProcessing:
    return _resolve(PostProcessing, value, "post-processing option")


def resolve_metric(value: Any) -> MetricOption:
    return _resolve(MetricOption, value, "metric option")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CLUSTERS = 8
VARIANCE_THRESHOLD = 0.999


def _require_integer(value: Any, what: str, minimum: int) -> int:
    """Return *value* as an int, rejecting fractional, boolean or too-small values."""
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise ConfigurationError(f"{what} must be an integer, got {value!r}")
    if not float(value).is_integer():
        raise ConfigurationError(f"{what} must be an integer, got {value!r}")
    if int(value) < minimum:
        raise ConfigurationError(f"{what} must be >= {minimum}, got {value}")
    return int(value)


@dataclass
class ClusteringConfig:
    """Complete clustering configuration, as parsed from CLUSTER.CFG."""
    n_clusters: int = DEFAULT_CLUSTERS
    initialization: InitializationStrategy = InitializationStrategy.FAR_SAMPLES
    post_processing: PostProcessing = PostProcessing.KMEANS
    metric: MetricOption = MetricOption.EUCLIDEAN
    num_workers: int = 8
    max_iterations: int = 20
    seed: Optional[int] = None
    is_pbf: bool = False              # PBF datasets skip the distance-matrix cache
    variance_threshold: float = VARIANCE_THRESHOLD
    cache_dir: Optional[str] = None   # None disables the distance-matrix cache

    def validate(self) -> "ClusteringConfig":
        """Check every selector and bound, normalising selectors to enums.

        Raises
        ------
        ConfigurationError
            On the first invalid field.
        """
        self.initialization = resolve_initialization(self.initialization)
        self.post_processing = resolve_post_processing(self.post_processing)
        self.metric = resolve_metric(self.metric)
        self.n_clusters = _require_integer(self.n_clusters, "Number of clusters", 1)
        self.num_workers = _require_integer(self.num_workers, "Number of workers", 1)
        self.max_iterations = _require_integer(self.max_iterations, "Maximum iterations", 1)
        if self.seed is not None:
            self.seed = _require_integer(self.seed, "Random seed", 0)
        if not 0.0 < float(self.variance_threshold) <= 1.0:
            raise ConfigurationError(
                f"Variance threshold must be in (0, 1], got {self.variance_threshold}"
            )
        return self


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RepresentativeLine:
    """A trajectory picked to stand for its cluster."""
    row_index: int
    cluster_id: int


@dataclass
class MeanLine:
    """A cluster centroid expressed in the original coordinate space."""
    coordinates: np.ndarray   # (M,)
    cluster_id: int


@dataclass
class ClusterEvaluation:
    """Quality scores reported for one clustering run."""
    silhouette: Optional[float] = None
    cluster_silhouettes: list[float] = field(default_factory=list)
    validity: Optional[float] = None


@dataclass
class ClusteringResult:
    """Everything a clustering run hands back to the caller.

    Attributes
    ----------
    labels : np.ndarray
        (N,) renumbered cluster ids; smallest cluster is 0.
    sizes : np.ndarray
        (N,) size of the cluster each trajectory belongs to.
    centers : np.ndarray
        (groupNo, M) centroids in original coordinates, row i is cluster i.
    mean_lines, closest, furthest : list
        One entry per non-empty cluster, in raw cluster order.
    group_count : int
        Number of non-empty clusters.
    entropy : float or None
        Balanced entropy; ``None`` when ``group_count <= 1``.
    n_iter : int
        k-means iterations, or AHC merge steps.
    """
    labels: np.ndarray
    sizes: np.ndarray
    centers: np.ndarray
    mean_lines: list[MeanLine]
    closest: list[RepresentativeLine]
    furthest: list[RepresentativeLine]
    group_count: int
    entropy: Optional[float]
    n_iter: int = 0
    reduced: Optional[np.ndarray] = None
    n_components: Optional[int] = None
    evaluation: ClusterEvaluation = field(default_factory=ClusterEvaluation)
    metadata: dict[str, Any] = field(default_factory=dict)
