"""pathcluster - PCA, k-means and hierarchical clustering of flow trajectories.

Groups streamlines or pathlines, each flattened into one row of an N x M
coordinate matrix, and reports per-cluster representatives, centroids and
quality scores.

Package Structure:
    core/       - Data models, PCA, initialization, k-means and AHC engines
    analysis/   - Entry points, post-processing and evaluation
    compute/    - Parallel execution
    data/       - Config parser and distance-matrix cache
    io/         - Result and summary writers
    utils/      - Dissimilarity measures
"""

__version__ = "0.1.0"

# Core
from pathcluster.core.ahc import AHCEngine, AHCNode, AHCState, DistNode, MergeRecord
from pathcluster.core.initialization import Initializer
from pathcluster.core.kmeans import KMeansEngine, KMeansState
from pathcluster.core.models import (
    ClusterEvaluation,
    ClusteringConfig,
    ClusteringResult,
    ConfigParseError,
    ConfigurationError,
    DistanceCacheError,
    InitializationStrategy,
    InvalidDataError,
    MeanLine,
    MetricOption,
    PathClusterError,
    PostProcessing,
    RepresentativeLine,
)
from pathcluster.core.pca import PCAReducer, PCAResult

# Analysis
from pathcluster.analysis.evaluation import SilhouetteEvaluator, ValidityEvaluator
from pathcluster.analysis.pipeline import TrajectoryClustering
from pathcluster.analysis.postprocess import ClusterPostProcessor

# Compute
from pathcluster.compute.parallel import ParallelExecutor

# Data I/O
from pathcluster.data.config_parser import load_config, parse_config, write_cluster_cfg
from pathcluster.data.distance_cache import DistanceMatrixCache
from pathcluster.io.line_writer import ResultWriter
from pathcluster.io.summary_writer import SummaryWriter

# Utils
from pathcluster.utils.dissimilarity import DissimilarityProvider, StandardDissimilarity

__all__ = [
    # Core - Engines
    'AHCEngine',
    'Initializer',
    'KMeansEngine',
    'PCAReducer',
    # Core - State
    'AHCNode',
    'AHCState',
    'DistNode',
    'KMeansState',
    'MergeRecord',
    'PCAResult',
    # Core - Models
    'ClusterEvaluation',
    'ClusteringConfig',
    'ClusteringResult',
    'InitializationStrategy',
    'MeanLine',
    'MetricOption',
    'PostProcessing',
    'RepresentativeLine',
    # Core - Exceptions
    'ConfigParseError',
    'ConfigurationError',
    'DistanceCacheError',
    'InvalidDataError',
    'PathClusterError',
    # Analysis
    'ClusterPostProcessor',
    'SilhouetteEvaluator',
    'TrajectoryClustering',
    'ValidityEvaluator',
    # Compute
    'ParallelExecutor',
    # Data I/O
    'DistanceMatrixCache',
    'ResultWriter',
    'SummaryWriter',
    'load_config',
    'parse_config',
    'write_cluster_cfg',
    # Utils
    'DissimilarityProvider',
    'StandardDissimilarity',
]
