"""Core clustering algorithms and data models."""

from pathcluster.core.ahc import AHCEngine, AHCNode, AHCState, DistNode, MergeRecord, replay
from pathcluster.core.initialization import Initializer
from pathcluster.core.kmeans import KMeansEngine, KMeansPhase, KMeansState
from pathcluster.core.pca import PCAReducer, PCAResult

__all__ = [
    'AHCEngine',
    'AHCNode',
    'AHCState',
    'DistNode',
    'Initializer',
    'KMeansEngine',
    'KMeansPhase',
    'KMeansState',
    'MergeRecord',
    'PCAReducer',
    'PCAResult',
    'replay',
]
