"""Clustering pipelines, post-processing and evaluation."""

from pathcluster.analysis.evaluation import SilhouetteEvaluator, ValidityEvaluator
from pathcluster.analysis.pipeline import TrajectoryClustering
from pathcluster.analysis.postprocess import ClusterPostProcessor

__all__ = [
    'ClusterPostProcessor',
    'SilhouetteEvaluator',
    'TrajectoryClustering',
    'ValidityEvaluator',
]
