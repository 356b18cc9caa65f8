"""Utility modules."""

from pathcluster.utils.dissimilarity import DissimilarityProvider, StandardDissimilarity

__all__ = [
    'DissimilarityProvider',
    'StandardDissimilarity',
]
