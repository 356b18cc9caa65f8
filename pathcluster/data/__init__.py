"""Configuration parsing and distance-matrix caching."""

from pathcluster.data.config_parser import (
    load_config,
    parse_cluster_cfg,
    parse_config,
    write_cluster_cfg,
)
from pathcluster.data.distance_cache import DistanceMatrixCache, dataset_key

__all__ = [
    'DistanceMatrixCache',
    'dataset_key',
    'load_config',
    'parse_cluster_cfg',
    'parse_config',
    'write_cluster_cfg',
]
