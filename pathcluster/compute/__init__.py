"""Compute backends and parallel execution."""

from pathcluster.compute.parallel import ParallelExecutor

__all__ = [
    'ParallelExecutor',
]
