"""Output writers for clustering results and summaries."""

from pathcluster.io.line_writer import ResultWriter
from pathcluster.io.summary_writer import SummaryWriter

__all__ = [
    'ResultWriter',
    'SummaryWriter',
]
