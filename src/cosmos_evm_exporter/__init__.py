"""
Cosmos/EVM validator block exporter.

Tracks whether blocks proposed by a consensus-layer validator are confirmed
on the paired execution layer and exports the results to Prometheus.
"""

from .config import ExporterConfig
from .correlation_engine import CorrelationEngine, CorrelationResult, SearchWindow
from .exporter import CosmosEvmExporter
from .metrics import BlockMetrics
from .models import ConsensusBlock, ExecutionBlock

__all__ = [
    "BlockMetrics",
    "ConsensusBlock",
    "CorrelationEngine",
    "CorrelationResult",
    "CosmosEvmExporter",
    "ExecutionBlock",
    "ExporterConfig",
    "SearchWindow",
]
__version__ = "0.1.0"
