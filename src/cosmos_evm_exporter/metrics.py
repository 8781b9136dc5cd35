"""Prometheus metrics for validator block monitoring.

The metrics live in a dedicated registry owned by ``BlockMetrics`` so that
several exporters (or tests) can coexist in one process.
"""

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)


class BlockMetrics:
    """Counters and gauges updated by the correlation engine and the poller."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Create the metric set.

        Args:
            registry: Registry to register into (a new one by default)
        """
        self.registry = registry or CollectorRegistry()

        self.total_proposed = Counter(
            "validator_total_blocks_proposed",
            "Total number of blocks proposed by our validator",
            registry=self.registry,
        )
        self.execution_confirmed = Counter(
            "validator_execution_blocks_confirmed",
            "Number of proposed blocks that made it to the execution layer",
            registry=self.registry,
        )
        self.execution_missed = Counter(
            "validator_execution_blocks_missed",
            "Number of proposed blocks that failed to make it to the execution layer",
            registry=self.registry,
        )
        self.empty_consensus_blocks = Counter(
            "validator_empty_consensus_blocks",
            "Number of blocks proposed with no transactions on consensus layer",
            registry=self.registry,
        )
        self.empty_execution_blocks = Counter(
            "validator_empty_execution_blocks",
            "Number of blocks confirmed on execution layer with no transactions",
            registry=self.registry,
        )
        self.errors = Counter(
            "validator_block_processing_errors",
            "Number of errors encountered while processing blocks",
            registry=self.registry,
        )
        self.current_height = Gauge(
            "validator_current_block_height",
            "Current block height being processed",
            registry=self.registry,
        )
        self.el_to_cl_gap = Gauge(
            "validator_el_to_cl_gap",
            "Gap between execution and consensus layer block heights",
            registry=self.registry,
        )


def start_metrics_server(port: int, registry: CollectorRegistry, addr: str = "0.0.0.0") -> None:
    """Serve ``/metrics`` for the given registry from a background thread."""
    start_http_server(port, addr=addr, registry=registry)
    logger.info(f"Metrics server listening on {addr}:{port}/metrics")
