#!/usr/bin/env python3
"""Service wiring for the Cosmos/EVM exporter.

Builds every component once from configuration and runs the polling loop
and the gauge updaters side by side.
"""

import asyncio
import logging
import signal

from .block_fetcher import BlockFetcher
from .block_poller import BlockPoller
from .config import ExporterConfig
from .correlation_engine import CorrelationEngine
from .gap_tracker import GapTracker
from .height_reader import HeightReader
from .metrics import BlockMetrics, start_metrics_server
from .metrics_updater import MetricsUpdater
from .utils.execution_client import ExecutionClient
from .utils.fetch_client import ResilientFetchClient

# Get logger for this module
logger = logging.getLogger(__name__)


class CosmosEvmExporter:
    """
    Exporter that follows the consensus chain, correlates the monitored
    validator's proposals with execution blocks and publishes the results
    as Prometheus metrics.
    """

    def __init__(
        self,
        config: ExporterConfig,
        metrics: BlockMetrics | None = None,
        fetch_client: ResilientFetchClient | None = None,
        execution_client: ExecutionClient | None = None,
    ) -> None:
        """
        Wire all components from configuration.

        :param config: Exporter configuration object
        :param metrics: Metric set (a fresh registry by default)
        :param fetch_client: Shared HTTP client override, mainly for tests
        :param execution_client: Execution RPC client override, mainly for tests
        """
        self.config = config
        monitoring = config.monitoring

        self.metrics = metrics or BlockMetrics()
        self.stop_event = asyncio.Event()

        self.fetch_client = fetch_client or ResilientFetchClient(
            timeout=monitoring.request_timeout,
            default_policy=monitoring.height_policy,
        )
        self.execution_client = execution_client or ExecutionClient(
            config.endpoints.eth_endpoint,
            request_timeout=monitoring.request_timeout,
        )

        self.height_reader = HeightReader(
            self.fetch_client,
            rpc_endpoint=config.endpoints.rpc_endpoint,
            eth_endpoint=config.endpoints.eth_endpoint,
            policy=monitoring.height_policy,
        )
        self.gap_tracker = GapTracker(self.height_reader)
        self.block_fetcher = BlockFetcher(
            self.fetch_client,
            self.execution_client,
            rpc_endpoint=config.endpoints.rpc_endpoint,
            block_policy=monitoring.block_policy,
            execution_policy=monitoring.execution_block_policy,
        )
        self.engine = CorrelationEngine(
            target_validator=config.validator.target_validator,
            evm_address=config.validator.evm_address,
            gap_tracker=self.gap_tracker,
            block_fetcher=self.block_fetcher,
            metrics=self.metrics,
        )
        self.poller = BlockPoller(
            self.height_reader,
            self.block_fetcher,
            self.engine,
            self.metrics,
            stop_event=self.stop_event,
            poll_interval=monitoring.poll_interval,
            error_retry_delay=monitoring.error_retry_delay,
        )
        self.updater = MetricsUpdater(
            self.height_reader,
            self.gap_tracker,
            self.metrics,
            stop_event=self.stop_event,
            interval=monitoring.metrics_update_interval,
        )

        logger.info(f"Exporter initialized for validator {config.validator.target_validator}")

    def stop(self) -> None:
        """Signal every loop to stop at its next suspension point."""
        if not self.stop_event.is_set():
            logger.info("Shutting down...")
            self.stop_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                logger.debug(f"Signal handler for {sig.name} not supported on this platform")

    async def run(self, serve_metrics: bool = True) -> None:
        """
        Main entry point for the exporter.

        Starts the metrics endpoint, then runs the polling loop and both
        gauge updaters until ``stop`` is called.
        """
        self.config.log_config()

        if serve_metrics:
            start_metrics_server(self.config.metrics_port, self.metrics.registry)

        self._install_signal_handlers()

        tasks = {
            "poller": asyncio.create_task(self.poller.run()),
            "height": asyncio.create_task(self.updater.run_height_updater()),
            "gap": asyncio.create_task(self.updater.run_gap_updater()),
        }
        logger.info(f"Starting exporter (metrics port {self.config.metrics_port})")

        try:
            await asyncio.gather(*tasks.values())
        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)
            raise
        finally:
            self.stop()
            for name, task in tasks.items():
                if not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        logger.debug(f"{name} task cancelled")
            await self.close()
            logger.info("Exporter stopped")

    async def close(self) -> None:
        """Release HTTP connections."""
        await self.fetch_client.aclose()
        await self.execution_client.disconnect()
