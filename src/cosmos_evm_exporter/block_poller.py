"""
Polling loop that walks consensus heights and feeds the correlation engine.

"""

import asyncio
import logging

from .block_fetcher import BlockFetcher
from .correlation_engine import CorrelationEngine
from .errors import ExporterError, InvalidBlockError
from .height_reader import HeightReader
from .metrics import BlockMetrics
from .models import ConsensusBlock


def should_advance_after_error(
    block: ConsensusBlock,
    error: Exception,
    target_validator: str,
) -> bool:
    """
    Decide whether the cursor moves on after a processing error.

    The height is held for retry only when the block was structurally
    invalid and belongs to the monitored validator. Every other failure,
    including a parse error or an unavailable gap on our own block,
    advances so the proposal is not counted twice.

    Args:
        block: The block that failed processing
        error: The error raised while processing it
        target_validator: Proposer address of the monitored validator

    Returns:
        True if the cursor should advance to the next height
    """
    if isinstance(error, InvalidBlockError) and block.proposer_address == target_validator:
        return False
    return True


class BlockPoller:
    """
    Walks consensus heights one by one and runs the correlation engine.

    The cursor starts at the current consensus height, is never persisted
    and only moves forward. A failed block fetch leaves it in place so the
    same height is retried on the next iteration.
    """

    def __init__(
        self,
        height_reader: HeightReader,
        block_fetcher: BlockFetcher,
        engine: CorrelationEngine,
        metrics: BlockMetrics,
        stop_event: asyncio.Event | None = None,
        poll_interval: float = 0.5,
        error_retry_delay: float = 2.0,
    ):
        """
        Initialize the poller.

        Args:
            height_reader: Source of the starting consensus height
            block_fetcher: Fetcher for consensus blocks
            engine: Correlation engine to drive
            metrics: Metric sink
            stop_event: Shared cancellation signal
            poll_interval: Pause between iterations in seconds
            error_retry_delay: Pause after a failed height or block fetch
        """
        self.height_reader = height_reader
        self.block_fetcher = block_fetcher
        self.engine = engine
        self.metrics = metrics
        self.stop_event = stop_event or asyncio.Event()
        self.poll_interval = poll_interval
        self.error_retry_delay = error_retry_delay

        # State tracking
        self.cursor: int | None = None
        self.error_count = 0

        # Setup logging
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def is_running(self) -> bool:
        return not self.stop_event.is_set()

    async def pause(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early when stop is requested."""
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass  # Delay elapsed without a stop request

    async def step(self) -> None:
        """
        Run one iteration of the loop.

        Resolves the starting height if needed, fetches the block at the
        cursor and processes it. Error pauses happen here; the regular
        inter-iteration pause is left to ``run``.
        """
        if self.cursor is None:
            try:
                self.cursor = await self.height_reader.current_cl_height()
                self.logger.info(f"Starting from consensus height {self.cursor}")
            except ExporterError as e:
                self._record_error(f"Failed to get current height: {e}")
                await self.pause(self.error_retry_delay)
                return

        height = self.cursor
        try:
            block = await self.block_fetcher.fetch_consensus_block(height)
        except ExporterError as e:
            self._record_error(f"Failed to get block {height}: {e}")
            await self.pause(self.error_retry_delay)
            return

        try:
            await self.engine.process_block(block)
        except ExporterError as e:
            self._record_error(f"Error processing block {height}: {e}")
            if not should_advance_after_error(block, e, self.engine.target_validator):
                self.logger.warning(f"Holding cursor at {height} for retry")
                return

        self.cursor = height + 1

    async def run(self) -> None:
        """
        Poll until the stop event is set.

        Errors never end the loop; they are counted and the loop carries on.
        """
        self.logger.info(f"Starting block polling for validator {self.engine.target_validator}")

        while self.is_running:
            try:
                await self.step()
            except asyncio.CancelledError:
                self.logger.info("Polling cancelled")
                raise
            except Exception as e:
                self._record_error(f"Unexpected error in polling loop: {e}", exc_info=True)
                await self.pause(self.error_retry_delay)

            await self.pause(self.poll_interval)

        self.logger.info(f"Block polling stopped at height {self.cursor}")

    def stop(self) -> None:
        """Request the loop to stop at its next suspension point."""
        self.logger.info("Stopping block polling")
        self.stop_event.set()

    def _record_error(self, message: str, exc_info: bool = False) -> None:
        self.metrics.errors.inc()
        self.error_count += 1
        self.logger.error(message, exc_info=exc_info)
