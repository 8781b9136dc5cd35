"""Background refresh of the current-height and gap gauges."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .errors import ExporterError
from .gap_tracker import GapTracker
from .height_reader import HeightReader
from .metrics import BlockMetrics

logger = logging.getLogger(__name__)


class MetricsUpdater:
    """
    Periodically refreshes gauges independently of the polling loop.

    The two refresh loops only read fresh heights and gaps; they never touch
    the correlation engine's state.
    """

    def __init__(
        self,
        height_reader: HeightReader,
        gap_tracker: GapTracker,
        metrics: BlockMetrics,
        stop_event: asyncio.Event,
        interval: float = 5.0,
    ) -> None:
        self.height_reader = height_reader
        self.gap_tracker = gap_tracker
        self.metrics = metrics
        self.stop_event = stop_event
        self.interval = interval

    async def update_height(self) -> None:
        """Set the current height gauge from the consensus layer."""
        height = await self.height_reader.current_cl_height()
        self.metrics.current_height.set(height)

    async def update_gap(self) -> None:
        """Set the gap gauge from a fresh measurement."""
        gap = await self.gap_tracker.current_gap()
        self.metrics.el_to_cl_gap.set(gap)

    async def run_height_updater(self) -> None:
        await self._run_periodically(self.update_height, "current height")

    async def run_gap_updater(self) -> None:
        await self._run_periodically(self.update_gap, "current gap")

    async def _run_periodically(self, update: Callable[[], Awaitable[None]], label: str) -> None:
        while not self.stop_event.is_set():
            try:
                await update()
            except ExporterError as e:
                self.metrics.errors.inc()
                logger.error(f"Failed to get {label}: {e}")
            except Exception as e:
                self.metrics.errors.inc()
                logger.error(f"Unexpected error updating {label}: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass  # Next refresh
