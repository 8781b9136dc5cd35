#!/usr/bin/env python3
"""Cross-layer correlation of validator proposals.

This module locates the execution block produced for a consensus block
proposed by the monitored validator. The expected execution height is
derived from the current gap between the chains, then a small window of
execution heights is scanned for a block whose coinbase is the validator's
EVM address. The window follows the previous hit while blocks keep arriving
in a steady cadence and re-centers on the gap estimate otherwise.
"""

import logging
from dataclasses import dataclass

from .block_fetcher import BlockFetcher
from .decoder import decode_tx, dump_payload
from .errors import ExporterError, InvalidBlockError, ParseError
from .gap_tracker import GapTracker
from .metrics import BlockMetrics
from .models import ConsensusBlock, ExecutionBlock

# Get logger for this module
logger = logging.getLogger(__name__)

WINDOW_OFFSET = 2  # heights checked on each side of the expected height
CONTINUATION_DISTANCE = 5  # max drift from the last hit that keeps the window advancing


@dataclass(frozen=True, slots=True)
class SearchWindow:
    """Inclusive range of execution heights to scan."""

    start: int
    end: int

    def heights(self) -> range:
        """Heights in ascending scan order."""
        return range(self.start, self.end + 1)

    def __str__(self) -> str:
        return f"[{self.start}, {self.end}]"


@dataclass(frozen=True, slots=True)
class CorrelationResult:
    """Outcome of correlating one validator block.

    Attributes:
        cl_height: Consensus height of the proposal
        expected_el_height: Execution height predicted from the gap
        window: Heights that were scanned
        match: The execution block produced by the validator, if found
        consensus_empty: Whether the consensus block had no transactions
            (None when it could not be re-fetched)
    """

    cl_height: int
    expected_el_height: int
    window: SearchWindow
    match: ExecutionBlock | None
    consensus_empty: bool | None

    @property
    def confirmed(self) -> bool:
        return self.match is not None


class CorrelationEngine:
    """Matches validator proposals to execution blocks.

    The only state carried between calls is ``last_found_el_height``
    (0 until the first match). It is kept in memory only, so a restart
    starts again from a re-centered window.
    """

    def __init__(
        self,
        target_validator: str,
        evm_address: str,
        gap_tracker: GapTracker,
        block_fetcher: BlockFetcher,
        metrics: BlockMetrics,
    ) -> None:
        """
        Initialize the engine.

        Args:
            target_validator: Consensus proposer address to watch
            evm_address: Execution coinbase address of the same validator
            gap_tracker: Source of the current CL/EL gap
            block_fetcher: Fetcher for both chains
            metrics: Metric sink
        """
        self.target_validator = target_validator
        self.evm_address = evm_address
        self.gap_tracker = gap_tracker
        self.block_fetcher = block_fetcher
        self.metrics = metrics
        self.last_found_el_height = 0

    def is_target_block(self, block: ConsensusBlock) -> bool:
        """Whether the block was proposed by the monitored validator."""
        return block.proposer_address == self.target_validator

    def select_window(self, expected_el_height: int) -> SearchWindow:
        """
        Choose the execution heights to scan.

        After a recent hit the window starts right after it and keeps the
        same width; otherwise it is centered on the expected height.
        """
        last = self.last_found_el_height
        if last > 0 and expected_el_height - last <= CONTINUATION_DISTANCE:
            start = last + 1
            return SearchWindow(start, start + 2 * WINDOW_OFFSET)

        return SearchWindow(expected_el_height - WINDOW_OFFSET, expected_el_height + WINDOW_OFFSET)

    async def process_block(self, block: ConsensusBlock) -> CorrelationResult | None:
        """
        Correlate a consensus block with the execution layer.

        Blocks from other proposers are ignored. Failures before the window
        scan (unparseable height, unavailable gap) abort the call; failures
        while scanning individual heights are counted and skipped.

        :param block: Consensus block to process
        :return: The correlation outcome, or None if the block is not ours
        :raises InvalidBlockError: If the block hash or proposer is empty
        :raises ParseError: If the header height is not a decimal string
        :raises ExporterError: If the gap cannot be measured
        """
        if not block.block_hash:
            raise InvalidBlockError("block is nil or invalid")
        if not block.proposer_address:
            raise InvalidBlockError(f"received empty proposer address for height {block.height_text}")

        logger.debug(f"Processing block {block.height_text} proposed by {block.proposer_address}")

        if not self.is_target_block(block):
            return None

        cl_height = block.height
        self.metrics.current_height.set(cl_height)
        self.metrics.total_proposed.inc()
        logger.info(f"Found validator block at height {cl_height}")

        if logger.isEnabledFor(logging.DEBUG):
            self._log_transactions(block)

        gap = await self.gap_tracker.current_gap()
        expected_el_height = cl_height - gap
        window = self.select_window(expected_el_height)
        logger.info(
            f"CL height {cl_height}: expected EL height {expected_el_height} "
            f"(gap {gap}), scanning {window}"
        )

        consensus_empty = await self._check_consensus_empty(cl_height)
        match = await self._scan_window(cl_height, window)

        if match is None:
            self.metrics.execution_missed.inc()
            logger.warning(f"✗ Block not found in range {window.start} to {window.end}")

        return CorrelationResult(
            cl_height=cl_height,
            expected_el_height=expected_el_height,
            window=window,
            match=match,
            consensus_empty=consensus_empty,
        )

    async def _check_consensus_empty(self, cl_height: int) -> bool | None:
        """Re-fetch the consensus block and count it if it has no transactions."""
        try:
            block = await self.block_fetcher.fetch_consensus_block(cl_height)
        except ExporterError as e:
            self.metrics.errors.inc()
            logger.error(f"Failed to get consensus block {cl_height}: {e}")
            return None

        if block.is_empty:
            self.metrics.empty_consensus_blocks.inc()
            logger.info(f"Empty consensus block at height {cl_height}")
        return block.is_empty

    async def _scan_window(self, cl_height: int, window: SearchWindow) -> ExecutionBlock | None:
        """Return the first block in the window produced by our EVM address."""
        for height in window.heights():
            try:
                el_block = await self.block_fetcher.fetch_execution_block(height)
            except ExporterError as e:
                self.metrics.errors.inc()
                logger.error(f"Failed to fetch execution block {height}: {e}")
                continue

            if el_block.producer != self.evm_address:
                continue

            self.last_found_el_height = height
            self.metrics.execution_confirmed.inc()
            logger.info(
                f"✓ Found execution block: CL height {cl_height}, "
                f"EL height {height}, hash {el_block.block_hash}"
            )

            if el_block.is_empty:
                self.metrics.empty_execution_blocks.inc()
                logger.info(f"Empty execution block at height {height}")
            return el_block

        return None

    def _log_transactions(self, block: ConsensusBlock) -> None:
        """Decode and log the block's transactions at debug level."""
        for index, tx in enumerate(block.txs):
            try:
                decoded = decode_tx(tx)
            except ParseError as e:
                logger.debug(f"Tx {index} in block {block.height_text} not decodable: {e}")
                continue

            logger.debug(f"Tx {index} in block {block.height_text}: {decoded}")
            dump_payload(decoded.payload)
