#!/usr/bin/env python3
"""Block retrieval for both chains.

Consensus blocks come from the CometBFT ``/block`` endpoint and are only
accepted once they pass the sanity checks; execution blocks come from the
execution-layer RPC.
"""

import logging

import httpx

from .errors import InvalidBlockError, NetworkError
from .models import ConsensusBlock, ExecutionBlock
from .utils.execution_client import ExecutionClient
from .utils.fetch_client import BackoffPolicy, ResilientFetchClient, with_retries

# Get logger for this module
logger = logging.getLogger(__name__)

MIN_BLOCK_RESPONSE_SIZE = 100


def parse_consensus_block(response: httpx.Response) -> ConsensusBlock:
    """Validate a ``/block`` response and build the block from it.

    Args:
        response: Raw HTTP response

    Returns:
        ConsensusBlock with a non-empty block hash and proposer address

    Raises:
        InvalidBlockError: If the body is not JSON, lacks the block
            structure or has an empty block hash or proposer address
    """
    try:
        payload = response.json()
    except ValueError as e:
        raise InvalidBlockError(f"failed to parse block response: {e}", layer="consensus") from e

    if isinstance(payload, dict) and payload.get("error"):
        raise InvalidBlockError(f"block query returned error: {payload['error']}", layer="consensus")

    block = ConsensusBlock.from_response(payload)
    if not block.block_hash:
        raise InvalidBlockError("received empty block hash", layer="consensus")
    if not block.proposer_address:
        raise InvalidBlockError("received empty proposer address", layer="consensus")
    return block


class BlockFetcher:
    """Fetches consensus and execution blocks by height."""

    def __init__(
        self,
        fetch_client: ResilientFetchClient,
        execution_client: ExecutionClient,
        rpc_endpoint: str,
        block_policy: BackoffPolicy | None = None,
        execution_policy: BackoffPolicy | None = None,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            fetch_client: Shared HTTP client for the consensus layer
            execution_client: Execution-layer RPC client
            rpc_endpoint: Consensus-layer RPC endpoint
            block_policy: Retry policy for consensus blocks (2s constant, 6 attempts)
            execution_policy: Retry policy for execution blocks
        """
        self.fetch_client = fetch_client
        self.execution_client = execution_client
        self.rpc_endpoint = rpc_endpoint.rstrip("/")
        self.block_policy = block_policy or BackoffPolicy.constant()
        self.execution_policy = execution_policy or BackoffPolicy.exponential_backoff(max_attempts=2)

    async def fetch_consensus_block(self, height: int) -> ConsensusBlock:
        """
        Fetch the consensus block at a height.

        Short bodies, unparseable JSON and empty proposer addresses are
        retried before the last error is surfaced.

        :param height: Consensus height
        :return: The validated block
        :raises InvalidBlockError: If no attempt produced a valid block
        :raises NetworkError: If the endpoint stays unreachable
        """
        return await self.fetch_client.request(
            "GET",
            f"{self.rpc_endpoint}/block",
            params={"height": height},
            policy=self.block_policy,
            min_body_size=MIN_BLOCK_RESPONSE_SIZE,
            validator=parse_consensus_block,
        )

    async def fetch_execution_block(self, height: int | None) -> ExecutionBlock:
        """
        Fetch the execution block at a height.

        :param height: Block number, or None for the latest block
        :return: Summary of the block
        :raises NotFoundError: If no block exists at that height (not retried)
        :raises NetworkError: On RPC failure after retries
        """
        block_number = "latest" if height is None else height
        return await with_retries(
            lambda: self.execution_client.get_block(block_number),
            self.execution_policy,
            retry_on=(NetworkError,),
            description=f"eth_getBlockByNumber({block_number})",
        )
