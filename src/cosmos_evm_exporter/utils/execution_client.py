"""
Execution-layer RPC client.

Wraps a long-lived ``AsyncWeb3`` connection and converts web3 block data and
exceptions into the exporter's own types.
"""

import logging
from typing import Literal

from web3 import AsyncWeb3
from web3.exceptions import BlockNotFound
from web3.providers import AsyncHTTPProvider

from ..errors import NetworkError, NotFoundError
from ..models import ExecutionBlock

logger = logging.getLogger(__name__)


class ExecutionClient:
    """
    Utility for reading execution-layer blocks via HTTP JSON-RPC.

    The same ``AsyncWeb3`` instance serves every call; requests are
    stateless so it is safe to share across tasks.
    """

    def __init__(self, rpc_url: str, request_timeout: float = 10.0, w3: AsyncWeb3 | None = None) -> None:
        """
        Initialize the execution client.

        Args:
            rpc_url: HTTP RPC endpoint of the execution layer
            request_timeout: HTTP request timeout in seconds
            w3: Pre-built AsyncWeb3 instance, mainly for tests
        """
        self.rpc_url = rpc_url
        self.w3 = w3 or AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout})
        )

    async def get_block(self, block_number: int | Literal["latest"]) -> ExecutionBlock:
        """
        Fetch a block by number.

        :param block_number: Block number, or "latest"
        :return: Summary of the block
        :raises NotFoundError: If the node has no block at that number
        :raises NetworkError: On any other RPC failure
        """
        try:
            block = await self.w3.eth.get_block(block_number)
        except BlockNotFound as e:
            raise NotFoundError(f"block {block_number} not found", layer="execution") from e
        except Exception as e:
            raise NetworkError(
                f"failed to fetch block {block_number}: {e}", layer="execution"
            ) from e

        if block is None:
            raise NotFoundError(f"block {block_number} not found", layer="execution")

        return ExecutionBlock.from_block_data(block)

    async def disconnect(self) -> None:
        """Release the provider's HTTP session, if it holds one."""
        provider = self.w3.provider
        if hasattr(provider, "disconnect"):
            await provider.disconnect()
