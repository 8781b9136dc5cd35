"""Current-height queries for the consensus and execution layers."""

import logging
from typing import Any

import httpx

from .errors import ParseError
from .utils.fetch_client import BackoffPolicy, ResilientFetchClient
from .utils.parsing import parse_decimal_height, parse_hex_height

logger = logging.getLogger(__name__)

BLOCK_NUMBER_REQUEST: dict[str, Any] = {
    "jsonrpc": "2.0",
    "id": "1",
    "method": "eth_blockNumber",
    "params": [],
}


def _decode_json(response: httpx.Response, layer: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ParseError(f"failed to decode response: {e}", layer=layer) from e


class HeightReader:
    """Reads the latest height of each chain through the shared fetch client."""

    def __init__(
        self,
        fetch_client: ResilientFetchClient,
        rpc_endpoint: str,
        eth_endpoint: str,
        policy: BackoffPolicy | None = None,
    ) -> None:
        """
        Initialize the reader.

        Args:
            fetch_client: Shared HTTP client
            rpc_endpoint: Consensus-layer RPC endpoint
            eth_endpoint: Execution-layer JSON-RPC endpoint
            policy: Retry policy for height queries (exponential by default)
        """
        self.fetch_client = fetch_client
        self.rpc_endpoint = rpc_endpoint.rstrip("/")
        self.eth_endpoint = eth_endpoint
        self.policy = policy or BackoffPolicy.exponential_backoff()

    async def current_cl_height(self) -> int:
        """
        Latest consensus height from ``/status``.

        :raises NetworkError: If the endpoint stays unreachable
        :raises ParseError: If the height field is missing or not decimal
        """
        response = await self.fetch_client.request(
            "GET", f"{self.rpc_endpoint}/status", policy=self.policy
        )
        status = _decode_json(response, "consensus")

        try:
            raw_height = status["result"]["sync_info"]["latest_block_height"]
        except (KeyError, TypeError) as e:
            raise ParseError(
                f"status response has no latest_block_height: {e}", layer="consensus"
            ) from e

        try:
            return parse_decimal_height(raw_height)
        except ParseError as e:
            e.layer = "consensus"
            raise

    async def current_el_height(self) -> int:
        """
        Latest execution height from ``eth_blockNumber``.

        :raises NetworkError: If the endpoint stays unreachable
        :raises ParseError: If the result is missing or not hexadecimal
        """
        response = await self.fetch_client.request(
            "POST",
            self.eth_endpoint,
            policy=self.policy,
            json=BLOCK_NUMBER_REQUEST,
            headers={"Content-Type": "application/json"},
        )
        body = _decode_json(response, "execution")

        if not isinstance(body, dict):
            raise ParseError(f"unexpected eth_blockNumber response: {body!r}", layer="execution")
        if "error" in body:
            raise ParseError(f"eth_blockNumber returned error: {body['error']}", layer="execution")

        try:
            return parse_hex_height(body.get("result"))
        except ParseError as e:
            e.layer = "execution"
            raise
