#!/usr/bin/env python3
"""Tests for BlockFetcher, the block models and the execution client."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from hexbytes import HexBytes
from web3.exceptions import BlockNotFound

from conftest import EVM_ADDRESS, NO_DELAY, TARGET_VALIDATOR, block_body, block_response, execution_block
from cosmos_evm_exporter.block_fetcher import BlockFetcher
from cosmos_evm_exporter.errors import InvalidBlockError, NetworkError, NotFoundError, ParseError
from cosmos_evm_exporter.models import ConsensusBlock, ExecutionBlock
from cosmos_evm_exporter.utils.execution_client import ExecutionClient
from cosmos_evm_exporter.utils.fetch_client import ResilientFetchClient

RPC = "http://cl-node:26657"


def make_fetcher(handler=None, execution_client=None) -> BlockFetcher:
    handler = handler or (lambda request: httpx.Response(500))
    fetch_client = ResilientFetchClient(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        default_policy=NO_DELAY,
    )
    return BlockFetcher(
        fetch_client,
        execution_client or MagicMock(),
        RPC,
        block_policy=NO_DELAY,
        execution_policy=NO_DELAY,
    )


class TestConsensusBlockModel:
    """Tests for ConsensusBlock parsing."""

    def test_from_response(self):
        """Test building a block from a /block response."""
        block = ConsensusBlock.from_response(block_response(height=4660, txs=["a", "b"]))

        assert block.height == 4660
        assert block.height_text == "4660"
        assert block.proposer_address == TARGET_VALIDATOR
        assert block.txs == ("a", "b")
        assert block.chain_id == "testchain-1"
        assert not block.is_empty

    def test_null_txs_is_empty(self):
        """Test that CometBFT's null tx list yields an empty block."""
        payload = block_response()
        payload["result"]["block"]["data"]["txs"] = None
        assert ConsensusBlock.from_response(payload).is_empty

    def test_missing_result(self):
        """Test that a response without a result is invalid."""
        with pytest.raises(InvalidBlockError):
            ConsensusBlock.from_response({"jsonrpc": "2.0", "id": -1})

    def test_unparseable_height_raises_on_access(self):
        """Test that the height is parsed lazily."""
        block = ConsensusBlock.from_response(block_response(height="12x"))
        with pytest.raises(ParseError):
            _ = block.height


class TestExecutionBlockModel:
    """Tests for ExecutionBlock conversion from web3 block data."""

    def test_from_block_data(self):
        data = {
            "number": 95,
            "miner": EVM_ADDRESS,
            "hash": HexBytes("0x" + "ab" * 32),
            "transactions": [HexBytes("0x01"), HexBytes("0x02")],
        }
        block = ExecutionBlock.from_block_data(data)

        assert block.height == 95
        assert block.producer == EVM_ADDRESS
        assert block.block_hash == "0x" + "ab" * 32
        assert block.transaction_count == 2
        assert not block.is_empty

    def test_empty_block(self):
        data = {"number": 1, "miner": EVM_ADDRESS, "hash": HexBytes("0x" + "00" * 32), "transactions": []}
        assert ExecutionBlock.from_block_data(data).is_empty


class TestFetchConsensusBlock:
    """Tests for BlockFetcher.fetch_consensus_block."""

    @pytest.mark.asyncio
    async def test_fetches_by_height(self):
        """Test the query string and the returned block."""
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, content=block_body(height=100))

        block = await make_fetcher(handler).fetch_consensus_block(100)

        assert block.height == 100
        assert seen[0].path == "/block"
        assert seen[0].params["height"] == "100"

    @pytest.mark.asyncio
    async def test_retries_empty_proposer_then_succeeds(self):
        """Test that an empty proposer is retried until a valid body arrives."""
        calls = []

        def handler(request):
            calls.append(request)
            proposer = "" if len(calls) == 1 else TARGET_VALIDATOR
            return httpx.Response(200, content=block_body(proposer=proposer))

        block = await make_fetcher(handler).fetch_consensus_block(100)
        assert block.proposer_address == TARGET_VALIDATOR
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_empty_proposer_surfaces_invalid_block(self):
        """Test that a persistently empty proposer surfaces InvalidBlockError."""
        handler = lambda request: httpx.Response(200, content=block_body(proposer=""))
        with pytest.raises(InvalidBlockError, match="empty proposer"):
            await make_fetcher(handler).fetch_consensus_block(100)

    @pytest.mark.asyncio
    async def test_empty_block_hash_rejected(self):
        """Test that a block without a block-id hash never passes the sanity checks."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, content=block_body(block_hash=""))

        with pytest.raises(InvalidBlockError, match="empty block hash"):
            await make_fetcher(handler).fetch_consensus_block(100)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_short_body_rejected(self):
        """Test the 100-byte sanity floor."""
        handler = lambda request: httpx.Response(200, content=b'{"result": null}')
        with pytest.raises(InvalidBlockError, match="suspicious"):
            await make_fetcher(handler).fetch_consensus_block(100)

    @pytest.mark.asyncio
    async def test_unparseable_json_rejected(self):
        """Test that long non-JSON bodies are rejected as invalid blocks."""
        handler = lambda request: httpx.Response(200, content=b"<html>" + b"x" * 200 + b"</html>")
        with pytest.raises(InvalidBlockError, match="failed to parse"):
            await make_fetcher(handler).fetch_consensus_block(100)

    @pytest.mark.asyncio
    async def test_height_not_yet_available(self):
        """Test that a JSON-RPC error for a future height is rejected."""
        body = {
            "jsonrpc": "2.0",
            "id": -1,
            "error": {
                "code": -32603,
                "message": "Internal error",
                "data": "height 105 must be less than or equal to the current blockchain height 104",
            },
        }
        handler = lambda request: httpx.Response(200, content=json.dumps(body).encode())
        with pytest.raises(InvalidBlockError, match="returned error"):
            await make_fetcher(handler).fetch_consensus_block(105)


class TestFetchExecutionBlock:
    """Tests for BlockFetcher.fetch_execution_block."""

    @pytest.mark.asyncio
    async def test_fetch_by_height(self):
        client = MagicMock()
        client.get_block = AsyncMock(return_value=execution_block(95))

        block = await make_fetcher(execution_client=client).fetch_execution_block(95)

        assert block.height == 95
        client.get_block.assert_awaited_once_with(95)

    @pytest.mark.asyncio
    async def test_none_means_latest(self):
        client = MagicMock()
        client.get_block = AsyncMock(return_value=execution_block(200))

        await make_fetcher(execution_client=client).fetch_execution_block(None)

        client.get_block.assert_awaited_once_with("latest")

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        """Test that NotFoundError propagates on the first attempt."""
        client = MagicMock()
        client.get_block = AsyncMock(side_effect=NotFoundError("block 500 not found"))

        with pytest.raises(NotFoundError):
            await make_fetcher(execution_client=client).fetch_execution_block(500)
        assert client.get_block.await_count == 1

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self):
        """Test that NetworkError is retried up to the policy bound."""
        client = MagicMock()
        client.get_block = AsyncMock(side_effect=NetworkError("rpc down"))

        with pytest.raises(NetworkError):
            await make_fetcher(execution_client=client).fetch_execution_block(95)
        assert client.get_block.await_count == NO_DELAY.max_attempts


class TestExecutionClient:
    """Tests for ExecutionClient error mapping."""

    def make_client(self, get_block: AsyncMock) -> ExecutionClient:
        w3 = MagicMock()
        w3.eth.get_block = get_block
        return ExecutionClient("http://el-node:8545", w3=w3)

    @pytest.mark.asyncio
    async def test_get_block(self):
        data = {"number": 7, "miner": EVM_ADDRESS, "hash": HexBytes("0x" + "cd" * 32), "transactions": []}
        client = self.make_client(AsyncMock(return_value=data))

        block = await client.get_block(7)

        assert block == ExecutionBlock(7, EVM_ADDRESS, "0x" + "cd" * 32, 0)

    @pytest.mark.asyncio
    async def test_block_not_found(self):
        client = self.make_client(AsyncMock(side_effect=BlockNotFound("no block")))
        with pytest.raises(NotFoundError) as exc_info:
            await client.get_block(7)
        assert exc_info.value.layer == "execution"

    @pytest.mark.asyncio
    async def test_other_failures_become_network_error(self):
        client = self.make_client(AsyncMock(side_effect=ConnectionError("refused")))
        with pytest.raises(NetworkError, match="refused"):
            await client.get_block(7)
