"""Shared fixtures and builders for the exporter tests."""

import json
from typing import Any

import pytest

from cosmos_evm_exporter.metrics import BlockMetrics
from cosmos_evm_exporter.models import ConsensusBlock, ExecutionBlock
from cosmos_evm_exporter.utils.fetch_client import BackoffPolicy

TARGET_VALIDATOR = "5C1F4E2A9B7D3E6F0A8C2B4D6E8F0A1C3E5B7D9F"
OTHER_VALIDATOR = "A0B1C2D3E4F5A6B7C8D9E0F1A2B3C4D5E6F7A8B9"
EVM_ADDRESS = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
OTHER_EVM_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc9e7595f0fA99"

NO_DELAY = BackoffPolicy.constant(max_attempts=3, delay=0)


def block_response(
    height: int | str = 100,
    proposer: str = TARGET_VALIDATOR,
    block_hash: str = "D2F5A1B3C4E6F7081920A1B2C3D4E5F60718293A4B5C6D7E8F90A1B2C3D4E5F6",
    txs: list[str] | None = None,
) -> dict[str, Any]:
    """Build a CometBFT ``/block`` response body."""
    return {
        "jsonrpc": "2.0",
        "id": -1,
        "result": {
            "block_id": {"hash": block_hash, "parts": {"total": 1, "hash": "AB" * 32}},
            "block": {
                "header": {
                    "chain_id": "testchain-1",
                    "height": str(height),
                    "time": "2024-05-01T12:00:00.000000000Z",
                    "proposer_address": proposer,
                },
                "data": {"txs": txs if txs is not None else ["AAAAAQAAAAGq"]},
            },
        },
    }


def block_body(**kwargs: Any) -> bytes:
    return json.dumps(block_response(**kwargs)).encode()


def status_response(height: int | str) -> dict[str, Any]:
    """Build a CometBFT ``/status`` response body."""
    return {
        "jsonrpc": "2.0",
        "id": -1,
        "result": {
            "node_info": {"network": "testchain-1"},
            "sync_info": {"latest_block_height": str(height), "catching_up": False},
        },
    }


def consensus_block(
    height: int | str = 100,
    proposer: str = TARGET_VALIDATOR,
    block_hash: str = "D2F5A1B3",
    txs: tuple[str, ...] = ("AAAAAQAAAAGq",),
) -> ConsensusBlock:
    return ConsensusBlock(
        block_hash=block_hash,
        height_text=str(height),
        proposer_address=proposer,
        txs=txs,
    )


def execution_block(height: int, producer: str = OTHER_EVM_ADDRESS, tx_count: int = 3) -> ExecutionBlock:
    return ExecutionBlock(
        height=height,
        producer=producer,
        block_hash=f"0x{height:064x}",
        transaction_count=tx_count,
    )


def sample(metrics: BlockMetrics, name: str) -> float:
    """Read a metric value back from the registry."""
    value = metrics.registry.get_sample_value(name)
    assert value is not None, f"metric {name} not registered"
    return value


@pytest.fixture
def metrics():
    """Fresh metric set on its own registry."""
    return BlockMetrics()
