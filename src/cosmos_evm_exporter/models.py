#!/usr/bin/env python3
"""Data models for the exporter.

This module provides immutable data classes for the consensus and execution
blocks handled by the correlation engine, plus the decoded form of a
consensus-layer transaction.
"""

from dataclasses import dataclass
from typing import Any

from web3 import Web3
from web3.types import BlockData

from .errors import InvalidBlockError
from .utils.parsing import parse_decimal_height


@dataclass(frozen=True, slots=True)
class ConsensusBlock:
    """Represents a block returned by the CometBFT ``/block`` endpoint.

    The height is kept as the decimal string the node returned; parsing it
    is left to the consumer so a malformed height fails only the call that
    needs it.

    Attributes:
        block_hash: Block ID hash
        height_text: Header height as a decimal string
        proposer_address: Address of the validator that proposed the block
        txs: Opaque base64-encoded transactions, in block order
        chain_id: Chain ID from the header
    """

    block_hash: str
    height_text: str
    proposer_address: str
    txs: tuple[str, ...] = ()
    chain_id: str = ""

    def __str__(self) -> str:
        """Human-readable string representation."""
        return (
            f"ConsensusBlock(height={self.height_text}, "
            f"proposer={self.proposer_address[:8]}..., "
            f"txs={len(self.txs)})"
        )

    @property
    def height(self) -> int:
        """Header height as an integer.

        Raises:
            ParseError: If the header height is not a decimal string
        """
        return parse_decimal_height(self.height_text)

    @property
    def is_empty(self) -> bool:
        """Whether the block carries no transactions."""
        return not self.txs

    @classmethod
    def from_response(cls, payload: Any) -> "ConsensusBlock":
        """Build a block from a decoded ``/block`` JSON response.

        Args:
            payload: Decoded JSON body

        Returns:
            ConsensusBlock instance

        Raises:
            InvalidBlockError: If the response lacks the block structure
        """
        try:
            result = payload["result"]
            header = result["block"]["header"]
            block_hash = result["block_id"]["hash"] or ""
            height_text = str(header.get("height") or "")
            proposer = header.get("proposer_address") or ""
            txs = (result["block"].get("data") or {}).get("txs") or []
            chain_id = header.get("chain_id") or ""
        except (KeyError, TypeError, AttributeError) as e:
            raise InvalidBlockError(
                f"malformed block response: missing {e}", layer="consensus"
            ) from e

        return cls(
            block_hash=block_hash,
            height_text=height_text,
            proposer_address=proposer,
            txs=tuple(txs),
            chain_id=chain_id,
        )


@dataclass(frozen=True, slots=True)
class ExecutionBlock:
    """Represents an execution-layer block header summary.

    Attributes:
        height: Block number
        producer: Coinbase address credited with the block (checksummed)
        block_hash: Block hash with 0x prefix
        transaction_count: Number of transactions in the block
    """

    height: int
    producer: str
    block_hash: str
    transaction_count: int

    def __str__(self) -> str:
        """Human-readable string representation."""
        return (
            f"ExecutionBlock(number={self.height}, "
            f"producer={self.producer[:10]}..., "
            f"txs={self.transaction_count})"
        )

    @property
    def is_empty(self) -> bool:
        """Whether the block carries no transactions."""
        return self.transaction_count == 0

    @classmethod
    def from_block_data(cls, block: BlockData) -> "ExecutionBlock":
        """Build a summary from a web3 ``BlockData`` mapping."""
        block_hash = block.get("hash")
        if isinstance(block_hash, bytes):
            block_hash = Web3.to_hex(block_hash)

        return cls(
            height=int(block["number"]),
            producer=str(block.get("miner", "")),
            block_hash=block_hash or "",
            transaction_count=len(block.get("transactions", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "height": self.height,
            "producer": self.producer,
            "block_hash": self.block_hash,
            "transaction_count": self.transaction_count,
        }


@dataclass(frozen=True, slots=True)
class EVMChainTx:
    """A consensus-layer transaction carrying an EVM chain message.

    Attributes:
        msg_type: Big-endian message type from the first four bytes
        data_length: Declared payload length from the next four bytes
        payload: The payload bytes
    """

    msg_type: int
    data_length: int
    payload: bytes

    def __str__(self) -> str:
        return f"EVMChainTx(type=0x{self.msg_type:x}, length={self.data_length})"
