"""Decoding of consensus-layer transactions that carry EVM chain messages.

Each transaction is base64 text wrapping an 8-byte header (big-endian
message type, big-endian payload length) followed by the payload.
"""

import base64
import binascii
import logging

from .errors import ParseError
from .models import EVMChainTx

logger = logging.getLogger(__name__)

HEADER_SIZE = 8
CHUNK_SIZE = 32


def decode_tx(tx_base64: str) -> EVMChainTx:
    """
    Decode one base64 transaction.

    :param tx_base64: Transaction as found in ``block.data.txs``
    :return: The decoded transaction
    :raises ParseError: If the text is not base64 or the data is truncated
    """
    try:
        tx_data = base64.b64decode(tx_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ParseError(f"base64 decode failed: {e}") from e

    logger.debug(f"Raw tx data length: {len(tx_data)} bytes")
    if len(tx_data) < HEADER_SIZE:
        raise ParseError(f"tx data too short: {len(tx_data)} bytes")

    msg_type = int.from_bytes(tx_data[0:4], byteorder='big')
    data_length = int.from_bytes(tx_data[4:8], byteorder='big')

    available = len(tx_data) - HEADER_SIZE
    if available < data_length:
        raise ParseError(f"payload length mismatch: expected {data_length}, got {available}")

    return EVMChainTx(
        msg_type=msg_type,
        data_length=data_length,
        payload=tx_data[HEADER_SIZE:HEADER_SIZE + data_length],
    )


def dump_payload(payload: bytes) -> None:
    """Log a payload as full hex and in 32-byte chunks at debug level."""
    logger.debug(f"Payload length: {len(payload)} bytes")
    logger.debug(f"Full payload hex: {payload.hex()}")

    for start in range(0, len(payload), CHUNK_SIZE):
        chunk = payload[start:start + CHUNK_SIZE]
        logger.debug(f"Bytes {start}-{start + len(chunk) - 1}: {chunk.hex()}")
