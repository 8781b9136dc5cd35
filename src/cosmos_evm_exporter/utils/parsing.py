"""Height parsing helpers shared by the readers and the block models."""

import re
from typing import Any

from ..errors import ParseError

_DECIMAL_RE = re.compile(r"[0-9]+")
_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def parse_decimal_height(value: Any) -> int:
    """
    Parse a consensus height as reported by CometBFT (a decimal string).

    :param value: The raw field value
    :return: The height as an integer
    :raises ParseError: If the value is not a non-empty decimal string
    """
    if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
        raise ParseError(f"failed to parse block height: {value!r}")
    return int(value)


def parse_hex_height(value: Any) -> int:
    """
    Parse an execution height returned by ``eth_blockNumber``.

    The ``0x`` prefix is optional.

    :param value: The raw ``result`` field
    :return: The height as an integer
    :raises ParseError: If the value is empty or not hexadecimal
    """
    if not isinstance(value, str):
        raise ParseError(f"failed to parse EL height: {value!r}")
    hex_str = value.removeprefix("0x")
    if not _HEX_RE.fullmatch(hex_str):
        raise ParseError(f"failed to parse EL height: {value!r}")
    return int(hex_str, 16)
