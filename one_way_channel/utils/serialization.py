"""
One-Way Channel - Serialization Utilities
===========================================
Wire primitives (compact size, little-endian ints) e helper JSON/hex
per gli snapshot di canale.
"""

import json
import struct
from typing import Any, Optional
from datetime import datetime

from one_way_channel.errors import TransactionDecodeError
from one_way_channel.logging_setup import get_logger

logger = get_logger("utils.serialization")


# ============================================================================
# JSON SERIALIZATION
# ============================================================================

def serialize_to_json(obj: Any, indent: Optional[int] = None) -> str:
    """
    Serialize object to JSON string.

    Handles datetime, bytes, and objects exposing to_dict().

    Args:
        obj: Object to serialize
        indent: JSON indentation (None = compact)

    Returns:
        str: JSON string
    """
    def default_handler(o):
        if isinstance(o, datetime):
            return o.isoformat()
        elif isinstance(o, bytes):
            return o.hex()
        elif hasattr(o, 'to_dict'):
            return o.to_dict()
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")

    return json.dumps(obj, default=default_handler, indent=indent, sort_keys=True)


def deserialize_from_json(json_str: str) -> Any:
    """Deserialize JSON string to Python object."""
    try:
        return json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.error(f"Deserialization failed: {e}")
        raise


# ============================================================================
# BYTES/HEX CONVERSION
# ============================================================================

def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert hex string to bytes.

    Raises:
        TransactionDecodeError: If invalid hex string
    """
    try:
        return bytes.fromhex(hex_str)
    except ValueError as e:
        raise TransactionDecodeError(
            f"Invalid hex string: {e}",
            code="INVALID_HEX"
        )


# ============================================================================
# BINARY SERIALIZATION
# ============================================================================

def uint32_le(value: int) -> bytes:
    return struct.pack("<I", value)


def int32_le(value: int) -> bytes:
    return struct.pack("<i", value)


def int64_le(value: int) -> bytes:
    return struct.pack("<q", value)


def compact_size(value: int) -> bytes:
    """
    Encode integer in Bitcoin compact size format.

    Args:
        value: Integer to encode (0 <= value < 2**64)

    Returns:
        bytes: Compact size bytes

    Examples:
        >>> compact_size(252).hex()
        'fc'
        >>> compact_size(253).hex()
        'fdfd00'
    """
    if value < 0:
        raise ValueError(f"compact_size of negative value: {value}")
    if value < 0xfd:
        return bytes([value])
    elif value <= 0xffff:
        return b'\xfd' + value.to_bytes(2, 'little')
    elif value <= 0xffffffff:
        return b'\xfe' + value.to_bytes(4, 'little')
    else:
        return b'\xff' + value.to_bytes(8, 'little')


def var_bytes(data: bytes) -> bytes:
    """Length-prefixed bytes"""
    return compact_size(len(data)) + data


def read_compact_size(data: bytes, offset: int = 0) -> tuple[int, int]:
    """
    Read compact size from bytes.

    Args:
        data: Bytes data
        offset: Start offset

    Returns:
        tuple: (value, bytes_read)
    """
    reader = ByteReader(data, offset)
    value = reader.read_compact_size()
    return value, reader.offset - offset


# ============================================================================
# BYTE READER
# ============================================================================

class ByteReader:
    """
    Cursore di lettura su bytes con bounds check.

    Ogni lettura oltre la fine solleva TransactionDecodeError.

    Example:
        >>> reader = ByteReader(bytes.fromhex("0200000001"))
        >>> reader.read_int32()
        2
        >>> reader.read_compact_size()
        1
    """

    def __init__(self, data: bytes, offset: int = 0):
        self.data = bytes(data)
        self.offset = offset

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def peek(self, n: int = 1) -> bytes:
        return self.data[self.offset:self.offset + n]

    def read(self, n: int) -> bytes:
        if n < 0 or self.offset + n > len(self.data):
            raise TransactionDecodeError(
                "Unexpected end of data",
                code="TRUNCATED_DATA",
                details={"offset": self.offset, "wanted": n, "available": self.remaining()}
            )
        chunk = self.data[self.offset:self.offset + n]
        self.offset += n
        return chunk

    def read_uint8(self) -> int:
        return self.read(1)[0]

    def read_uint32(self) -> int:
        return struct.unpack("<I", self.read(4))[0]

    def read_int32(self) -> int:
        return struct.unpack("<i", self.read(4))[0]

    def read_int64(self) -> int:
        return struct.unpack("<q", self.read(8))[0]

    def read_compact_size(self) -> int:
        first = self.read_uint8()
        if first < 0xfd:
            return first
        if first == 0xfd:
            value, minimum = int.from_bytes(self.read(2), 'little'), 0xfd
        elif first == 0xfe:
            value, minimum = int.from_bytes(self.read(4), 'little'), 0x10000
        else:
            value, minimum = int.from_bytes(self.read(8), 'little'), 0x100000000

        if value < minimum:
            raise TransactionDecodeError(
                "Non-canonical compact size",
                code="NON_CANONICAL_COMPACT_SIZE",
                details={"value": value}
            )
        return value

    def read_var_bytes(self) -> bytes:
        length = self.read_compact_size()
        return self.read(length)

    def assert_exhausted(self):
        if self.remaining():
            raise TransactionDecodeError(
                "Trailing data after transaction",
                code="TRAILING_DATA",
                details={"trailing_bytes": self.remaining()}
            )


__all__ = [
    "serialize_to_json",
    "deserialize_from_json",
    "hex_to_bytes",
    "uint32_le",
    "int32_le",
    "int64_le",
    "compact_size",
    "var_bytes",
    "read_compact_size",
    "ByteReader",
]
