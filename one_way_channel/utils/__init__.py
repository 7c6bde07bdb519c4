"""
One-Way Channel - Utilities Package
=====================================
Wire primitives, JSON helpers and validators.
"""

from one_way_channel.utils.serialization import (
    serialize_to_json,
    deserialize_from_json,
    hex_to_bytes,
    compact_size,
    read_compact_size,
    ByteReader,
)
from one_way_channel.utils.validators import (
    validate_amount,
    validate_uint32,
    validate_pubkey,
    validate_txid,
)

__all__ = [
    # Serialization
    "serialize_to_json",
    "deserialize_from_json",
    "hex_to_bytes",
    "compact_size",
    "read_compact_size",
    "ByteReader",

    # Validators
    "validate_amount",
    "validate_uint32",
    "validate_pubkey",
    "validate_txid",
]
