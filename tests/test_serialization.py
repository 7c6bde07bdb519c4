"""
One-Way Channel - Serialization Tests
=======================================
Unit tests for wire primitives and the transaction model.
"""

import pytest

from one_way_channel.domain.models import OutPoint, TxInput, TxOutput, Transaction
from one_way_channel.errors import InvalidTransactionShape, TransactionDecodeError
from one_way_channel.utils.serialization import (
    ByteReader,
    compact_size,
    read_compact_size,
    serialize_to_json,
    deserialize_from_json,
    hex_to_bytes,
)


def _sample_tx(witness=()):
    return Transaction(
        version=2,
        inputs=(TxInput(OutPoint(b"\x01" * 32, 3), sequence=0xFFFFFFFE, witness=witness),),
        outputs=(
            TxOutput(1_000, bytes.fromhex("0014") + b"\x22" * 20),
            TxOutput(98_900, bytes.fromhex("0014") + b"\x11" * 20),
        ),
        locktime=800_000,
    )


class TestCompactSize:
    """Test compact size encoding"""

    @pytest.mark.parametrize("value,encoded", [
        (0, "00"),
        (252, "fc"),
        (253, "fdfd00"),
        (0xffff, "fdffff"),
        (0x10000, "fe00000100"),
        (0x100000000, "ff0000000001000000"),
    ])
    def test_boundaries(self, value, encoded):
        """Test encoding at each size boundary"""
        assert compact_size(value).hex() == encoded
        assert read_compact_size(bytes.fromhex(encoded)) == (value, len(encoded) // 2)

    def test_non_canonical_rejected(self):
        """Test value encoded with a longer prefix than needed"""
        with pytest.raises(TransactionDecodeError) as exc_info:
            ByteReader(bytes.fromhex("fd1000")).read_compact_size()
        assert exc_info.value.code == "NON_CANONICAL_COMPACT_SIZE"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            compact_size(-1)


class TestByteReader:
    """Test ByteReader bounds"""

    def test_truncated_read(self):
        """Test read beyond end"""
        reader = ByteReader(b"\x01\x02")
        with pytest.raises(TransactionDecodeError) as exc_info:
            reader.read_uint32()
        assert exc_info.value.code == "TRUNCATED_DATA"

    def test_trailing_data(self):
        """Test assert_exhausted with leftover bytes"""
        reader = ByteReader(b"\x01\x02")
        reader.read_uint8()
        with pytest.raises(TransactionDecodeError) as exc_info:
            reader.assert_exhausted()
        assert exc_info.value.code == "TRAILING_DATA"

    def test_var_bytes(self):
        reader = ByteReader(b"\x03abc")
        assert reader.read_var_bytes() == b"abc"
        reader.assert_exhausted()


class TestHexJson:
    """Test hex / JSON helpers"""

    def test_invalid_hex(self):
        with pytest.raises(TransactionDecodeError):
            hex_to_bytes("zz")

    def test_json_bytes(self):
        """Test bytes encoded as hex in JSON"""
        data = deserialize_from_json(serialize_to_json({"b": b"\x01\x02", "a": 1}))
        assert data == {"a": 1, "b": "0102"}


class TestOutPoint:
    """Test OutPoint"""

    def test_display_order(self):
        """Test txid hex is displayed byte-reversed"""
        outpoint = OutPoint.from_hex("00" * 31 + "01", 5)
        assert outpoint.txid == b"\x01" + b"\x00" * 31
        assert str(outpoint) == "00" * 31 + "01:5"

    def test_parse_round_trip(self):
        outpoint = OutPoint(b"\xab" * 32, 7)
        assert OutPoint.parse(str(outpoint)) == outpoint

    def test_invalid(self):
        with pytest.raises(InvalidTransactionShape):
            OutPoint(b"\x00" * 31, 0)
        with pytest.raises(InvalidTransactionShape):
            OutPoint(b"\x00" * 32, -1)
        with pytest.raises(InvalidTransactionShape):
            OutPoint.parse("not-an-outpoint")
        with pytest.raises(InvalidTransactionShape) as exc_info:
            OutPoint.from_hex("zz" * 32, 0)
        assert exc_info.value.code == "INVALID_TXID"


class TestTransaction:
    """Test Transaction serialization"""

    def test_legacy_layout(self):
        """Test unsigned transaction uses the legacy layout"""
        tx = _sample_tx()
        raw = tx.serialize()

        assert raw[:4] == bytes.fromhex("02000000")
        assert raw[4] == 1  # input count, no segwit marker
        assert raw[-4:] == (800_000).to_bytes(4, "little")
        assert Transaction.deserialize(raw) == tx

    def test_witness_layout(self):
        """Test BIP144 marker and flag with witness"""
        tx = _sample_tx(witness=(b"\x30" * 72, b"", b"\x51"))
        raw = tx.serialize()

        assert raw[4:6] == b"\x00\x01"
        assert Transaction.deserialize(raw) == tx
        assert Transaction.from_hex(tx.to_hex()) == tx

    def test_txid_excludes_witness(self):
        """Test txid stable across signing, wtxid not"""
        unsigned = _sample_tx()
        signed = unsigned.with_witness(0, [b"\x01", b"\x02"])

        assert signed.txid() == unsigned.txid()
        assert signed.wtxid() != unsigned.wtxid()
        assert unsigned.wtxid() == unsigned.txid()

    def test_weight_and_vsize(self):
        """Test witness bytes are discounted"""
        unsigned = _sample_tx()
        signed = unsigned.with_witness(0, [b"\x00" * 100])

        base = len(unsigned.serialize())
        assert unsigned.weight() == base * 4
        assert signed.vsize() < len(signed.serialize())

    def test_superfluous_witness_rejected(self):
        """Test segwit marker with all-empty witness stacks"""
        tx = _sample_tx()
        legacy = tx.serialize()
        body = legacy[4:-4]
        forged = legacy[:4] + b"\x00\x01" + body + b"\x00" + legacy[-4:]

        with pytest.raises(TransactionDecodeError) as exc_info:
            Transaction.deserialize(forged)
        assert exc_info.value.code == "SUPERFLUOUS_WITNESS"

    def test_trailing_bytes_rejected(self):
        with pytest.raises(TransactionDecodeError):
            Transaction.deserialize(_sample_tx().serialize() + b"\x00")

    def test_truncated_rejected(self):
        with pytest.raises(TransactionDecodeError):
            Transaction.deserialize(_sample_tx().serialize()[:-1])

    def test_amount_bounds(self):
        """Test negative and overflowing amounts"""
        with pytest.raises(InvalidTransactionShape):
            TxOutput(-1, b"\x51")
        with pytest.raises(InvalidTransactionShape):
            TxOutput(21_000_000 * 100_000_000 + 1, b"\x51")

    def test_locktime_bounds(self):
        with pytest.raises(InvalidTransactionShape):
            Transaction(version=2, inputs=(), outputs=(), locktime=2 ** 32)

    def test_sequence_bounds(self):
        with pytest.raises(InvalidTransactionShape):
            TxInput(OutPoint(b"\x01" * 32, 0), sequence=-1)

    def test_immutable(self):
        tx = _sample_tx()
        with pytest.raises(Exception):
            tx.locktime = 0

    def test_to_dict(self):
        data = _sample_tx().to_dict()
        assert data["locktime"] == 800_000
        assert [o["value"] for o in data["outputs"]] == [1_000, 98_900]
