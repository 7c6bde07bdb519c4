"""
One-Way Channel - Core Transaction Models
===========================================
Strutture dati della transazione nel formato di consenso.

Security Level: CRITICAL
Version: 1.0.0

Models:
- OutPoint: Riferimento output (txid + index)
- TxInput: Input transazione (prevout, scriptSig, sequence, witness)
- TxOutput: Output transazione (value + scriptPubKey)
- Transaction: version, inputs, outputs, locktime

Tutte le strutture sono immutabili (frozen): ogni modifica produce
una nuova istanza.

Serialization layout (BIP144 quando almeno un input ha witness):
    version (int32 LE)
    [marker 0x00, flag 0x01]
    input count (compact size), inputs
    output count (compact size), outputs
    [witness stacks, uno per input]
    locktime (uint32 LE)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Sequence, Dict, Any

from one_way_channel.constants import (
    SEQUENCE_FINAL,
    SEGWIT_MARKER,
    SEGWIT_FLAG,
    WITNESS_SCALE_FACTOR,
)
from one_way_channel.domain.crypto_core import compute_double_sha256
from one_way_channel.errors import InvalidTransactionShape, TransactionDecodeError
from one_way_channel.utils.serialization import (
    ByteReader,
    compact_size,
    var_bytes,
    int32_le,
    uint32_le,
    int64_le,
)
from one_way_channel.utils.validators import validate_amount, validate_uint32, validate_txid


# ============================================================================
# OUTPOINT
# ============================================================================

@dataclass(frozen=True)
class OutPoint:
    """
    Riferimento a un output di una transazione precedente.

    Attributes:
        txid (bytes): Hash transazione in byte order interno (32 bytes)
        index (int): Indice output

    Examples:
        >>> op = OutPoint.from_hex("00" * 31 + "01", 0)
        >>> str(op)
        '0000000000000000000000000000000000000000000000000000000000000001:0'
    """

    txid: bytes
    index: int

    def __post_init__(self):
        if not isinstance(self.txid, bytes) or len(self.txid) != 32:
            raise InvalidTransactionShape(
                "OutPoint txid must be 32 bytes",
                code="INVALID_OUTPOINT_TXID"
            )
        validate_uint32(self.index, "outpoint.index")

    @classmethod
    def from_hex(cls, txid_hex: str, index: int) -> OutPoint:
        """Crea da txid in formato display (big-endian hex)"""
        validate_txid(txid_hex)
        return cls(txid=bytes.fromhex(txid_hex)[::-1], index=index)

    @classmethod
    def parse(cls, value: str) -> OutPoint:
        """Parse 'txid:index'"""
        txid_hex, _, index = value.rpartition(":")
        if not txid_hex or not index.isdigit():
            raise InvalidTransactionShape(f"Invalid outpoint: {value}", code="INVALID_OUTPOINT")
        return cls.from_hex(txid_hex, int(index))

    @property
    def txid_hex(self) -> str:
        return self.txid[::-1].hex()

    def serialize(self) -> bytes:
        return self.txid + uint32_le(self.index)

    def __str__(self) -> str:
        return f"{self.txid_hex}:{self.index}"


# ============================================================================
# TRANSACTION INPUT
# ============================================================================

@dataclass(frozen=True)
class TxInput:
    """
    Input di transazione.

    Attributes:
        prevout (OutPoint): Output speso
        script_sig (bytes): scriptSig (vuoto per input segwit)
        sequence (int): nSequence (lock relativo BIP68 / abilitazione locktime)
        witness (tuple[bytes, ...]): Stack witness
    """

    prevout: OutPoint
    script_sig: bytes = b""
    sequence: int = SEQUENCE_FINAL
    witness: Tuple[bytes, ...] = ()

    def __post_init__(self):
        validate_uint32(self.sequence, "input.sequence")
        if not isinstance(self.witness, tuple):
            object.__setattr__(self, "witness", tuple(self.witness))

    def serialize(self) -> bytes:
        return self.prevout.serialize() + var_bytes(self.script_sig) + uint32_le(self.sequence)

    def serialize_witness(self) -> bytes:
        return compact_size(len(self.witness)) + b"".join(var_bytes(item) for item in self.witness)

    def is_signed(self) -> bool:
        return bool(self.witness) or bool(self.script_sig)

    def __repr__(self) -> str:
        signed = " [WITNESS]" if self.witness else ""
        return f"TxInput(prevout={self.prevout}, sequence=0x{self.sequence:08x}{signed})"


# ============================================================================
# TRANSACTION OUTPUT
# ============================================================================

@dataclass(frozen=True)
class TxOutput:
    """
    Output di transazione.

    Attributes:
        value (int): Amount in Satoshi (0 <= value <= MAX_MONEY)
        script_pubkey (bytes): Locking script
    """

    value: int
    script_pubkey: bytes

    def __post_init__(self):
        validate_amount(self.value, "output.value")

    def serialize(self) -> bytes:
        return int64_le(self.value) + var_bytes(self.script_pubkey)

    def __repr__(self) -> str:
        return f"TxOutput(value={self.value} sat, script={self.script_pubkey.hex()[:24]}...)"


# ============================================================================
# TRANSACTION
# ============================================================================

@dataclass(frozen=True)
class Transaction:
    """
    Transazione nel formato di consenso.

    Attributes:
        version (int): nVersion
        inputs (tuple[TxInput, ...]): Input
        outputs (tuple[TxOutput, ...]): Output
        locktime (int): nLockTime

    Examples:
        >>> tx = Transaction(
        ...     version=2,
        ...     inputs=(TxInput(OutPoint(b"\\x01" * 32, 0)),),
        ...     outputs=(TxOutput(1000, b"\\x00\\x14" + b"\\x02" * 20),),
        ... )
        >>> Transaction.deserialize(tx.serialize()) == tx
        True
    """

    version: int
    inputs: Tuple[TxInput, ...]
    outputs: Tuple[TxOutput, ...]
    locktime: int = 0

    def __post_init__(self):
        if not isinstance(self.inputs, tuple):
            object.__setattr__(self, "inputs", tuple(self.inputs))
        if not isinstance(self.outputs, tuple):
            object.__setattr__(self, "outputs", tuple(self.outputs))

        if not -(2 ** 31) <= self.version < 2 ** 31:
            raise InvalidTransactionShape(
                f"Version outside int32 range: {self.version}",
                code="INVALID_VERSION"
            )
        validate_uint32(self.locktime, "locktime")
        validate_amount(self.total_output_value(), "total_output_value")

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        """
        Serializzazione di consenso.

        Args:
            include_witness: Se False produce il formato legacy (per txid)

        Returns:
            bytes: Transazione serializzata
        """
        segwit = include_witness and self.has_witness()

        parts = [int32_le(self.version)]
        if segwit:
            parts.append(bytes([SEGWIT_MARKER, SEGWIT_FLAG]))

        parts.append(compact_size(len(self.inputs)))
        parts.extend(inp.serialize() for inp in self.inputs)

        parts.append(compact_size(len(self.outputs)))
        parts.extend(out.serialize() for out in self.outputs)

        if segwit:
            parts.extend(inp.serialize_witness() for inp in self.inputs)

        parts.append(uint32_le(self.locktime))
        return b"".join(parts)

    @classmethod
    def deserialize(cls, data: bytes) -> Transaction:
        """
        Decodifica bytes di consenso (legacy o BIP144).

        Raises:
            TransactionDecodeError: Dati troncati, trailing o non canonici
            InvalidTransactionShape: Valori fuori range
        """
        reader = ByteReader(data)
        version = reader.read_int32()

        segwit = False
        if reader.peek(2) == bytes([SEGWIT_MARKER, SEGWIT_FLAG]):
            reader.read(2)
            segwit = True

        input_count = reader.read_compact_size()
        raw_inputs = []
        for _ in range(input_count):
            prevout = OutPoint(txid=reader.read(32), index=reader.read_uint32())
            script_sig = reader.read_var_bytes()
            sequence = reader.read_uint32()
            raw_inputs.append((prevout, script_sig, sequence))

        output_count = reader.read_compact_size()
        outputs = []
        for _ in range(output_count):
            value = reader.read_int64()
            outputs.append(TxOutput(value=value, script_pubkey=reader.read_var_bytes()))

        witnesses: Sequence[Tuple[bytes, ...]] = [()] * input_count
        if segwit:
            witnesses = []
            for _ in range(input_count):
                item_count = reader.read_compact_size()
                witnesses.append(tuple(reader.read_var_bytes() for _ in range(item_count)))
            if not any(witnesses):
                raise TransactionDecodeError(
                    "Segwit marker with empty witness data",
                    code="SUPERFLUOUS_WITNESS"
                )

        locktime = reader.read_uint32()
        reader.assert_exhausted()

        inputs = tuple(
            TxInput(prevout=prevout, script_sig=script_sig, sequence=sequence, witness=witness)
            for (prevout, script_sig, sequence), witness in zip(raw_inputs, witnesses)
        )
        return cls(version=version, inputs=inputs, outputs=tuple(outputs), locktime=locktime)

    @classmethod
    def from_hex(cls, hex_str: str) -> Transaction:
        try:
            raw = bytes.fromhex(hex_str)
        except ValueError as e:
            raise TransactionDecodeError(f"Invalid hex: {e}", code="INVALID_HEX")
        return cls.deserialize(raw)

    def to_hex(self) -> str:
        return self.serialize().hex()

    # ========================================================================
    # IDENTIFIERS & SIZE
    # ========================================================================

    def txid_bytes(self) -> bytes:
        """Hash della serializzazione senza witness (byte order interno)"""
        return compute_double_sha256(self.serialize(include_witness=False))

    def txid(self) -> str:
        """TXID in formato display"""
        return self.txid_bytes()[::-1].hex()

    def wtxid(self) -> str:
        return compute_double_sha256(self.serialize())[::-1].hex()

    def weight(self) -> int:
        """Weight BIP141: base * 3 + total"""
        base = len(self.serialize(include_witness=False))
        total = len(self.serialize())
        return base * (WITNESS_SCALE_FACTOR - 1) + total

    def vsize(self) -> int:
        return (self.weight() + WITNESS_SCALE_FACTOR - 1) // WITNESS_SCALE_FACTOR

    # ========================================================================
    # HELPERS
    # ========================================================================

    def total_output_value(self) -> int:
        return sum(out.value for out in self.outputs)

    def with_witness(self, input_index: int, witness: Sequence[bytes]) -> Transaction:
        """Nuova transazione con witness sostituito sull'input indicato"""
        if not 0 <= input_index < len(self.inputs):
            raise InvalidTransactionShape(
                f"Input index out of range: {input_index}",
                code="INPUT_INDEX_OUT_OF_RANGE",
                details={"input_index": input_index, "input_count": len(self.inputs)}
            )
        inputs = list(self.inputs)
        inputs[input_index] = replace(inputs[input_index], witness=tuple(witness))
        return replace(self, inputs=tuple(inputs))

    def without_witness(self) -> Transaction:
        return replace(self, inputs=tuple(replace(inp, witness=()) for inp in self.inputs))

    def find_output(self, script_pubkey: bytes) -> Optional[int]:
        for index, out in enumerate(self.outputs):
            if out.script_pubkey == script_pubkey:
                return index
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Vista leggibile (non usata per il consenso)"""
        return {
            "txid": self.txid(),
            "version": self.version,
            "locktime": self.locktime,
            "inputs": [
                {
                    "prevout": str(inp.prevout),
                    "sequence": inp.sequence,
                    "witness": [item.hex() for item in inp.witness],
                }
                for inp in self.inputs
            ],
            "outputs": [
                {"value": out.value, "script_pubkey": out.script_pubkey.hex()}
                for out in self.outputs
            ],
        }

    def __repr__(self) -> str:
        return (
            f"Transaction(txid={self.txid()[:16]}..., "
            f"inputs={len(self.inputs)}, outputs={len(self.outputs)}, "
            f"locktime={self.locktime})"
        )


__all__ = [
    "OutPoint",
    "TxInput",
    "TxOutput",
    "Transaction",
]
