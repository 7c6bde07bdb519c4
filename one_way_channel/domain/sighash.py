"""
One-Way Channel - Signature Hash (BIP143)
===========================================
Preimage e digest che un firmatario deve firmare per un input segwit v0.

Security Level: CRITICAL
Version: 1.0.0

Preimage layout:
     1. nVersion (4)
     2. hashPrevouts (32)
     3. hashSequence (32)
     4. outpoint (36)
     5. scriptCode (var)
     6. amount speso (8)
     7. nSequence (4)
     8. hashOutputs (32)
     9. nLockTime (4)
    10. sighash type (4)

Il digest firmato e' double-SHA256(preimage). L'amount dell'output
speso entra nel preimage: una firma non e' riutilizzabile su un
funding output di valore diverso.
"""

from one_way_channel.constants import (
    SighashFlag,
    SIGHASH_ANYONECANPAY,
    SIGHASH_BASE_MASK,
)
from one_way_channel.domain.crypto_core import compute_double_sha256
from one_way_channel.domain.models import Transaction
from one_way_channel.errors import InvalidTransactionShape
from one_way_channel.utils.serialization import var_bytes, int32_le, uint32_le, int64_le
from one_way_channel.utils.validators import validate_amount


ZERO_HASH = b"\x00" * 32


def _check_flag(sighash_flag: int) -> SighashFlag:
    try:
        return SighashFlag(int(sighash_flag))
    except ValueError:
        raise InvalidTransactionShape(
            f"Unsupported sighash flag: {sighash_flag:#04x}",
            code="INVALID_SIGHASH_FLAG",
            details={"sighash_flag": sighash_flag}
        )


def bip143_preimage(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    amount: int,
    sighash_flag: int = SighashFlag.ALL,
) -> bytes:
    """
    Costruisce il preimage BIP143 per un input.

    Args:
        tx: Transazione (il witness non entra nel preimage)
        input_index: Input da firmare
        script_code: Witness script (P2WSH) o scriptCode P2PKH (P2WPKH)
        amount: Valore dell'output speso
        sighash_flag: Flag sighash

    Returns:
        bytes: Preimage

    Raises:
        InvalidTransactionShape: Indice, amount o flag invalidi
    """
    flag = _check_flag(sighash_flag)
    validate_amount(amount, "spent_amount")

    if not 0 <= input_index < len(tx.inputs):
        raise InvalidTransactionShape(
            f"Input index out of range: {input_index}",
            code="INPUT_INDEX_OUT_OF_RANGE",
            details={"input_index": input_index, "input_count": len(tx.inputs)}
        )

    base = flag & SIGHASH_BASE_MASK
    anyone_can_pay = bool(flag & SIGHASH_ANYONECANPAY)

    if anyone_can_pay:
        hash_prevouts = ZERO_HASH
    else:
        hash_prevouts = compute_double_sha256(
            b"".join(inp.prevout.serialize() for inp in tx.inputs)
        )

    if anyone_can_pay or base in (SighashFlag.SINGLE, SighashFlag.NONE):
        hash_sequence = ZERO_HASH
    else:
        hash_sequence = compute_double_sha256(
            b"".join(uint32_le(inp.sequence) for inp in tx.inputs)
        )

    if base not in (SighashFlag.SINGLE, SighashFlag.NONE):
        hash_outputs = compute_double_sha256(b"".join(out.serialize() for out in tx.outputs))
    elif base == SighashFlag.SINGLE and input_index < len(tx.outputs):
        hash_outputs = compute_double_sha256(tx.outputs[input_index].serialize())
    else:
        hash_outputs = ZERO_HASH

    txin = tx.inputs[input_index]

    return b"".join([
        int32_le(tx.version),
        hash_prevouts,
        hash_sequence,
        txin.prevout.serialize(),
        var_bytes(script_code),
        int64_le(amount),
        uint32_le(txin.sequence),
        hash_outputs,
        uint32_le(tx.locktime),
        uint32_le(int(flag)),
    ])


def bip143_signature_hash(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    amount: int,
    sighash_flag: int = SighashFlag.ALL,
) -> bytes:
    """
    Digest a 32 byte da firmare.

    Examples:
        >>> digest = bip143_signature_hash(tx, 0, witness_script, 100000)
        >>> len(digest)
        32
    """
    return compute_double_sha256(
        bip143_preimage(tx, input_index, script_code, amount, sighash_flag)
    )


__all__ = [
    "bip143_preimage",
    "bip143_signature_hash",
]
