"""
One-Way Channel - Script Builder
==================================
Locking e unlocking script del channel output.

Security Level: CRITICAL
Version: 1.0.0

Witness script (P2WSH):

    OP_IF
        OP_2 <payer_pk> <payee_pk> OP_2 OP_CHECKMULTISIG
    OP_ELSE
        <timelock> OP_CHECKLOCKTIMEVERIFY|OP_CHECKSEQUENCEVERIFY OP_DROP
        <payer_pk> OP_CHECKSIG
    OP_ENDIF

Witness di spesa:
- Cooperativo: <empty> <payer_sig> <payee_sig> 0x01 <witness_script>
  (l'elemento vuoto consuma il bug off-by-one di CHECKMULTISIG)
- Refund:      <payer_sig> <empty> <witness_script>

Stessi parametri => stessi bytes: lo script hash nel funding output
deve coincidere per entrambe le parti.
"""

from typing import List

from one_way_channel.channel.parameters import ChannelParameters, Timelock
from one_way_channel.constants import SighashFlag
from one_way_channel.domain.script import (
    OP_2,
    OP_IF,
    OP_ELSE,
    OP_ENDIF,
    OP_DROP,
    OP_CHECKSIG,
    OP_CHECKMULTISIG,
    OP_CHECKLOCKTIMEVERIFY,
    OP_CHECKSEQUENCEVERIFY,
    build_script,
    push_int,
    p2wsh_script,
    iter_script_ops,
)
from one_way_channel.errors import InvalidTransactionShape
from one_way_channel.logging_setup import get_logger


logger = get_logger("script")

COOPERATIVE_BRANCH_SELECTOR = b"\x01"
REFUND_BRANCH_SELECTOR = b""


def timelock_clause(timelock: Timelock) -> bytes:
    """<timelock> CLTV|CSV OP_DROP"""
    check = OP_CHECKLOCKTIMEVERIFY if timelock.is_absolute else OP_CHECKSEQUENCEVERIFY
    return push_int(timelock.value) + bytes([check, OP_DROP])


def witness_signature(der_signature: bytes, sighash_flag: int = SighashFlag.ALL) -> bytes:
    """Firma DER + byte sighash, come appare nello stack witness"""
    if not der_signature:
        raise InvalidTransactionShape("Empty signature", code="EMPTY_SIGNATURE")
    return bytes(der_signature) + bytes([int(sighash_flag)])


class ScriptBuilder:
    """
    Costruttore deterministico degli script di canale.

    Examples:
        >>> builder = ScriptBuilder(params)
        >>> builder.witness_script() == ScriptBuilder(params).witness_script()
        True
        >>> builder.funding_script_pubkey()[:2].hex()
        '0020'
    """

    def __init__(self, parameters: ChannelParameters):
        self.parameters = parameters

    # ========================================================================
    # LOCKING
    # ========================================================================

    def witness_script(self) -> bytes:
        """Cooperative-or-refund witness script"""
        params = self.parameters
        return (
            build_script(
                OP_IF,
                OP_2, params.payer_pubkey, params.payee_pubkey, OP_2, OP_CHECKMULTISIG,
                OP_ELSE,
            )
            + timelock_clause(params.refund_timelock)
            + build_script(params.payer_pubkey, OP_CHECKSIG, OP_ENDIF)
        )

    # Nome usato dai chiamanti che ragionano in termini di locking script
    locking_script = witness_script

    def funding_script_pubkey(self) -> bytes:
        """scriptPubKey P2WSH del channel output"""
        return p2wsh_script(self.witness_script())

    # ========================================================================
    # UNLOCKING
    # ========================================================================

    def cooperative_witness(self, payer_signature: bytes, payee_signature: bytes) -> List[bytes]:
        """
        Witness per il ramo 2-of-2.

        Args:
            payer_signature: Firma payer con byte sighash
            payee_signature: Firma payee con byte sighash
        """
        if not payer_signature or not payee_signature:
            raise InvalidTransactionShape(
                "Cooperative spend requires both signatures",
                code="MISSING_SIGNATURE",
                details={"channel_id": self.parameters.channel_id}
            )
        return [
            b"",
            payer_signature,
            payee_signature,
            COOPERATIVE_BRANCH_SELECTOR,
            self.witness_script(),
        ]

    def refund_witness(self, payer_signature: bytes) -> List[bytes]:
        """Witness per il ramo refund (solo payer)"""
        if not payer_signature:
            raise InvalidTransactionShape(
                "Refund spend requires the payer signature",
                code="MISSING_SIGNATURE",
                details={"channel_id": self.parameters.channel_id}
            )
        return [payer_signature, REFUND_BRANCH_SELECTOR, self.witness_script()]

    # ========================================================================
    # INSPECTION
    # ========================================================================

    def matches(self, witness_script: bytes) -> bool:
        """True se lo script ricevuto coincide con quello atteso"""
        expected = self.witness_script()
        if witness_script != expected:
            logger.warning(
                "Witness script mismatch",
                extra_data={
                    "channel_id": self.parameters.channel_id,
                    "expected": expected.hex(),
                    "received": witness_script.hex(),
                }
            )
            return False
        return True

    @staticmethod
    def pubkeys_in(witness_script: bytes) -> List[bytes]:
        """Public key compresse presenti nello script (ordine di apparizione)"""
        return [data for _, data in iter_script_ops(witness_script) if len(data) == 33]


__all__ = [
    "ScriptBuilder",
    "timelock_clause",
    "witness_signature",
    "COOPERATIVE_BRANCH_SELECTOR",
    "REFUND_BRANCH_SELECTOR",
]
