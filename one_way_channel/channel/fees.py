"""
One-Way Channel - Fee Estimation
==================================
Stima vsize e fee delle transazioni di canale quando e' configurato
un fee rate invece delle fee fisse.

Le stime firmano con witness segnaposto di dimensione massima (firma
DER da 72 byte + byte sighash): la fee stimata non e' mai inferiore
a quella necessaria.
"""

import math

from one_way_channel.channel.parameters import ChannelParameters
from one_way_channel.channel.script_builder import ScriptBuilder
from one_way_channel.config import ChannelSettings
from one_way_channel.constants import DEFAULT_TX_VERSION, SEQUENCE_FINAL
from one_way_channel.domain.models import OutPoint, TxInput, TxOutput, Transaction
from one_way_channel.errors import InvalidTransactionShape


MAX_SIGNATURE_SIZE = 73

_PLACEHOLDER_OUTPOINT = OutPoint(txid=b"\x00" * 32, index=0)


def estimate_fee(vsize: int, fee_rate: float) -> int:
    """
    Fee per vsize al fee rate (sat/vB), arrotondata per eccesso.

    Examples:
        >>> estimate_fee(200, 1.5)
        300
    """
    if vsize < 0 or fee_rate < 0:
        raise InvalidTransactionShape(
            "vsize and fee rate must be non-negative",
            code="INVALID_FEE_ESTIMATE",
            details={"vsize": vsize, "fee_rate": fee_rate}
        )
    return math.ceil(vsize * fee_rate)


def cooperative_witness_size(parameters: ChannelParameters) -> int:
    """Bytes del witness cooperativo (stack count incluso)"""
    placeholder = b"\x30" * MAX_SIGNATURE_SIZE
    witness = ScriptBuilder(parameters).cooperative_witness(placeholder, placeholder)
    return len(TxInput(_PLACEHOLDER_OUTPOINT, witness=witness).serialize_witness())


def refund_witness_size(parameters: ChannelParameters) -> int:
    """Bytes del witness refund (stack count incluso)"""
    witness = ScriptBuilder(parameters).refund_witness(b"\x30" * MAX_SIGNATURE_SIZE)
    return len(TxInput(_PLACEHOLDER_OUTPOINT, witness=witness).serialize_witness())


def _spend_vsize(output_scripts, witness) -> int:
    tx = Transaction(
        version=DEFAULT_TX_VERSION,
        inputs=(TxInput(_PLACEHOLDER_OUTPOINT, sequence=SEQUENCE_FINAL, witness=witness),),
        outputs=tuple(TxOutput(0, script) for script in output_scripts),
    )
    return tx.vsize()


def estimate_commitment_vsize(parameters: ChannelParameters) -> int:
    """vsize di un commitment firmato con entrambi gli output"""
    placeholder = b"\x30" * MAX_SIGNATURE_SIZE
    witness = ScriptBuilder(parameters).cooperative_witness(placeholder, placeholder)
    return _spend_vsize(
        [parameters.payee_output_script(), parameters.payer_output_script()],
        witness,
    )


def estimate_refund_vsize(parameters: ChannelParameters) -> int:
    """vsize della refund firmata"""
    witness = ScriptBuilder(parameters).refund_witness(b"\x30" * MAX_SIGNATURE_SIZE)
    return _spend_vsize([parameters.payer_output_script()], witness)


def estimate_commitment_fee(parameters: ChannelParameters, fee_rate: float) -> int:
    return estimate_fee(estimate_commitment_vsize(parameters), fee_rate)


def estimate_refund_fee(parameters: ChannelParameters, fee_rate: float) -> int:
    return estimate_fee(estimate_refund_vsize(parameters), fee_rate)


# ============================================================================
# CONFIGURED FEES
# ============================================================================

def configured_commitment_fee(parameters: ChannelParameters, settings: ChannelSettings) -> int:
    """Fee commitment: stimata se fee_rate e' impostato, altrimenti fissa"""
    if settings.fee_rate is not None:
        return estimate_commitment_fee(parameters, settings.fee_rate)
    return settings.commitment_fee


def configured_refund_fee(parameters: ChannelParameters, settings: ChannelSettings) -> int:
    if settings.fee_rate is not None:
        return estimate_refund_fee(parameters, settings.fee_rate)
    return settings.refund_fee


__all__ = [
    "MAX_SIGNATURE_SIZE",
    "estimate_fee",
    "cooperative_witness_size",
    "refund_witness_size",
    "estimate_commitment_vsize",
    "estimate_refund_vsize",
    "estimate_commitment_fee",
    "estimate_refund_fee",
    "configured_commitment_fee",
    "configured_refund_fee",
]
