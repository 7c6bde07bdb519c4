"""
One-Way Channel - Funding Transaction
=======================================
Input del payer -> un channel output P2WSH (+ resto opzionale).

Security Level: CRITICAL
Version: 1.0.0
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from one_way_channel.channel.parameters import ChannelParameters
from one_way_channel.channel.script_builder import ScriptBuilder
from one_way_channel.channel.transactions import ChannelTransaction, ChannelTxKind, SpentOutput
from one_way_channel.constants import (
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_TX_VERSION,
    FUNDING_OUTPUT_INDEX,
    SEQUENCE_FINAL,
    SighashFlag,
)
from one_way_channel.domain.crypto_core import compute_hash160, Signer
from one_way_channel.domain.models import OutPoint, TxInput, TxOutput, Transaction
from one_way_channel.domain.script import p2pkh_script_code
from one_way_channel.errors import InsufficientFunds, InvalidTransactionShape
from one_way_channel.logging_setup import get_logger
from one_way_channel.utils.validators import validate_amount, validate_uint32


logger = get_logger("funding")


# ============================================================================
# FUNDING INPUT
# ============================================================================

@dataclass(frozen=True)
class FundingInput:
    """
    UTXO del payer speso dalla funding transaction.

    La selezione degli UTXO e' esterna: qui arrivano gia' scelti.

    Attributes:
        outpoint (OutPoint): UTXO speso
        value (int): Valore UTXO
        script_code (bytes): scriptCode BIP143 per la firma
        sequence (int): nSequence dell'input
    """

    outpoint: OutPoint
    value: int
    script_code: bytes
    sequence: int = SEQUENCE_FINAL

    def __post_init__(self):
        validate_amount(self.value, "funding_input.value", allow_zero=False)
        validate_uint32(self.sequence, "funding_input.sequence")
        if not self.script_code:
            raise InvalidTransactionShape(
                "Funding input requires a script code",
                code="MISSING_SCRIPT_CODE",
                details={"outpoint": str(self.outpoint)}
            )

    @classmethod
    def p2wpkh(cls, outpoint: OutPoint, value: int, pubkey: bytes) -> FundingInput:
        """UTXO P2WPKH: scriptCode = P2PKH di hash160(pubkey)"""
        return cls(outpoint=outpoint, value=value, script_code=p2pkh_script_code(compute_hash160(pubkey)))

    def to_txin(self) -> TxInput:
        return TxInput(prevout=self.outpoint, sequence=self.sequence)

    def to_spent_output(self) -> SpentOutput:
        return SpentOutput(script_code=self.script_code, value=self.value)


# ============================================================================
# FUNDING TRANSACTION
# ============================================================================

@dataclass(frozen=True)
class FundingTransaction(ChannelTransaction):
    """
    Funding transaction: crea il channel output.

    Output 0 e' sempre il channel output (funding_amount, P2WSH);
    output 1, se presente, e' il resto del payer.
    """

    kind = ChannelTxKind.FUNDING

    @classmethod
    def build(
        cls,
        inputs: Sequence[FundingInput],
        parameters: ChannelParameters,
        fee: int,
        change_script: Optional[bytes] = None,
        dust_threshold: int = DEFAULT_DUST_THRESHOLD,
        version: int = DEFAULT_TX_VERSION,
    ) -> FundingTransaction:
        """
        Costruisce la funding transaction.

        Args:
            inputs: UTXO del payer
            parameters: Parametri canale
            fee: Fee in Satoshi
            change_script: scriptPubKey del resto (richiesto se resto >= dust)
            dust_threshold: Resto sotto soglia va in fee
            version: nVersion

        Returns:
            FundingTransaction: Non firmata

        Raises:
            InvalidTransactionShape: Nessun input, input duplicati, resto senza script
            InsufficientFunds: Input < funding_amount + fee
        """
        inputs = tuple(inputs)
        validate_amount(fee, "fee")

        if not inputs:
            raise InvalidTransactionShape(
                "Funding transaction requires at least one input",
                code="NO_INPUTS",
                details={"channel_id": parameters.channel_id}
            )

        outpoints = [inp.outpoint for inp in inputs]
        if len(set(outpoints)) != len(outpoints):
            raise InvalidTransactionShape(
                "Funding inputs spend the same outpoint twice",
                code="DUPLICATE_INPUT",
                details={"channel_id": parameters.channel_id}
            )

        if parameters.funding_amount < dust_threshold:
            raise InvalidTransactionShape(
                f"Funding amount below dust threshold: {parameters.funding_amount}",
                code="FUNDING_BELOW_DUST",
                details={
                    "channel_id": parameters.channel_id,
                    "funding_amount": parameters.funding_amount,
                    "dust_threshold": dust_threshold,
                }
            )

        available = sum(inp.value for inp in inputs)
        required = parameters.funding_amount + fee

        if available < required:
            raise InsufficientFunds(
                f"Insufficient funding inputs: need {required}, have {available}",
                details={
                    "channel_id": parameters.channel_id,
                    "required": required,
                    "available": available,
                    "funding_amount": parameters.funding_amount,
                    "fee": fee,
                }
            )

        outputs = [TxOutput(parameters.funding_amount, ScriptBuilder(parameters).funding_script_pubkey())]

        change = available - required
        if change >= dust_threshold and change > 0:
            if change_script is None:
                raise InvalidTransactionShape(
                    f"Change of {change} sat requires a change script",
                    code="MISSING_CHANGE_SCRIPT",
                    details={"channel_id": parameters.channel_id, "change": change}
                )
            outputs.append(TxOutput(change, change_script))
        elif change > 0:
            logger.info(
                "Dust change added to funding fee",
                extra_data={"channel_id": parameters.channel_id, "change": change}
            )

        tx = Transaction(
            version=version,
            inputs=tuple(inp.to_txin() for inp in inputs),
            outputs=tuple(outputs),
        )

        funding = cls(
            tx=tx,
            spent_outputs=tuple(inp.to_spent_output() for inp in inputs),
            parameters=parameters,
            dust_threshold=dust_threshold,
        )
        funding.check_shape()

        logger.info(
            "Funding transaction built",
            extra_data={
                "channel_id": parameters.channel_id,
                "txid": funding.txid,
                "funding_amount": parameters.funding_amount,
                "fee": funding.fee,
                "inputs": len(inputs),
                "has_change": len(outputs) > 1,
            }
        )
        return funding

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def funding_outpoint(self) -> OutPoint:
        """Outpoint del channel output (stabile: il txid esclude il witness)"""
        return OutPoint(txid=self.tx.txid_bytes(), index=FUNDING_OUTPUT_INDEX)

    @property
    def fee(self) -> int:
        return sum(spent.value for spent in self.spent_outputs) - self.tx.total_output_value()

    @property
    def change_output(self) -> Optional[TxOutput]:
        return self.tx.outputs[1] if len(self.tx.outputs) > 1 else None

    def channel_parameters(self) -> ChannelParameters:
        """Parametri con funding_outpoint valorizzato"""
        return self.parameters.with_funding_outpoint(self.funding_outpoint)

    # ========================================================================
    # SIGNING
    # ========================================================================

    def attach_witness(self, input_index: int, witness: Sequence[bytes]) -> FundingTransaction:
        """Aggiunge il witness di un input del payer (firmato dal wallet esterno)"""
        return self.with_witness(input_index, witness)

    def sign_p2wpkh(
        self,
        signer: Signer,
        keys: Sequence[Tuple[bytes, bytes]],
        sighash_flag: int = SighashFlag.ALL,
    ) -> FundingTransaction:
        """
        Firma tutti gli input P2WPKH.

        Args:
            signer: Capability di firma
            keys: (secret, pubkey) per ogni input, stesso ordine
        """
        if len(keys) != len(self.tx.inputs):
            raise InvalidTransactionShape(
                "One key pair per funding input is required",
                code="KEY_COUNT_MISMATCH",
                details={"inputs": len(self.tx.inputs), "keys": len(keys)}
            )
        signed = self
        for index, (secret, pubkey) in enumerate(keys):
            signature = self.sign_input(index, signer, secret, sighash_flag)
            signed = signed.attach_witness(index, [signature, pubkey])
        return signed

    # ========================================================================
    # SHAPE
    # ========================================================================

    def _check_variant_shape(self):
        channel_output = self.tx.outputs[FUNDING_OUTPUT_INDEX]
        expected_script = ScriptBuilder(self.parameters).funding_script_pubkey()

        if channel_output.script_pubkey != expected_script:
            raise InvalidTransactionShape(
                "Funding output is not locked by the channel script",
                code="FUNDING_SCRIPT_MISMATCH",
                details={"channel_id": self.parameters.channel_id}
            )

        if channel_output.value != self.parameters.funding_amount:
            raise InvalidTransactionShape(
                "Funding output value differs from the channel funding amount",
                code="FUNDING_AMOUNT_MISMATCH",
                details={
                    "channel_id": self.parameters.channel_id,
                    "expected": self.parameters.funding_amount,
                    "actual": channel_output.value,
                }
            )

        if len(self.tx.outputs) > 2:
            raise InvalidTransactionShape(
                "Funding transaction has more than one change output",
                code="TOO_MANY_OUTPUTS",
                details={"channel_id": self.parameters.channel_id}
            )

        if self.fee < 0:
            raise InvalidTransactionShape(
                "Funding outputs exceed spent inputs",
                code="NEGATIVE_FEE",
                details={"channel_id": self.parameters.channel_id, "fee": self.fee}
            )


__all__ = [
    "FundingInput",
    "FundingTransaction",
]
