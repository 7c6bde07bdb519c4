"""
One-Way Channel - Refund Transaction
======================================
Funding output -> payer, spendibile solo dopo la maturazione del timelock.

Security Level: CRITICAL
Version: 1.0.0

Lock encoding:
- ABSOLUTE: nLockTime = altezza, nSequence = 0xFFFFFFFE (abilita nLockTime)
- RELATIVE: nLockTime = 0, nSequence = delay in blocchi (BIP68, version >= 2)

Firmata dal solo payer tramite il ramo ELSE dello script: nessuna
controfirma richiesta, il payer ha sempre una via d'uscita.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from one_way_channel.channel.parameters import ChannelParameters
from one_way_channel.channel.script_builder import ScriptBuilder
from one_way_channel.channel.transactions import ChannelTransaction, ChannelTxKind, SpentOutput
from one_way_channel.constants import (
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_REFUND_FEE,
    DEFAULT_TX_VERSION,
    SEQUENCE_FINAL,
    SEQUENCE_LOCKTIME_ENABLED,
    SEQUENCE_LOCKTIME_DISABLE_FLAG,
    SEQUENCE_LOCKTIME_TYPE_FLAG,
    SEQUENCE_LOCKTIME_MASK,
    LOCKTIME_THRESHOLD,
    SighashFlag,
)
from one_way_channel.domain.crypto_core import Signer
from one_way_channel.domain.models import OutPoint, TxInput, TxOutput, Transaction
from one_way_channel.errors import (
    AmountExceedsFunding,
    DegenerateTransaction,
    InvalidTransactionShape,
    SignatureMismatch,
    TimelockNotMatured,
)
from one_way_channel.logging_setup import get_logger
from one_way_channel.utils.validators import validate_amount


logger = get_logger("refund")


@dataclass(frozen=True)
class RefundTransaction(ChannelTransaction):
    """
    Refund transaction del payer.

    La maturita' e' calcolata dai campi effettivi della transazione
    (nLockTime / nSequence), non dai parametri: cosi' una refund
    malformata non viene mai considerata includibile.
    """

    kind = ChannelTxKind.REFUND

    @classmethod
    def build(
        cls,
        funding_outpoint: OutPoint,
        parameters: ChannelParameters,
        fee: int = DEFAULT_REFUND_FEE,
        dust_threshold: int = DEFAULT_DUST_THRESHOLD,
        version: int = DEFAULT_TX_VERSION,
    ) -> RefundTransaction:
        """
        Costruisce la refund transaction (non firmata).

        Raises:
            AmountExceedsFunding: fee > funding amount
            DegenerateTransaction: Output refund sotto soglia dust
            InvalidTransactionShape: Timelock relativo con version < 2
        """
        validate_amount(fee, "fee")
        parameters = parameters.with_funding_outpoint(funding_outpoint)
        timelock = parameters.refund_timelock

        if fee > parameters.funding_amount:
            raise AmountExceedsFunding(
                f"Refund fee {fee} exceeds funding amount {parameters.funding_amount}",
                details={
                    "channel_id": parameters.channel_id,
                    "fee": fee,
                    "funding_amount": parameters.funding_amount,
                }
            )

        refund_amount = parameters.funding_amount - fee
        if refund_amount < dust_threshold:
            raise DegenerateTransaction(
                f"Refund output {refund_amount} below dust threshold {dust_threshold}",
                details={"channel_id": parameters.channel_id, "refund_amount": refund_amount}
            )

        if timelock.is_absolute:
            locktime, sequence = timelock.value, SEQUENCE_LOCKTIME_ENABLED
        else:
            if version < 2:
                raise InvalidTransactionShape(
                    "Relative timelocks require transaction version 2",
                    code="VERSION_TOO_LOW",
                    details={"channel_id": parameters.channel_id, "version": version}
                )
            locktime, sequence = 0, timelock.value

        tx = Transaction(
            version=version,
            inputs=(TxInput(prevout=funding_outpoint, sequence=sequence),),
            outputs=(TxOutput(refund_amount, parameters.payer_output_script()),),
            locktime=locktime,
        )

        refund = cls(
            tx=tx,
            spent_outputs=cls.default_spent_outputs(parameters),
            parameters=parameters,
            dust_threshold=dust_threshold,
        )
        refund.check_shape()

        logger.info(
            "Refund transaction built",
            extra_data={
                "channel_id": parameters.channel_id,
                "txid": refund.txid,
                "refund_amount": refund_amount,
                "timelock_kind": timelock.kind.value,
                "timelock_value": timelock.value,
            }
        )
        return refund

    @classmethod
    def default_spent_outputs(cls, parameters: ChannelParameters) -> Tuple[SpentOutput, ...]:
        witness_script = ScriptBuilder(parameters).witness_script()
        return (SpentOutput(script_code=witness_script, value=parameters.funding_amount),)

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def refund_amount(self) -> int:
        return self.tx.outputs[0].value

    @property
    def fee(self) -> int:
        return self.parameters.funding_amount - self.refund_amount

    # ========================================================================
    # MATURITY
    # ========================================================================

    def maturity_height(self, funding_height: Optional[int] = None) -> int:
        """
        Prima altezza di blocco in cui la refund e' includibile.

        Raises:
            InvalidTransactionShape: Lock relativo senza funding_height
        """
        if self.parameters.refund_timelock.is_absolute:
            return self.tx.locktime + 1

        if funding_height is None:
            raise InvalidTransactionShape(
                "Relative refund maturity requires the funding confirmation height",
                code="MISSING_FUNDING_HEIGHT",
                details={"channel_id": self.parameters.channel_id}
            )
        return funding_height + (self.tx.inputs[0].sequence & SEQUENCE_LOCKTIME_MASK)

    def is_mature(self, block_height: int, funding_height: Optional[int] = None) -> bool:
        """
        Regole di finalita' di consenso valutate all'altezza block_height.

        Args:
            block_height: Altezza del blocco candidato
            funding_height: Altezza di conferma della funding (lock relativo)
        """
        txin = self.tx.inputs[0]

        if self.parameters.refund_timelock.is_absolute:
            if txin.sequence == SEQUENCE_FINAL:
                # Con sequence finale nLockTime e' ignorato: il CLTV fallirebbe
                return False
            if self.tx.locktime >= LOCKTIME_THRESHOLD:
                return False
            return self.tx.locktime < block_height

        if self.tx.version < 2:
            return False
        if txin.sequence & (SEQUENCE_LOCKTIME_DISABLE_FLAG | SEQUENCE_LOCKTIME_TYPE_FLAG):
            return False
        return block_height >= self.maturity_height(funding_height)

    def check_maturity(self, block_height: int, funding_height: Optional[int] = None):
        """
        Raises:
            TimelockNotMatured: Refund non ancora includibile
        """
        if not self.is_mature(block_height, funding_height):
            maturity = None
            if self.parameters.refund_timelock.is_absolute or funding_height is not None:
                maturity = self.maturity_height(funding_height)
            raise TimelockNotMatured(
                f"Refund not includable at height {block_height}",
                details={
                    "channel_id": self.parameters.channel_id,
                    "block_height": block_height,
                    "maturity_height": maturity,
                    "amount": self.refund_amount,
                }
            )

    def is_valid(
        self,
        block_height: Optional[int] = None,
        funding_height: Optional[int] = None,
    ) -> bool:
        """
        Check strutturale; con block_height verifica anche la maturita'.
        """
        if not super().is_valid():
            return False
        if block_height is None:
            return True
        return self.is_mature(block_height, funding_height)

    # ========================================================================
    # SIGNING
    # ========================================================================

    def sign(
        self,
        signer: Signer,
        payer_secret: bytes,
        sighash_flag: int = SighashFlag.ALL,
    ) -> RefundTransaction:
        """
        Firma unilaterale del payer sul ramo refund.

        Raises:
            SignatureMismatch: La chiave non corrisponde a payer_pubkey
        """
        signature = self.sign_input(0, signer, payer_secret, sighash_flag)

        if not self.verify_input_signature(0, signature, self.parameters.payer_pubkey, signer):
            raise SignatureMismatch(
                "Refund signature does not verify against the payer public key",
                details={"channel_id": self.parameters.channel_id, "txid": self.txid}
            )

        witness = ScriptBuilder(self.parameters).refund_witness(signature)
        return self.with_witness(0, witness)

    @property
    def is_signed(self) -> bool:
        return self.tx.inputs[0].is_signed()

    # ========================================================================
    # SHAPE
    # ========================================================================

    def _check_variant_shape(self):
        params = self.parameters
        details = {"channel_id": params.channel_id}

        if len(self.tx.inputs) != 1 or len(self.tx.outputs) != 1:
            raise InvalidTransactionShape(
                "Refund transaction must have exactly one input and one output",
                code="REFUND_SHAPE",
                details=details
            )

        if params.funding_outpoint is not None and self.tx.inputs[0].prevout != params.funding_outpoint:
            raise InvalidTransactionShape(
                "Refund does not spend the funding outpoint",
                code="WRONG_PREVOUT",
                details=details
            )

        if self.tx.outputs[0].script_pubkey != params.payer_output_script():
            raise InvalidTransactionShape(
                "Refund output does not pay the payer",
                code="WRONG_REFUND_SCRIPT",
                details=details
            )

        if self.refund_amount > params.funding_amount:
            raise InvalidTransactionShape(
                "Refund output exceeds funding amount",
                code="REFUND_EXCEEDS_FUNDING",
                details={**details, "refund_amount": self.refund_amount}
            )

        timelock = params.refund_timelock
        sequence = self.tx.inputs[0].sequence
        if timelock.is_absolute:
            consistent = self.tx.locktime == timelock.value and sequence != SEQUENCE_FINAL
        else:
            consistent = self.tx.locktime == 0 and sequence == timelock.value
        if not consistent:
            raise InvalidTransactionShape(
                "Refund lock fields do not encode the channel timelock",
                code="TIMELOCK_ENCODING",
                details={**details, "locktime": self.tx.locktime, "sequence": sequence}
            )


__all__ = ["RefundTransaction"]
