"""
One-Way Channel - Commitment Transaction
==========================================
Aggiornamento di pagamento: funding output -> payee + resto payer.

Security Level: CRITICAL
Version: 1.0.0

Amount arithmetic:
    payee_amount = cumulative_payment
    payer_amount = funding_amount - cumulative_payment - fee
    payer_amount + payee_amount + fee == funding_amount

Output order: payee, payer. Un output sotto soglia dust viene omesso
e il suo valore va ai miner; se entrambi sono dust la transazione e'
degenere.

Ogni commitment sostituisce il precedente: solo l'ultimo firmato da
entrambe le parti e' broadcastabile.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple, Dict, Any

from one_way_channel.channel.fees import configured_commitment_fee
from one_way_channel.channel.parameters import ChannelParameters
from one_way_channel.channel.script_builder import ScriptBuilder, COOPERATIVE_BRANCH_SELECTOR
from one_way_channel.channel.transactions import ChannelTransaction, ChannelTxKind, SpentOutput
from one_way_channel.config import get_settings
from one_way_channel.constants import (
    DEFAULT_COMMITMENT_FEE,
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_TX_VERSION,
    SEQUENCE_FINAL,
)
from one_way_channel.domain.crypto_core import Signer, ECDSASigner
from one_way_channel.domain.models import OutPoint, TxInput, TxOutput, Transaction
from one_way_channel.errors import (
    AmountExceedsFunding,
    DegenerateTransaction,
    InvalidTransactionShape,
    NonMonotonicPayment,
)
from one_way_channel.logging_setup import get_logger
from one_way_channel.utils.validators import validate_amount


logger = get_logger("commitment")


@dataclass(frozen=True)
class CommitmentTransaction(ChannelTransaction):
    """
    Commitment transaction (payment update).

    Attributes:
        cumulative_payment (int): Totale pagato al payee fino a questo update
        fee (int): Fee nominale
        update_number (int): Numero progressivo dell'update
    """

    cumulative_payment: int = 0
    fee: int = DEFAULT_COMMITMENT_FEE
    update_number: int = 0

    kind = ChannelTxKind.COMMITMENT

    @classmethod
    def build(
        cls,
        funding_outpoint: OutPoint,
        parameters: ChannelParameters,
        cumulative_payment: int,
        fee: int = DEFAULT_COMMITMENT_FEE,
        previous_payment: int = 0,
        dust_threshold: int = DEFAULT_DUST_THRESHOLD,
        update_number: int = 0,
        version: int = DEFAULT_TX_VERSION,
    ) -> CommitmentTransaction:
        """
        Costruisce il prossimo commitment (non firmato).

        Args:
            funding_outpoint: Channel output speso
            parameters: Parametri canale
            cumulative_payment: Totale cumulativo al payee
            fee: Fee nominale
            previous_payment: Ultimo cumulativo accettato
            dust_threshold: Soglia omissione output
            update_number: Numero progressivo
            version: nVersion

        Raises:
            NonMonotonicPayment: cumulative_payment < previous_payment
            AmountExceedsFunding: cumulative_payment + fee > funding_amount
            DegenerateTransaction: Entrambi gli output sotto dust

        Examples:
            >>> c = CommitmentTransaction.build(outpoint, params, 1000, fee=100)
            >>> (c.payee_amount, c.payer_amount, c.fee)
            (1000, 98900, 100)
        """
        validate_amount(cumulative_payment, "cumulative_payment")
        validate_amount(fee, "fee")
        validate_amount(previous_payment, "previous_payment")

        parameters = parameters.with_funding_outpoint(funding_outpoint)
        channel_id = parameters.channel_id

        if cumulative_payment < previous_payment:
            raise NonMonotonicPayment(
                f"Cumulative payment {cumulative_payment} below last accepted {previous_payment}",
                details={
                    "channel_id": channel_id,
                    "attempted": cumulative_payment,
                    "previous": previous_payment,
                }
            )

        if cumulative_payment + fee > parameters.funding_amount:
            raise AmountExceedsFunding(
                f"Cumulative payment {cumulative_payment} + fee {fee} exceeds "
                f"funding amount {parameters.funding_amount}",
                details={
                    "channel_id": channel_id,
                    "attempted": cumulative_payment,
                    "fee": fee,
                    "funding_amount": parameters.funding_amount,
                }
            )

        payee_amount = cumulative_payment
        payer_amount = parameters.funding_amount - cumulative_payment - fee

        outputs = []
        if payee_amount >= dust_threshold and payee_amount > 0:
            outputs.append(TxOutput(payee_amount, parameters.payee_output_script()))
        if payer_amount >= dust_threshold and payer_amount > 0:
            outputs.append(TxOutput(payer_amount, parameters.payer_output_script()))

        if not outputs:
            raise DegenerateTransaction(
                "Both commitment outputs are below the dust threshold",
                details={
                    "channel_id": channel_id,
                    "attempted": cumulative_payment,
                    "payee_amount": payee_amount,
                    "payer_amount": payer_amount,
                    "dust_threshold": dust_threshold,
                }
            )

        tx = Transaction(
            version=version,
            inputs=(TxInput(prevout=funding_outpoint, sequence=SEQUENCE_FINAL),),
            outputs=tuple(outputs),
            locktime=0,
        )

        commitment = cls(
            tx=tx,
            spent_outputs=cls.default_spent_outputs(parameters),
            parameters=parameters,
            dust_threshold=dust_threshold,
            cumulative_payment=cumulative_payment,
            fee=fee,
            update_number=update_number,
        )
        commitment.check_shape()

        logger.debug(
            "Commitment transaction built",
            extra_data={
                "channel_id": channel_id,
                "txid": commitment.txid,
                "update_number": update_number,
                "cumulative_payment": cumulative_payment,
                "payer_amount": payer_amount,
                "fee": fee,
            }
        )
        return commitment

    @classmethod
    def default_spent_outputs(cls, parameters: ChannelParameters) -> Tuple[SpentOutput, ...]:
        witness_script = ScriptBuilder(parameters).witness_script()
        return (SpentOutput(script_code=witness_script, value=parameters.funding_amount),)

    @classmethod
    def infer_metadata(
        cls,
        tx: Transaction,
        parameters: ChannelParameters,
        metadata: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Ricava cumulative_payment e fee dagli output quando non forniti.

        Se uno dei due output e' stato omesso come dust la fee non si
        ricava dagli importi: si usa quella configurata (get_settings).
        """
        metadata = dict(metadata)
        payee_index = tx.find_output(parameters.payee_output_script())
        payer_index = tx.find_output(parameters.payer_output_script())

        if payee_index is not None and payer_index is not None:
            metadata.setdefault("cumulative_payment", tx.outputs[payee_index].value)
            metadata.setdefault(
                "fee",
                parameters.funding_amount
                - metadata["cumulative_payment"]
                - tx.outputs[payer_index].value
            )
            return metadata

        if payee_index is None and payer_index is None:
            raise InvalidTransactionShape(
                "Cannot infer allocation without channel outputs",
                code="AMBIGUOUS_COMMITMENT",
                details={"channel_id": parameters.channel_id}
            )

        if "fee" not in metadata:
            metadata["fee"] = configured_commitment_fee(parameters, get_settings())

        if "cumulative_payment" not in metadata:
            if payee_index is not None:
                metadata["cumulative_payment"] = tx.outputs[payee_index].value
            else:
                metadata["cumulative_payment"] = (
                    parameters.funding_amount - metadata["fee"] - tx.outputs[payer_index].value
                )

        return metadata

    # ========================================================================
    # AMOUNTS
    # ========================================================================

    @property
    def payee_amount(self) -> int:
        return self.cumulative_payment

    @property
    def payer_amount(self) -> int:
        return self.parameters.funding_amount - self.cumulative_payment - self.fee

    @property
    def effective_fee(self) -> int:
        """Fee reale: include il valore degli output omessi come dust"""
        return self.parameters.funding_amount - self.tx.total_output_value()

    @property
    def payee_output_index(self) -> Optional[int]:
        return self.tx.find_output(self.parameters.payee_output_script())

    @property
    def payer_output_index(self) -> Optional[int]:
        return self.tx.find_output(self.parameters.payer_output_script())

    def metadata(self) -> Dict[str, Any]:
        return {
            "cumulative_payment": self.cumulative_payment,
            "fee": self.fee,
            "update_number": self.update_number,
        }

    # ========================================================================
    # SIGNATURES
    # ========================================================================

    def with_signatures(self, payer_signature: bytes, payee_signature: bytes) -> CommitmentTransaction:
        """Witness cooperativo completo (firme con byte sighash)"""
        witness = ScriptBuilder(self.parameters).cooperative_witness(payer_signature, payee_signature)
        return self.with_witness(0, witness)

    finalize = with_signatures

    def signatures(self) -> Optional[Tuple[bytes, bytes]]:
        """(payer_sig, payee_sig) dal witness, None se non finalizzato"""
        witness = self.tx.inputs[0].witness
        if len(witness) != 5:
            return None
        dummy, payer_sig, payee_sig, selector, witness_script = witness
        if dummy != b"" or selector != COOPERATIVE_BRANCH_SELECTOR:
            return None
        if witness_script != ScriptBuilder(self.parameters).witness_script():
            return None
        return payer_sig, payee_sig

    @property
    def is_fully_signed(self) -> bool:
        return self.signatures() is not None

    def verify_signatures(self, signer: Optional[Signer] = None) -> bool:
        """Entrambe le firme presenti e valide sul sighash del commitment"""
        signatures = self.signatures()
        if signatures is None:
            return False
        signer = signer or ECDSASigner()
        payer_sig, payee_sig = signatures
        return (
            self.verify_input_signature(0, payer_sig, self.parameters.payer_pubkey, signer)
            and self.verify_input_signature(0, payee_sig, self.parameters.payee_pubkey, signer)
        )

    def is_valid(self, for_broadcast: bool = False, signer: Optional[Signer] = None) -> bool:
        """
        Check strutturale; per il broadcast richiede anche entrambe le firme.
        """
        if not super().is_valid():
            return False
        if not for_broadcast:
            return True
        return self.verify_signatures(signer)

    # ========================================================================
    # SHAPE
    # ========================================================================

    def _check_variant_shape(self):
        params = self.parameters
        details = {"channel_id": params.channel_id, "attempted": self.cumulative_payment}

        if len(self.tx.inputs) != 1:
            raise InvalidTransactionShape(
                "Commitment must spend exactly the funding outpoint",
                code="COMMITMENT_SHAPE",
                details=details
            )

        if params.funding_outpoint is not None and self.tx.inputs[0].prevout != params.funding_outpoint:
            raise InvalidTransactionShape(
                "Commitment does not spend the funding outpoint",
                code="WRONG_PREVOUT",
                details=details
            )

        if self.tx.locktime != 0:
            raise InvalidTransactionShape(
                "Commitment must not carry a locktime",
                code="UNEXPECTED_LOCKTIME",
                details=details
            )

        if self.cumulative_payment < 0 or self.fee < 0 or self.payer_amount < 0:
            raise InvalidTransactionShape(
                "Commitment amounts out of range",
                code="INVALID_ALLOCATION",
                details={**details, "fee": self.fee}
            )

        expected = []
        if self.payee_amount >= self.dust_threshold and self.payee_amount > 0:
            expected.append(TxOutput(self.payee_amount, params.payee_output_script()))
        if self.payer_amount >= self.dust_threshold and self.payer_amount > 0:
            expected.append(TxOutput(self.payer_amount, params.payer_output_script()))

        if tuple(expected) != self.tx.outputs:
            raise InvalidTransactionShape(
                "Commitment outputs do not match the channel allocation",
                code="ALLOCATION_MISMATCH",
                details={
                    **details,
                    "payee_amount": self.payee_amount,
                    "payer_amount": self.payer_amount,
                }
            )


__all__ = ["CommitmentTransaction"]
