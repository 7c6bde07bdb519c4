"""
One-Way Channel - Channel Transaction Contract
================================================
Base comune delle varianti Funding, Refund e Commitment.

Security Level: CRITICAL
Version: 1.0.0

Ogni variante:
- incapsula una Transaction di consenso + metadati di canale
- produce la serializzazione canonica (to_data)
- produce il digest sighash per ogni input (signature_hash)
- verifica la propria forma prima di qualunque firma (check_shape)

L'insieme delle varianti e' chiuso: ogni sottoclasse si registra con
il proprio ChannelTxKind e un secondo tipo per lo stesso kind e' rifiutato.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar, Dict, Any, List, Optional, Tuple, Type

from one_way_channel.channel.parameters import ChannelParameters
from one_way_channel.constants import SighashFlag, DEFAULT_DUST_THRESHOLD
from one_way_channel.domain.crypto_core import Signer
from one_way_channel.domain.models import Transaction
from one_way_channel.domain.sighash import bip143_signature_hash
from one_way_channel.errors import InvalidTransactionShape, ChannelException
from one_way_channel.logging_setup import get_logger
from one_way_channel.channel.script_builder import witness_signature


logger = get_logger("transactions")


# ============================================================================
# TYPES
# ============================================================================

class ChannelTxKind(str, Enum):
    """Varianti di transazione di canale"""
    FUNDING = "funding"
    REFUND = "refund"
    COMMITMENT = "commitment"


@dataclass(frozen=True)
class SpentOutput:
    """
    Output speso da un input: serve al sighash BIP143.

    Attributes:
        script_code (bytes): Witness script o scriptCode P2PKH
        value (int): Valore dell'output speso
    """

    script_code: bytes
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"script_code": self.script_code.hex(), "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SpentOutput:
        return cls(script_code=bytes.fromhex(data["script_code"]), value=data["value"])


_VARIANTS: Dict[ChannelTxKind, Type["ChannelTransaction"]] = {}


# ============================================================================
# CHANNEL TRANSACTION
# ============================================================================

@dataclass(frozen=True)
class ChannelTransaction:
    """
    Transazione di canale (base astratta).

    Attributes:
        tx (Transaction): Transazione di consenso
        spent_outputs (tuple[SpentOutput, ...]): Uno per input, stesso ordine
        parameters (ChannelParameters): Parametri del canale
        dust_threshold (int): Soglia dust per is_valid()
    """

    tx: Transaction
    spent_outputs: Tuple[SpentOutput, ...]
    parameters: ChannelParameters
    dust_threshold: int = DEFAULT_DUST_THRESHOLD

    kind: ClassVar[ChannelTxKind]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        kind = cls.__dict__.get("kind")
        if not isinstance(kind, ChannelTxKind):
            raise TypeError(f"{cls.__name__} must declare a ChannelTxKind 'kind'")
        if kind in _VARIANTS:
            raise TypeError(
                f"Channel transaction kind '{kind.value}' already bound to "
                f"{_VARIANTS[kind].__name__}"
            )
        _VARIANTS[kind] = cls

    def __post_init__(self):
        if not isinstance(self.spent_outputs, tuple):
            object.__setattr__(self, "spent_outputs", tuple(self.spent_outputs))

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def to_data(self) -> bytes:
        """Serializzazione di consenso canonica (BIP144 se firmata)"""
        return self.tx.serialize()

    def to_hex(self) -> str:
        return self.to_data().hex()

    @property
    def txid(self) -> str:
        return self.tx.txid()

    # ========================================================================
    # SHAPE
    # ========================================================================

    def check_shape(self):
        """
        Verifica strutturale.

        Raises:
            InvalidTransactionShape: Input/output vuoti, spent_outputs non
                allineati o vincoli della variante violati
        """
        if not self.tx.inputs:
            raise InvalidTransactionShape(
                f"{self.kind.value} transaction has no inputs",
                code="NO_INPUTS",
                details={"channel_id": self.parameters.channel_id}
            )

        if not self.tx.outputs:
            raise InvalidTransactionShape(
                f"{self.kind.value} transaction has no outputs",
                code="NO_OUTPUTS",
                details={"channel_id": self.parameters.channel_id}
            )

        if len(self.spent_outputs) != len(self.tx.inputs):
            raise InvalidTransactionShape(
                "Spent outputs do not match inputs",
                code="SPENT_OUTPUTS_MISMATCH",
                details={
                    "inputs": len(self.tx.inputs),
                    "spent_outputs": len(self.spent_outputs),
                }
            )

        self._check_variant_shape()

    def _check_variant_shape(self):
        """Vincoli specifici della variante"""
        pass

    def dust_outputs(self) -> List[int]:
        """Indici degli output sotto la soglia dust"""
        return [
            index for index, out in enumerate(self.tx.outputs)
            if out.value < self.dust_threshold
        ]

    def is_valid(self) -> bool:
        """
        Check strutturale prima della firma.

        Returns:
            bool: False se la forma e' invalida o un output e' dust
        """
        try:
            self.check_shape()
        except ChannelException as e:
            logger.debug(
                f"{self.kind.value} transaction failed shape check",
                extra_data={"channel_id": self.parameters.channel_id, "error": e.to_dict()}
            )
            return False

        dust = self.dust_outputs()
        if dust:
            logger.debug(
                f"{self.kind.value} transaction has dust outputs",
                extra_data={"channel_id": self.parameters.channel_id, "dust_outputs": dust}
            )
            return False

        return True

    # ========================================================================
    # SIGNATURE HASH
    # ========================================================================

    def signature_hash(self, input_index: int, sighash_flag: int = SighashFlag.ALL) -> bytes:
        """
        Digest BIP143 da firmare per un input.

        La forma viene verificata prima: non si calcola mai un digest
        su una transazione malformata.
        """
        self.check_shape()
        if not 0 <= input_index < len(self.tx.inputs):
            raise InvalidTransactionShape(
                f"Input index out of range: {input_index}",
                code="INPUT_INDEX_OUT_OF_RANGE",
                details={"input_index": input_index, "input_count": len(self.tx.inputs)}
            )
        spent = self.spent_outputs[input_index]
        return bip143_signature_hash(
            self.tx, input_index, spent.script_code, spent.value, sighash_flag
        )

    def sign_input(
        self,
        input_index: int,
        signer: Signer,
        key: bytes,
        sighash_flag: int = SighashFlag.ALL,
    ) -> bytes:
        """Firma un input: ritorna firma DER + byte sighash"""
        digest = self.signature_hash(input_index, sighash_flag)
        return witness_signature(signer.sign(digest, key), sighash_flag)

    def verify_input_signature(
        self,
        input_index: int,
        signature: bytes,
        pubkey: bytes,
        signer: Signer,
    ) -> bool:
        """Verifica firma witness (con byte sighash finale) contro pubkey"""
        if len(signature) < 2:
            return False
        try:
            flag = SighashFlag(signature[-1])
        except ValueError:
            return False
        digest = self.signature_hash(input_index, flag)
        return signer.verify(digest, signature[:-1], pubkey)

    def with_witness(self, input_index: int, witness) -> ChannelTransaction:
        return replace(self, tx=self.tx.with_witness(input_index, witness))

    # ========================================================================
    # PERSISTENCE
    # ========================================================================

    def metadata(self) -> Dict[str, Any]:
        """Metadati della variante non ricavabili dai bytes"""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "data": self.to_hex(),
            "txid": self.txid,
            "spent_outputs": [spent.to_dict() for spent in self.spent_outputs],
            "dust_threshold": self.dust_threshold,
            "metadata": self.metadata(),
        }

    @classmethod
    def from_data(
        cls,
        data: bytes,
        parameters: ChannelParameters,
        spent_outputs: Optional[Tuple[SpentOutput, ...]] = None,
        dust_threshold: int = DEFAULT_DUST_THRESHOLD,
        **metadata,
    ) -> ChannelTransaction:
        """
        Decodifica bytes di consenso nella variante.

        Raises:
            TransactionDecodeError: Bytes non decodificabili
            InvalidTransactionShape: Forma non compatibile con la variante
        """
        tx = Transaction.deserialize(data)
        if spent_outputs is None:
            spent_outputs = cls.default_spent_outputs(parameters)
        instance = cls(
            tx=tx,
            spent_outputs=tuple(spent_outputs),
            parameters=parameters,
            dust_threshold=dust_threshold,
            **cls.infer_metadata(tx, parameters, metadata),
        )
        instance.check_shape()
        return instance

    @classmethod
    def default_spent_outputs(cls, parameters: ChannelParameters) -> Tuple[SpentOutput, ...]:
        raise InvalidTransactionShape(
            f"{cls.kind.value} transaction requires explicit spent outputs",
            code="MISSING_SPENT_OUTPUTS"
        )

    @classmethod
    def infer_metadata(
        cls,
        tx: Transaction,
        parameters: ChannelParameters,
        metadata: Dict[str, Any],
    ) -> Dict[str, Any]:
        return metadata

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(txid={self.txid[:16]}..., "
            f"channel_id={self.parameters.channel_id})"
        )


# ============================================================================
# DISPATCH
# ============================================================================

def variant_for(kind) -> Type[ChannelTransaction]:
    """Classe registrata per il kind"""
    try:
        return _VARIANTS[ChannelTxKind(kind)]
    except (ValueError, KeyError):
        raise InvalidTransactionShape(
            f"Unknown channel transaction kind: {kind}",
            code="UNKNOWN_TX_KIND"
        )


def decode_channel_transaction(
    kind,
    data: bytes,
    parameters: ChannelParameters,
    **kwargs,
) -> ChannelTransaction:
    """
    Decodifica dispatchata per kind.

    Examples:
        >>> tx = decode_channel_transaction("commitment", commitment.to_data(), params)
        >>> tx == commitment
        True
    """
    return variant_for(kind).from_data(data, parameters, **kwargs)


def channel_transaction_from_dict(
    data: Dict[str, Any],
    parameters: ChannelParameters,
) -> ChannelTransaction:
    """Inverso di ChannelTransaction.to_dict()"""
    return decode_channel_transaction(
        data["kind"],
        bytes.fromhex(data["data"]),
        parameters,
        spent_outputs=tuple(SpentOutput.from_dict(s) for s in data["spent_outputs"]),
        dust_threshold=data.get("dust_threshold", DEFAULT_DUST_THRESHOLD),
        **data.get("metadata", {}),
    )


__all__ = [
    "ChannelTxKind",
    "SpentOutput",
    "ChannelTransaction",
    "variant_for",
    "decode_channel_transaction",
    "channel_transaction_from_dict",
]
